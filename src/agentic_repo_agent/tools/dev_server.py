"""Development server lifecycle: start, probe, stop.

The server runs in its own process group so stop_dev_server can take down
npm together with the framework process it spawned.
"""

import asyncio
import logging
import os
import signal
import subprocess
import tempfile
from pathlib import Path

import httpx

from agentic_repo_agent.constants import DEV_SERVER_START_TIMEOUT_S, HTTP_TIMEOUT_S
from agentic_repo_agent.tools.build import BUILD_ENV
from agentic_repo_agent.tools.context import DevServerHandle, ToolContext
from agentic_repo_agent.tools.result import ToolResult, fail, ok
from agentic_repo_agent.tools.web import fetch

logger = logging.getLogger(__name__)

POLL_INTERVAL_S = 1.0
STOP_GRACE_S = 10.0


def _log_tail(path: Path, limit: int = 1500) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")[-limit:]
    except OSError:
        return ""


def _discard_log(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


async def start_dev_server(ctx: ToolContext, port: int = 3000) -> ToolResult:
    handle = ctx.dev_server
    if handle is not None and handle.process.poll() is None:
        return ok(port=handle.port, pid=handle.process.pid, message="Dev server already running")
    
    log_fd, log_name = tempfile.mkstemp(prefix="dev-server-", suffix=".log")
    log_path = Path(log_name)
    try:
        with os.fdopen(log_fd, "w") as log_file:
            process = subprocess.Popen(
                ["npm", "run", "dev", "--", "--port", str(port)],
                cwd=str(ctx.root),
                env={**os.environ, **BUILD_ENV, "PORT": str(port)},
                stdin=subprocess.DEVNULL,
                stdout=log_file,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
    except OSError as e:
        _discard_log(log_path)
        return fail(f"Could not start dev server: {e}")
    
    ctx.dev_server = DevServerHandle(process=process, port=port, log_path=log_path)
    url = f"http://localhost:{port}/"
    loop = asyncio.get_running_loop()
    deadline = loop.time() + DEV_SERVER_START_TIMEOUT_S
    
    while loop.time() < deadline:
        if process.poll() is not None:
            ctx.dev_server = None
            tail = _log_tail(log_path)
            _discard_log(log_path)
            return fail("Dev server exited during startup", exitCode=process.returncode, log=tail)
        probe = await fetch(ctx, url, None, POLL_INTERVAL_S)
        if probe.success:
            return ok(port=port, pid=process.pid, url=url, message="Dev server is up")
        await asyncio.sleep(POLL_INTERVAL_S)
    
    tail = _log_tail(log_path)
    stop_dev_server(ctx)
    return fail(
        f"Dev server did not answer on port {port} within {DEV_SERVER_START_TIMEOUT_S:g}s",
        log=tail,
    )


def stop_dev_server(ctx: ToolContext) -> ToolResult:
    handle = ctx.dev_server
    if handle is None:
        return ok(stopped=False, message="No dev server running")
    
    process = handle.process
    if process.poll() is None:
        try:
            os.killpg(process.pid, signal.SIGTERM)
            process.wait(timeout=STOP_GRACE_S)
        except ProcessLookupError:
            pass
        except subprocess.TimeoutExpired:
            logger.warning("Dev server ignored SIGTERM, killing process group %s", process.pid)
            os.killpg(process.pid, signal.SIGKILL)
            process.wait(timeout=STOP_GRACE_S)
    
    ctx.dev_server = None
    _discard_log(handle.log_path)
    return ok(stopped=True, pid=process.pid, port=handle.port)


async def check_dev_server(ctx: ToolContext, path: str = "/") -> ToolResult:
    handle = ctx.dev_server
    if handle is None or handle.process.poll() is not None:
        return fail("Dev server is not running. Call start_dev_server first.")
    if not path.startswith("/"):
        path = "/" + path
    return await fetch(ctx, f"http://localhost:{handle.port}{path}", None, HTTP_TIMEOUT_S)
