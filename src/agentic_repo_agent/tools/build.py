"""Build validation tools wrapping the project's npm entrypoints."""

import re
from typing import List

from agentic_repo_agent.constants import (
    BUILD_OUTPUT_CAP,
    BUILD_OUTPUT_DIRS,
    BUILD_TIMEOUT_S,
    INSTALL_TIMEOUT_S,
    LINT_TIMEOUT_S,
    LOCKFILE,
    MAX_ERROR_LINES,
)
from agentic_repo_agent.tools.context import ToolContext
from agentic_repo_agent.tools.process import ProcessOutput, run_process
from agentic_repo_agent.tools.result import ToolResult, fail, ok

# Telemetry off, CI mode on: faster and non-interactive
BUILD_ENV = {
    "NEXT_TELEMETRY_DISABLED": "1",
    "CI": "true",
}

ERROR_LINE_RE = re.compile(r"(Error:|\berror\b|\bfailed\b|ERR!)", re.IGNORECASE)


def _npm(ctx: ToolContext, args: List[str], timeout_s: float) -> ProcessOutput:
    return run_process(["npm", *args], cwd=ctx.root, timeout_s=timeout_s, env=BUILD_ENV)


def extract_error_lines(output: str, limit: int = MAX_ERROR_LINES) -> List[str]:
    """Pick out the lines that look like errors, bounded to limit."""
    lines = [line.strip() for line in output.splitlines() if ERROR_LINE_RE.search(line)]
    return lines[:limit]


def npm_install(ctx: ToolContext) -> ToolResult:
    """
    Install dependencies.
    
    Uses `npm ci` when a lockfile exists, `npm install` otherwise. Both skip
    audit/funding calls and prefer the offline cache.
    """
    flags = ["--no-audit", "--no-fund", "--prefer-offline"]
    has_lockfile = (ctx.root / LOCKFILE).exists()
    command = "ci" if has_lockfile else "install"
    
    result = _npm(ctx, [command, *flags], INSTALL_TIMEOUT_S)
    if result.exit_code != 0:
        return fail(
            f"npm {command} failed",
            exitCode=result.exit_code,
            stdout=result.stdout[-BUILD_OUTPUT_CAP:],
            stderr=result.stderr[-BUILD_OUTPUT_CAP:],
        )
    
    return ok(
        message="Dependencies installed successfully",
        command=f"npm {command}",
        exitCode=0,
        stdout=result.stdout[:1000],
    )


def run_build(ctx: ToolContext) -> ToolResult:
    result = _npm(ctx, ["run", "build"], BUILD_TIMEOUT_S)
    success = result.exit_code == 0
    
    errors = []
    if not success:
        errors = extract_error_lines(f"{result.stderr}\n{result.stdout}")
        if result.timed_out:
            errors.insert(0, result.stderr)
    
    return ToolResult(
        success=success,
        error=None if success else "Build failed",
        data={
            "command": "npm run build",
            "exitCode": result.exit_code,
            "stdout": result.stdout[:BUILD_OUTPUT_CAP],
            "stderr": result.stderr[:BUILD_OUTPUT_CAP],
            "errors": errors,
            "summary": "Build succeeded" if success else "Build failed",
        },
    )


def run_lint(ctx: ToolContext) -> ToolResult:
    result = _npm(ctx, ["run", "lint"], LINT_TIMEOUT_S)
    success = result.exit_code == 0
    
    return ToolResult(
        success=success,
        error=None if success else "Lint failed",
        data={
            "command": "npm run lint",
            "exitCode": result.exit_code,
            "stdout": result.stdout[:BUILD_OUTPUT_CAP],
            "stderr": result.stderr[:BUILD_OUTPUT_CAP],
            "errors": [] if success else extract_error_lines(f"{result.stderr}\n{result.stdout}"),
            "summary": "Lint passed" if success else "Lint failed",
        },
    )


def check_build_output(ctx: ToolContext) -> ToolResult:
    """Check that a known build artifact directory exists and is non-empty."""
    for name in BUILD_OUTPUT_DIRS:
        candidate = ctx.root / name
        if not candidate.is_dir():
            continue
        files = sorted(p.name for p in candidate.iterdir())
        if not files:
            continue
        return ok(build_dir=name, file_count=len(files), files=files[:10])
    
    return fail("No build output directory found", checked=BUILD_OUTPUT_DIRS)
