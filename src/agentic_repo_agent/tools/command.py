"""General command escape hatch, gated by the command allow-list."""

from typing import List, Optional

from agentic_repo_agent import command_gate
from agentic_repo_agent.constants import COMMAND_TIMEOUT_S
from agentic_repo_agent.tools.context import ToolContext
from agentic_repo_agent.tools.process import run_process
from agentic_repo_agent.tools.result import ToolResult, fail


def run_command(ctx: ToolContext, command: str, args: Optional[List[str]] = None) -> ToolResult:
    """Run an allow-listed program with verbatim argv (never through a shell)."""
    args = list(args or [])
    decision = command_gate.check(command)
    if not decision.allowed:
        return fail(decision.reason, command=command, blocked=True)
    
    result = run_process([decision.command, *args], cwd=ctx.root, timeout_s=COMMAND_TIMEOUT_S)
    display = " ".join([decision.command, *args])
    
    return ToolResult(
        success=result.exit_code == 0,
        error=None if result.exit_code == 0 else f"Command exited with {result.exit_code}",
        data={
            "command": display,
            "exitCode": result.exit_code,
            "stdout": result.stdout,
            "stderr": result.stderr,
        },
    )
