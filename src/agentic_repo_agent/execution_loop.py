"""Agent orchestration loop.

Init -> Looping -> {Done | Aborted}. One action in flight at a time; each
tool runs to completion before the next model call. The loop ends on an
explicit done action, an exhausted iteration budget, or a failed model
call. Tool failures never end the loop; they count as repairs and are fed
back to the model.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from agentic_repo_agent.constants import (
    DEFAULT_GOAL,
    GOAL_FILE,
    PROGRESS_DATA_LIMIT,
    PROJECT_MARKER,
    STATE_SUMMARY_EVERY,
)
from agentic_repo_agent.execution_state import ExecutionState, VerificationCheck
from agentic_repo_agent.model_client import (
    Action,
    ActionSource,
    DoneAction,
    Message,
    ModelClientError,
    PlanAction,
    ToolAction,
    traced_request_action,
)
from agentic_repo_agent.progress import ProgressStream
from agentic_repo_agent.prompts import (
    PLAN_FOLLOWUP,
    format_goal,
    format_state_summary,
    format_tool_result,
)
from agentic_repo_agent.summary import RunSummary, Termination, summarize
from agentic_repo_agent.tools.registry import ToolName, ToolRegistry
from agentic_repo_agent.tools.result import ToolResult
from agentic_repo_agent.tools.web import verification_passed

logger = logging.getLogger(__name__)


def read_goal(root: Path, goal: Optional[str] = None) -> str:
    """Explicit goal, else goal.txt in the project root, else the default goal."""
    if goal and goal.strip():
        return goal.strip()
    goal_path = Path(root) / GOAL_FILE
    if goal_path.is_file():
        text = goal_path.read_text(encoding="utf-8").strip()
        if text:
            return text
    return DEFAULT_GOAL


class AgentLoop:
    """
    Drives one run. Owns the ExecutionState and the message history.

    The primitives initialize/step/finish are public so the LangGraph
    harness can wrap each of them as a node.
    """

    def __init__(
        self,
        state: ExecutionState,
        source: ActionSource,
        registry: ToolRegistry,
        progress: Optional[ProgressStream] = None,
        summary_every: int = STATE_SUMMARY_EVERY,
        trace: bool = False,
        model: str = "",
        run_id: str = "",
    ):
        self.state = state
        self.source = source
        self.registry = registry
        self.progress = progress or ProgressStream()
        self.summary_every = summary_every
        self.trace = trace
        self.model = model
        self.run_id = run_id

        self.messages: List[Message] = []
        self.termination: Optional[Termination] = None
        self.final_result: Optional[str] = None
        self.start_time: Optional[datetime] = None

    # --- Init ---

    async def initialize(self, goal: str) -> None:
        self.start_time = datetime.now()
        root = self.registry.ctx.root

        self.progress.section("READING GOAL")
        self.progress.emit("GOAL", goal)
        self.state.set_goal(goal)

        if (root / PROJECT_MARKER).exists():
            self.progress.section("PROJECT DETECTED")
            self.progress.emit("INIT", f"Found {PROJECT_MARKER} - installing dependencies...")
            result = await self.registry.dispatch(ToolName.NPM_INSTALL, {})
            if result.failed:
                # Non-fatal: a later build surfaces the same problem
                self.progress.emit("INIT", f"Warning: npm install failed: {result.error}")
            else:
                self.progress.emit("INIT", "Dependencies installed successfully")

        self.messages = [Message(role="user", content=format_goal(goal))]
        self.progress.section("STARTING AGENT LOOP")

    # --- Looping ---

    def should_continue(self) -> bool:
        return self.termination is None and not self.state.budget_exhausted

    async def step(self) -> Optional[Termination]:
        """
        Run one iteration: request an action, then plan/done/dispatch.

        Returns:
            The termination reason if this iteration ended the run, else None
        """
        count = self.state.increment_iteration()
        self.progress.line("")
        self.progress.line("-" * 60)
        self.progress.line(f"STEP {count}/{self.state.iteration.max}")
        self.progress.emit("STATE", json.dumps(self.state.summary()))
        self.progress.line("-" * 60)

        self.progress.emit("LLM", "Requesting next action...")
        try:
            action = await self._request_action(count)
        except ModelClientError as e:
            logger.error("Model call failed at step %d: %s", count, e)
            self.progress.emit("ERROR", f"LLM call failed: {e}")
            self.state.record_error(str(e))
            self.termination = Termination.FATAL_ERROR
            return self.termination

        if isinstance(action, PlanAction):
            self._handle_plan(action)
            return None

        if isinstance(action, DoneAction):
            self.progress.emit("DONE", action.result)
            self.final_result = action.result
            self.termination = Termination.DONE
            return self.termination

        await self._handle_tool(action, count)
        return None

    async def _request_action(self, iteration: int) -> Action:
        if self.trace:
            return await traced_request_action(
                self.source,
                self.messages,
                model=self.model,
                run_id=self.run_id,
                iteration=iteration,
            )
        return await self.source.request_action(self.messages)

    def _handle_plan(self, action: PlanAction) -> None:
        self.progress.emit("PLAN", f"{len(action.steps)} steps:")
        for i, text in enumerate(action.steps, 1):
            self.progress.line(f"  {i}. {text}")
        self.state.set_plan(action.steps)
        self.messages.append(Message(role="assistant", content=action.to_json()))
        self.messages.append(Message(role="user", content=PLAN_FOLLOWUP))

    async def _handle_tool(self, action: ToolAction, iteration: int) -> None:
        self.progress.emit("EXEC", f"{action.tool}({json.dumps(action.args)})")
        result = await self.registry.dispatch(action.tool, action.args)
        self._apply_tool_result(action.tool, action.args, result)

        self.progress.emit("RESULT", f"success={result.success}")
        if result.data:
            data = json.dumps(result.data, default=str)
            suffix = "..." if len(data) > PROGRESS_DATA_LIMIT else ""
            self.progress.emit("DATA", data[:PROGRESS_DATA_LIMIT] + suffix)

        if result.failed:
            self.state.record_repair(result.error or f"{action.tool} failed")
            self.progress.emit("REPAIR", f"⚠️ Error detected (repair #{self.state.iteration.repairs})")

        self.messages.append(Message(role="assistant", content=action.to_json()))
        self.messages.append(Message(role="user", content=format_tool_result(action.tool, result)))

        if self.summary_every and iteration % self.summary_every == 0:
            self.messages.append(Message(role="user", content=format_state_summary(self.state)))

        self.progress.emit("CONTEXT", f"{len(self.messages)} messages")

    def _apply_tool_result(self, tool: str, args: Dict[str, Any], result: ToolResult) -> None:
        """Reflect a tool outcome in the execution state."""
        try:
            name = ToolName(tool)
        except ValueError:
            return
        data = result.data or {}

        if name is ToolName.WRITE_FILE and result.success:
            self.state.add_changed_file(data.get("relativePath") or args.get("path"))
        elif name is ToolName.RUN_BUILD:
            self.state.set_build_status(
                not result.failed,
                errors=data.get("errors") or ([result.error] if result.error else []),
                output=data.get("stdout"),
            )
        elif name in (ToolName.CHECK_DEV_SERVER, ToolName.VERIFY_URL):
            passed = verification_passed(result)
            target = args.get("url") or args.get("path") or "/"
            self.state.set_verification_status(passed, [VerificationCheck(target=target, success=passed)])
        elif name is ToolName.GIT_COMMIT and result.success:
            self.state.record_commit(data.get("commit_hash"))
        elif name is ToolName.GIT_PUSH and result.success:
            self.state.record_push(data.get("branch"))
        elif name is ToolName.GIT_CREATE_PR and result.success:
            self.state.record_pr(data.get("pr_url"), data.get("branch"))
        elif name is ToolName.START_DEV_SERVER and result.success:
            self.state.set_dev_server_status(True, data.get("port"), data.get("pid"))
        elif name is ToolName.STOP_DEV_SERVER and result.success:
            self.state.set_dev_server_status(False)

    # --- Done / Aborted ---

    async def finish(self) -> RunSummary:
        """Tear down ancillary processes and freeze the summary."""
        if self.termination is None:
            self.termination = Termination.MAX_STEPS
            self.progress.emit("STATE", f"Iteration budget exhausted ({self.state.iteration.max} steps)")

        self.progress.section("CLEANUP")
        if self.state.dev_server.running or self.registry.ctx.dev_server is not None:
            self.progress.emit("CLEANUP", "Stopping dev server...")
            result = await self.registry.dispatch(ToolName.STOP_DEV_SERVER, {})
            self._apply_tool_result(ToolName.STOP_DEV_SERVER.value, {}, result)

        return summarize(
            self.state,
            self.termination,
            result=self.final_result,
            start_time=self.start_time,
            end_time=datetime.now(),
        )

    async def run(self, goal: str) -> RunSummary:
        await self.initialize(goal)
        while self.should_continue():
            await self.step()
        return await self.finish()
