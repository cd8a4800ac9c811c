"""Execution state for the agent loop.

One instance per run, owned by the loop. Other components read it; all
mutation goes through the named setters below.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from agentic_repo_agent.constants import DEFAULT_MAX_STEPS
from agentic_repo_agent.errors import StateError


@dataclass
class BuildStatus:
    ran: bool = False
    success: Optional[bool] = None
    errors: List[str] = field(default_factory=list)
    output: Optional[str] = None


@dataclass
class VerificationCheck:
    target: str
    success: bool


@dataclass
class VerificationStatus:
    ran: bool = False
    success: Optional[bool] = None
    checks: List[VerificationCheck] = field(default_factory=list)


@dataclass
class GitStatus:
    committed: bool = False
    pushed: bool = False
    commit_hash: Optional[str] = None
    branch: Optional[str] = None
    pr_url: Optional[str] = None

    @property
    def label(self) -> str:
        if self.pr_url:
            return "pr-created"
        if self.pushed:
            return "pushed"
        if self.committed:
            return "committed"
        return "uncommitted"


@dataclass
class IterationStatus:
    count: int = 0
    max: int = DEFAULT_MAX_STEPS
    errors: List[str] = field(default_factory=list)
    repairs: int = 0


@dataclass
class PlanStatus:
    steps: List[str] = field(default_factory=list)
    current_step: int = 0


@dataclass
class DevServerStatus:
    running: bool = False
    port: Optional[int] = None
    pid: Optional[int] = None


def _outcome(ran: bool, success: Optional[bool]) -> str:
    if not ran or success is None:
        return "not run"
    return "passed" if success else "failed"


@dataclass
class ExecutionState:
    goal: Optional[str] = None
    changed_files: List[str] = field(default_factory=list)
    build: BuildStatus = field(default_factory=BuildStatus)
    verification: VerificationStatus = field(default_factory=VerificationStatus)
    git: GitStatus = field(default_factory=GitStatus)
    iteration: IterationStatus = field(default_factory=IterationStatus)
    plan: PlanStatus = field(default_factory=PlanStatus)
    dev_server: DevServerStatus = field(default_factory=DevServerStatus)

    @classmethod
    def new(cls, max_steps: int = DEFAULT_MAX_STEPS) -> "ExecutionState":
        return cls(iteration=IterationStatus(max=max_steps))

    # --- goal / files ---

    def set_goal(self, goal: str) -> None:
        if self.goal is not None:
            raise StateError("Goal is already set for this run")
        self.goal = goal

    def add_changed_file(self, path: str) -> None:
        if path not in self.changed_files:
            self.changed_files.append(path)

    # --- build / verification ---

    def set_build_status(self, success: bool, errors: Optional[List[str]] = None, output: Optional[str] = None) -> None:
        self.build = BuildStatus(ran=True, success=success, errors=list(errors or []), output=output)

    def set_verification_status(self, success: bool, checks: Optional[List[VerificationCheck]] = None) -> None:
        self.verification = VerificationStatus(ran=True, success=success, checks=list(checks or []))

    # --- git (monotonic: committed -> pushed -> pr-created) ---

    def record_commit(self, commit_hash: Optional[str]) -> None:
        self.git.committed = True
        if commit_hash:
            self.git.commit_hash = commit_hash

    def record_push(self, branch: Optional[str]) -> None:
        self.git.committed = True
        self.git.pushed = True
        if branch:
            self.git.branch = branch

    def record_pr(self, pr_url: Optional[str], branch: Optional[str] = None) -> None:
        self.record_push(branch)
        if pr_url:
            self.git.pr_url = pr_url

    # --- dev server ---

    def set_dev_server_status(self, running: bool, port: Optional[int] = None, pid: Optional[int] = None) -> None:
        self.dev_server = DevServerStatus(running=running, port=port if running else None, pid=pid if running else None)

    # --- iteration ---

    def increment_iteration(self) -> int:
        self.iteration.count += 1
        return self.iteration.count

    def record_repair(self, error: str) -> None:
        """A tool result was classified as a failure."""
        self.iteration.errors.append(error)
        self.iteration.repairs += 1

    def record_error(self, error: str) -> None:
        """A non-tool error (e.g. a failed model call); not a repair."""
        self.iteration.errors.append(error)

    @property
    def budget_exhausted(self) -> bool:
        return self.iteration.count >= self.iteration.max

    # --- plan ---

    def set_plan(self, steps: List[str]) -> None:
        self.plan = PlanStatus(steps=list(steps), current_step=0)

    def advance_plan_step(self) -> None:
        if self.plan.current_step < len(self.plan.steps):
            self.plan.current_step += 1

    # --- views ---

    def summary(self) -> Dict[str, Any]:
        """Compact one-line view for the progress stream."""
        goal = self.goal
        return {
            "goal": (goal[:50] + "...") if goal and len(goal) > 50 else goal,
            "iteration": f"{self.iteration.count}/{self.iteration.max}",
            "files_changed": len(self.changed_files),
            "build": _outcome(self.build.ran, self.build.success),
            "verification": _outcome(self.verification.ran, self.verification.success),
            "git": self.git.label,
            "repairs": self.iteration.repairs,
        }

    def build_outcome(self) -> str:
        return _outcome(self.build.ran, self.build.success)

    def verification_outcome(self) -> str:
        return _outcome(self.verification.ran, self.verification.success)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
