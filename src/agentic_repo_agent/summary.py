"""End-of-run summary: console block and JSON report."""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from agentic_repo_agent.execution_state import ExecutionState
from agentic_repo_agent.progress import ProgressStream


class Termination(str, Enum):
    DONE = "done"
    MAX_STEPS = "max_steps"
    FATAL_ERROR = "fatal_error"


@dataclass
class RunSummary:
    goal: Optional[str]
    steps: int
    max_steps: int
    files_changed: List[str]
    build: str
    verification: str
    git: str
    repairs: int
    completed: bool
    termination: Termination
    result: Optional[str] = None
    commit_hash: Optional[str] = None
    branch: Optional[str] = None
    pr_url: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.start_time is None or self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["termination"] = self.termination.value
        data["start_time"] = self.start_time.isoformat() if self.start_time else None
        data["end_time"] = self.end_time.isoformat() if self.end_time else None
        data["duration_seconds"] = self.duration_seconds
        return data


def summarize(
    state: ExecutionState,
    termination: Termination,
    result: Optional[str] = None,
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
) -> RunSummary:
    """Freeze the final state into a RunSummary."""
    return RunSummary(
        goal=state.goal,
        steps=state.iteration.count,
        max_steps=state.iteration.max,
        files_changed=list(state.changed_files),
        build=state.build_outcome(),
        verification=state.verification_outcome(),
        git=state.git.label,
        repairs=state.iteration.repairs,
        completed=termination is Termination.DONE,
        termination=termination,
        result=result,
        commit_hash=state.git.commit_hash,
        branch=state.git.branch,
        pr_url=state.git.pr_url,
        errors=list(state.iteration.errors),
        start_time=start_time,
        end_time=end_time,
    )


def format_duration(seconds: float) -> str:
    """Format duration in human-readable form."""
    if seconds < 1:
        return f"{seconds*1000:.0f}ms"
    elif seconds < 60:
        return f"{seconds:.1f}s"
    else:
        mins = int(seconds // 60)
        secs = seconds % 60
        return f"{mins}m {secs:.0f}s"


def print_summary(summary: RunSummary, progress: ProgressStream) -> None:
    progress.section("AGENT COMPLETE")
    progress.line(f"Goal: {summary.goal}")
    progress.line(f"Steps: {summary.steps}/{summary.max_steps}")
    progress.line(f"Files changed: {', '.join(summary.files_changed) or 'none'}")
    progress.line(f"Build: {summary.build}")
    progress.line(f"Verification: {summary.verification}")
    git = summary.git
    if summary.pr_url:
        git += f" ({summary.pr_url})"
    elif summary.branch:
        git += f" ({summary.branch})"
    progress.line(f"Git: {git}")
    progress.line(f"Repairs: {summary.repairs}")
    progress.line(f"Completed: {'yes' if summary.completed else 'no'} ({summary.termination.value})")
    if summary.duration_seconds is not None:
        progress.line(f"Duration: {format_duration(summary.duration_seconds)}")
    progress.line(f"Result: {summary.result or '(none)'}")
    progress.line("=" * 60)


def write_run_report(summary: RunSummary, output_dir: Path, run_id: str) -> Path:
    """
    Write a structured run report to disk.

    Filename: {run_id}_{timestamp}.json
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    stamp = (summary.end_time or datetime.now()).strftime("%Y%m%d_%H%M%S")
    report_path = output_dir / f"{run_id}_{stamp}.json"

    report = {"run_id": run_id, **summary.to_dict()}
    report_path.write_text(json.dumps(report, indent=2))

    return report_path
