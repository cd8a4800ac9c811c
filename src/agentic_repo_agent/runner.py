"""Host-side runner: prepares the workspace, runs the loop, writes a report."""

import asyncio
import json
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
import yaml

from agentic_repo_agent.config import Config, load_config
from agentic_repo_agent.errors import ToolExecutionError
from agentic_repo_agent.execution_loop import AgentLoop, read_goal
from agentic_repo_agent.execution_state import ExecutionState
from agentic_repo_agent.model_client import ActionSource, OpenAIActionClient
from agentic_repo_agent.progress import ProgressStream
from agentic_repo_agent.prompts import build_system_prompt
from agentic_repo_agent.summary import RunSummary, print_summary, write_run_report
from agentic_repo_agent.tools.context import ToolContext
from agentic_repo_agent.tools.git import git_clone
from agentic_repo_agent.tools.registry import ToolRegistry

DEFAULT_REPORT_DIR = Path("execution/reports")


def load_run_definition(run_file: Path) -> Dict[str, Any]:
    """
    Load a run definition from YAML or JSON.

    Fields (one of goal / goal_file is required):
        - goal: str
        - goal_file: str (relative to the definition file)
        - max_steps: int
        - model: str
        - repo_url: str
    """
    content = run_file.read_text()

    if run_file.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(content)
    elif run_file.suffix == ".json":
        data = json.loads(content)
    else:
        raise ValueError(f"Unsupported file type: {run_file.suffix}. Use .yaml, .yml, or .json")

    if not isinstance(data, dict):
        raise ValueError("Run definition must be a mapping")

    if "goal_file" in data and "goal" not in data:
        goal_path = run_file.parent / data["goal_file"]
        data["goal"] = goal_path.read_text().strip()
    if not data.get("goal"):
        raise ValueError("Run definition missing required field: goal (or goal_file)")

    if "max_steps" in data and (not isinstance(data["max_steps"], int) or data["max_steps"] < 1):
        raise ValueError(f"max_steps must be a positive integer, got: {data['max_steps']!r}")

    return data


def prepare_workspace(ctx: ToolContext, repo_url: Optional[str], progress: ProgressStream) -> None:
    """Clone repo_url into the project root when the root is empty."""
    ctx.root.mkdir(parents=True, exist_ok=True)
    if not repo_url:
        return

    if any(ctx.root.iterdir()):
        progress.emit("INIT", f"{ctx.root} is not empty, skipping clone of {repo_url}")
        return

    progress.emit("INIT", f"Cloning {repo_url}...")
    result = git_clone(ctx, repo_url, ".")
    if not result.success:
        raise ToolExecutionError(result.error)
    progress.emit("INIT", f"Cloned into {ctx.root}")


def run_agent(
    task: Optional[str],
    root: Path,
    repo_url: Optional[str] = None,
    max_steps: Optional[int] = None,
    model: Optional[str] = None,
    use_graph: bool = True,
    report_dir: Optional[Path] = DEFAULT_REPORT_DIR,
    config: Optional[Config] = None,
    source: Optional[ActionSource] = None,
    progress: Optional[ProgressStream] = None,
    http_transport: Optional[httpx.MockTransport] = None,
) -> RunSummary:
    """
    Main entry point: prepare workspace, run the agent loop, write report.

    Args:
        task: Goal text; falls back to goal.txt in root, then the default goal
        root: Project root the agent is confined to
        repo_url: Repository cloned into root when root is empty
        max_steps: Iteration budget (default from config)
        model: Primary model (default from config)
        use_graph: If True, use LangGraph for tracing visibility (default: True)
        report_dir: Directory for run reports (None disables the report)
        config: Preloaded config (default: load_config())
        source: Action source override (default: OpenAIActionClient)
        progress: Progress stream (default: click.echo)
        http_transport: httpx transport override for tools

    Returns:
        Final RunSummary

    Raises:
        ConfigError: If required configuration is missing
        ToolExecutionError: If cloning repo_url fails
    """
    if config is None:
        config = load_config()

    progress = progress or ProgressStream()
    progress.section("REPOSITORY AGENT")

    ctx = ToolContext.for_root(
        root,
        github_token=config.github_token,
        primary_branch=config.primary_branch,
        http_transport=http_transport,
    )
    prepare_workspace(ctx, repo_url, progress)

    steps = max_steps or config.max_steps
    model_name = model or config.model
    run_id = uuid.uuid4().hex[:12]

    progress.emit("ENV", f"Working directory: {ctx.root}")
    progress.emit("ENV", f"MAX_STEPS: {steps}")
    progress.emit("ENV", f"Model: {model_name}")
    progress.emit("ENV", f"Hosting token present: {'Yes' if config.github_token else 'No'}")

    registry = ToolRegistry(ctx)
    if source is None:
        source = OpenAIActionClient(
            api_key=config.openai_api_key,
            system_prompt=build_system_prompt(registry.render_catalog(), config.knowledge),
            model=model_name,
            fallback_model=config.fallback_model,
            api_url=config.api_url,
        )

    state = ExecutionState.new(max_steps=steps)
    loop = AgentLoop(
        state,
        source,
        registry,
        progress=progress,
        trace=config.trace,
        model=model_name,
        run_id=run_id,
    )
    goal = read_goal(ctx.root, task)

    if use_graph:
        from agentic_repo_agent.execution_graph import run_agent_graph
        summary = asyncio.run(run_agent_graph(loop, goal))
    else:
        summary = asyncio.run(loop.run(goal))

    print_summary(summary, progress)

    if report_dir is not None:
        report_path = write_run_report(summary, Path(report_dir), run_id)
        progress.emit("REPORT", str(report_path))

    return summary
