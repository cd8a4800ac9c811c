"""CLI entrypoint for the repository agent."""

import logging
from pathlib import Path

import click
from dotenv import load_dotenv

from agentic_repo_agent.config import ConfigError, load_config

# Load .env file on CLI startup
load_dotenv()


@click.group()
@click.version_option(package_name="agentic-repo-agent")
def cli():
    """Repository agent - plan, modify, build and open a PR autonomously."""
    pass


@cli.command()
@click.option("--task", default=None, help="Goal for the agent (default: goal.txt in the root)")
@click.option(
    "--task-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Run definition (YAML or JSON) with goal/max_steps/model/repo_url",
)
@click.option("--repo-url", default=None, help="Repository to clone into an empty root")
@click.option(
    "--root",
    type=click.Path(file_okay=False),
    default=".",
    show_default=True,
    help="Project root the agent is confined to",
)
@click.option("--max-steps", type=click.IntRange(min=1), default=None, help="Iteration budget")
@click.option("--model", default=None, help="Primary model (fallback is used on 404)")
@click.option("--no-graph", is_flag=True, help="Run the plain loop without the LangGraph harness")
@click.option(
    "--report-dir",
    type=click.Path(file_okay=False),
    default="execution/reports",
    help="Directory for run reports (default: execution/reports)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def run(task, task_file, repo_url, root, max_steps, model, no_graph, report_dir, verbose):
    """Run the agent loop against a repository."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    from agentic_repo_agent.errors import AgentError
    from agentic_repo_agent.runner import load_run_definition, run_agent

    if task_file:
        try:
            definition = load_run_definition(Path(task_file))
        except (ValueError, OSError) as e:
            click.echo(f"Error: {e}", err=True)
            raise SystemExit(1)
        task = task or definition["goal"]
        repo_url = repo_url or definition.get("repo_url")
        max_steps = max_steps or definition.get("max_steps")
        model = model or definition.get("model")

    try:
        config = load_config(require_all=True)
    except ConfigError as e:
        click.echo(f"Configuration error:\n{e}", err=True)
        raise SystemExit(1)

    try:
        summary = run_agent(
            task=task,
            root=Path(root),
            repo_url=repo_url,
            max_steps=max_steps,
            model=model,
            use_graph=not no_graph,
            report_dir=Path(report_dir),
            config=config,
        )
    except AgentError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    if not summary.completed:
        raise SystemExit(2)


@cli.command()
def check_config():
    """Check if required environment variables are configured."""
    try:
        config = load_config(require_all=True)
        click.echo("Configuration loaded successfully!")
        click.echo("  OPENAI_API_KEY: [set]")
        click.echo(f"  Model: {config.model} (fallback: {config.fallback_model})")
        click.echo(f"  Endpoint: {config.api_url}")
        click.echo(f"  GITHUB_TOKEN: {'[set]' if config.github_token else '[not set - PR creation disabled]'}")
        click.echo(f"  Max steps: {config.max_steps}")
        click.echo(f"  Primary branch: {config.primary_branch}")
        click.echo(f"  Knowledge file: {'[loaded]' if config.knowledge else '[none]'}")
        click.echo(f"  Tracing: {'on' if config.trace else 'off'}")
    except ConfigError as e:
        click.echo(f"Configuration error:\n{e}", err=True)
        raise SystemExit(1)


@cli.command()
@click.option("--schema", is_flag=True, help="Also print each tool's argument schema")
def tools(schema: bool):
    """List the tool catalog exposed to the model."""
    import json

    from agentic_repo_agent.tools.context import ToolContext
    from agentic_repo_agent.tools.registry import ToolRegistry

    registry = ToolRegistry(ToolContext.for_root("."))
    click.echo(registry.render_catalog())

    if schema:
        click.echo()
        for name, spec in registry.specs.items():
            click.echo(f"{name.value}: {json.dumps(spec.schema)}")


if __name__ == "__main__":
    cli()
