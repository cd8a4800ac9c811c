#!/usr/bin/env python3
"""Proof script for the agent loop against a throw-away repository."""

import os
import shutil
import subprocess
import tempfile
from pathlib import Path

# Ensure .env is loaded
from dotenv import load_dotenv
load_dotenv()

from agentic_repo_agent.config import load_config
from agentic_repo_agent.runner import run_agent


def make_scratch_repo() -> Path:
    """A tiny git repo with a build script that fails until greet.txt exists."""
    root = Path(tempfile.mkdtemp(prefix="agent_proof_"))
    (root / "package.json").write_text(
        '{\n'
        '  "name": "agent-proof",\n'
        '  "version": "0.0.0",\n'
        '  "scripts": {"build": "node -e \\"require(\'fs\').readFileSync(\'greet.txt\')\\""}\n'
        '}\n'
    )
    (root / "README.md").write_text("# agent proof\n")
    for args in (
        ["init", "-b", "main"],
        ["add", "."],
        ["-c", "user.name=proof", "-c", "user.email=proof@example.com", "commit", "-m", "init"],
    ):
        subprocess.run(["git", *args], cwd=root, check=True, capture_output=True)
    return root


def main():
    # Check for API key
    if not os.environ.get("OPENAI_API_KEY"):
        print("ERROR: OPENAI_API_KEY not set")
        return

    root = make_scratch_repo()
    print(f"Created scratch repo: {root}")

    goal = (
        "Create greet.txt containing 'hello' so that the build passes. "
        "Back up first, build, then commit. Do not push."
    )
    print(f"\n=== GOAL ===\n{goal}")

    config = load_config()
    config.github_token = None

    print(f"\n=== RUNNING AGENT LOOP ===")
    summary = run_agent(
        task=goal,
        root=root,
        max_steps=12,
        use_graph=False,
        report_dir=None,
        config=config,
    )

    print(f"\n=== FINAL STATE ===")
    print(f"  completed: {summary.completed} ({summary.termination.value})")
    print(f"  steps: {summary.steps}/{summary.max_steps}")
    print(f"  files: {summary.files_changed}")
    print(f"  build: {summary.build}")
    print(f"  git: {summary.git}")
    print(f"  repairs: {summary.repairs}")

    greet = root / "greet.txt"
    created = greet.exists()

    # Cleanup
    shutil.rmtree(root, ignore_errors=True)
    print(f"\nCleaned up scratch repo.")

    # Final verdict
    print(f"\n{'='*40}")
    if summary.completed and created and summary.build == "passed":
        print("PROOF PASSED: File created, build passed, run completed.")
    elif summary.completed:
        print("PROOF PARTIAL: Completed but build did not pass")
    else:
        print(f"PROOF FAILED: Termination = {summary.termination.value}")


if __name__ == "__main__":
    main()
