"""Shared fixtures: throw-away git repositories, scripted action sources."""

import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Union

import pytest

from agentic_repo_agent.model_client import Action, ActionSource, Message, ProtocolError
from agentic_repo_agent.progress import RecordingProgress
from agentic_repo_agent.tools.context import ToolContext

def git(root: Path, *args: str) -> str:
    result = subprocess.run(["git", *args], cwd=root, check=True, capture_output=True, text=True)
    return result.stdout


def init_repo(root: Path, branch: str = "main") -> Path:
    root.mkdir(parents=True, exist_ok=True)
    git(root, "init", "-q")
    git(root, "checkout", "-q", "-b", branch)
    git(root, "config", "user.name", "Test User")
    git(root, "config", "user.email", "test@example.com")
    git(root, "config", "commit.gpgsign", "false")
    (root / "README.md").write_text("# project\n")
    (root / "app.txt").write_text("v1\n")
    git(root, "add", ".")
    git(root, "commit", "-q", "-m", "initial")
    return root


@pytest.fixture
def repo(tmp_path) -> Path:
    """A committed repository on branch main."""
    if shutil.which("git") is None:
        pytest.skip("git binary not available")
    return init_repo(tmp_path / "repo")


@pytest.fixture
def repo_with_remote(tmp_path, repo) -> Path:
    """repo with a local bare 'origin' that already has main."""
    remote = tmp_path / "origin.git"
    subprocess.run(["git", "init", "-q", "--bare", "--initial-branch=main", str(remote)], check=True, capture_output=True)
    git(repo, "remote", "add", "origin", str(remote))
    git(repo, "push", "-q", "-u", "origin", "main")
    return repo


@pytest.fixture
def ctx(repo) -> ToolContext:
    return ToolContext.for_root(repo)


@pytest.fixture
def plain_ctx(tmp_path) -> ToolContext:
    """Context over an empty, non-git directory."""
    root = tmp_path / "plain"
    root.mkdir()
    return ToolContext.for_root(root)


CLONE_URL = "https://github.com/example/site.git"


@pytest.fixture
def clone_source(monkeypatch, tmp_path, repo_with_remote):
    """Serve CLONE_URL from the local bare origin; returns the recorded git argv lists."""
    from agentic_repo_agent.tools import git as git_tools
    from agentic_repo_agent.tools.process import run_process

    origin = str(tmp_path / "origin.git")
    calls = []

    def redirect(argv, *, cwd, timeout_s, env=None):
        calls.append(list(argv))
        argv = [origin if arg == CLONE_URL else arg for arg in argv]
        return run_process(argv, cwd=cwd, timeout_s=timeout_s, env=env)

    monkeypatch.setattr(git_tools, "run_process", redirect)
    return calls


@pytest.fixture
def progress() -> RecordingProgress:
    return RecordingProgress()


class ScriptedSource(ActionSource):
    """Replays a fixed list of actions (or exceptions) and records each history."""

    def __init__(self, script: List[Union[Action, Exception]], then: Optional[Action] = None):
        self.script = list(script)
        self.then = then
        self.calls: List[List[Message]] = []

    async def request_action(self, messages: List[Message]) -> Action:
        self.calls.append(list(messages))
        if self.script:
            item = self.script.pop(0)
        elif self.then is not None:
            item = self.then
        else:
            raise ProtocolError("script exhausted")
        if isinstance(item, Exception):
            raise item
        return item
