"""Per-run context shared by tool handlers."""

import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import httpx

from agentic_repo_agent.constants import DEFAULT_PRIMARY_BRANCH
from agentic_repo_agent.tools.backup import BackupProtocol


@dataclass
class DevServerHandle:
    process: subprocess.Popen
    port: int
    log_path: Path


@dataclass
class ToolContext:
    """Everything a tool needs besides its own arguments.

    root is the confinement root for the path guard and the working
    directory of every subprocess. http_transport lets tests swap in an
    httpx.MockTransport for both sync and async clients.
    """
    root: Path
    github_token: Optional[str] = None
    primary_branch: str = DEFAULT_PRIMARY_BRANCH
    http_transport: Optional[httpx.MockTransport] = None
    backup: BackupProtocol = field(default_factory=BackupProtocol)
    dev_server: Optional[DevServerHandle] = None

    @classmethod
    def for_root(cls, root, **kwargs) -> "ToolContext":
        return cls(root=Path(root).resolve(), **kwargs)
