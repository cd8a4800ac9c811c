"""Allow-list gate for externally invoked programs.

The allow-list is authoritative. The deny-list only exists to give a
clearer rejection reason for well-known dangerous commands.
"""

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


ALLOWED_COMMANDS = frozenset({
    # Node.js toolchain
    "node",
    "npm",
    "npx",
    # Version control
    "git",
    # Read-only utilities
    "ls",
    "cat",
    "head",
    "tail",
    "wc",
    "grep",
    "echo",
    "pwd",
    "which",
})

BLOCKED_COMMANDS = frozenset({
    "rm",
    "rmdir",
    "mv",
    "cp",
    "dd",
    "chmod",
    "chown",
    "sudo",
    "su",
    "doas",
    "curl",
    "wget",
    "nc",
    "ssh",
    "scp",
    "eval",
    "exec",
    "env",
    "find",
    "xargs",
    "sh",
    "bash",
    "zsh",
    "kill",
    "killall",
    "pkill",
    "shutdown",
    "reboot",
})


@dataclass(frozen=True)
class GateDecision:
    """Result of a command gate check."""
    allowed: bool
    command: str
    reason: Optional[str] = None


def check(command) -> GateDecision:
    """
    Decide whether a program may be invoked.
    
    Only bare program names are accepted; anything containing a path
    separator or whitespace is blocked so "/bin/rm" cannot sneak past as
    a different name.
    """
    if not isinstance(command, str) or not command.strip():
        return _blocked("", "Command name must be a non-empty string")
    
    name = command.strip()
    
    if name.lower() in BLOCKED_COMMANDS:
        return _blocked(name, f"Command '{name}' is blocked for security")
    
    if "/" in name or "\\" in name or any(ch.isspace() for ch in name):
        return _blocked(name, f"Command '{name}' must be a bare program name")
    
    if name not in ALLOWED_COMMANDS:
        return _blocked(name, f"Command '{name}' is not in the allow-list")
    
    return GateDecision(allowed=True, command=name)


def _blocked(name: str, reason: str) -> GateDecision:
    logger.warning("Command blocked: %s", reason)
    return GateDecision(allowed=False, command=name, reason=reason)
