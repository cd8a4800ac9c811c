"""Transactional backup/restore protocol on top of git.

    CLEAN --stash_backup--> BACKED_UP --clear_backup--> CLEAN  (snapshot kept)
                                      --restore_backup--> CLEAN (tree rolled back)

Only one snapshot is expected to be outstanding. A second stash_backup
while one is outstanding supersedes it; the earlier stash entry stays in
the stash list.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from agentic_repo_agent.constants import AGENT_GIT_EMAIL, AGENT_GIT_NAME, BACKUP_LABEL, GIT_TIMEOUT_S
from agentic_repo_agent.tools.process import ProcessOutput, run_process
from agentic_repo_agent.tools.result import ToolResult, fail, ok

logger = logging.getLogger(__name__)


class BackupState(str, Enum):
    CLEAN = "clean"
    BACKED_UP = "backed_up"


@dataclass
class BackupHandle:
    """Reference to a pre-modification snapshot."""
    head_sha: Optional[str]
    label: Optional[str]   # stash message, None when the tree was clean


def _git(root: Path, *args: str) -> ProcessOutput:
    return run_process(["git", *args], cwd=root, timeout_s=GIT_TIMEOUT_S)


class BackupProtocol:
    """Owns the single outstanding backup handle for a run."""

    def __init__(self):
        self.handle: Optional[BackupHandle] = None
        self._sequence = 0

    @property
    def state(self) -> BackupState:
        return BackupState.BACKED_UP if self.handle else BackupState.CLEAN

    def stash_backup(self, root: Path) -> ToolResult:
        """Snapshot a dirty tree (tracked and untracked) and record HEAD."""
        status = _git(root, "status", "--porcelain")
        if status.exit_code != 0:
            return fail(f"Not a git repository or status failed: {status.stderr.strip()}", exitCode=status.exit_code)
        
        superseded = self.handle.label if self.handle else None
        if self.handle:
            logger.warning("stash_backup called with a backup outstanding; superseding %s", superseded)
        
        has_changes = bool(status.stdout.strip())
        label = None
        if has_changes:
            self._sequence += 1
            label = f"{BACKUP_LABEL}-{self._sequence}"
            stash = _git(
                root,
                "-c", f"user.name={AGENT_GIT_NAME}",
                "-c", f"user.email={AGENT_GIT_EMAIL}",
                "stash", "push", "--include-untracked", "-m", label,
            )
            if stash.exit_code != 0:
                return fail(f"Stash failed: {stash.stderr.strip()}", exitCode=stash.exit_code)
        
        head = _git(root, "rev-parse", "HEAD")
        head_sha = head.stdout.strip() if head.exit_code == 0 else None
        
        self.handle = BackupHandle(head_sha=head_sha, label=label)
        return ok(
            backup_created=True,
            stashed_changes=has_changes,
            head_sha=head_sha,
            superseded=superseded,
            message="Backup created. If build fails, call git_restore_backup to rollback.",
        )

    def restore_backup(self, root: Path) -> ToolResult:
        """Discard every change since the backup, then re-apply the snapshot."""
        handle = self.handle
        if handle is None:
            return fail("No backup to restore. Call git_stash_backup before modifying files.")
        
        if handle.head_sha:
            reset = _git(root, "reset", "--hard", handle.head_sha)
            if reset.exit_code != 0:
                return fail(f"Reset failed: {reset.stderr.strip()}", exitCode=reset.exit_code)
        else:
            # No commits yet and the tree was clean: unstage, then clean below
            _git(root, "reset")
        
        clean = _git(root, "clean", "-fd")
        if clean.exit_code != 0:
            return fail(f"Clean failed: {clean.stderr.strip()}", exitCode=clean.exit_code)
        
        reapplied = False
        if handle.label:
            ref = self._find_stash(root, handle.label)
            if ref is None:
                return fail(f"Backup snapshot {handle.label} is missing from the stash list")
            pop = _git(root, "stash", "pop", ref)
            if pop.exit_code != 0:
                return fail(f"Stash pop failed: {pop.stderr.strip()}", exitCode=pop.exit_code)
            reapplied = True
        
        self.handle = None
        return ok(
            restored=True,
            reapplied_snapshot=reapplied,
            head_sha=handle.head_sha,
            message="All changes reverted. Repository is back to pre-modification state.",
        )

    def clear_backup(self, root: Path) -> ToolResult:
        """Consume the handle; the stash entry itself is kept for inspection."""
        handle = self.handle
        if handle is None:
            return fail("No backup to clear.")
        
        kept = None
        if handle.label and self._find_stash(root, handle.label):
            kept = handle.label
        
        self.handle = None
        return ok(
            cleared=True,
            snapshot_kept=kept,
            message="Backup cleared. Changes are now permanent.",
        )

    @staticmethod
    def _find_stash(root: Path, label: str) -> Optional[str]:
        listing = _git(root, "stash", "list", "--format=%gd %s")
        if listing.exit_code != 0:
            return None
        for line in listing.stdout.splitlines():
            ref, _, subject = line.partition(" ")
            if subject.endswith(label):
                return ref
        return None
