"""Filesystem tools. Every path goes through the path guard first."""

import os

from agentic_repo_agent import path_guard
from agentic_repo_agent.constants import SEARCH_RESULT_LIMIT, SEARCH_SKIP_DIRS
from agentic_repo_agent.tools.context import ToolContext
from agentic_repo_agent.tools.result import ToolResult, fail, ok


def write_file(ctx: ToolContext, path: str, content: str) -> ToolResult:
    """Write content to a file, creating parent directories as needed."""
    check = path_guard.resolve(ctx.root, path)
    if not check.valid:
        return fail(check.error, reason=check.reason.value)
    
    target = check.path
    if target.is_dir():
        return fail(f"Path is a directory: {path}")
    
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        size = target.stat().st_size
    except OSError as e:
        return fail(f"Write failed: {e}")
    
    return ok(
        path=str(target),
        relativePath=path_guard.relative_to_root(ctx.root, target),
        bytes_written=size,
    )


def read_file(ctx: ToolContext, path: str) -> ToolResult:
    """Read a file. Content is returned whole; callers cap it for context."""
    check = path_guard.resolve(ctx.root, path)
    if not check.valid:
        return fail(check.error, reason=check.reason.value)
    
    target = check.path
    if not target.exists():
        return fail(f"File not found: {path}", reason="not_found")
    if not target.is_file():
        return fail(f"Not a file: {path}")
    
    try:
        content = target.read_text(encoding="utf-8", errors="replace")
        size = target.stat().st_size
    except OSError as e:
        return fail(f"Read failed: {e}")
    
    return ok(
        path=str(target),
        relativePath=path_guard.relative_to_root(ctx.root, target),
        content=content,
        size=size,
    )


def list_files(ctx: ToolContext, dir: str = ".") -> ToolResult:
    check = path_guard.resolve(ctx.root, dir)
    if not check.valid:
        return fail(check.error, reason=check.reason.value)
    
    target = check.path
    if not target.exists():
        return fail(f"Directory not found: {dir}", reason="not_found")
    if not target.is_dir():
        return fail(f"Not a directory: {dir}")
    
    try:
        children = sorted(target.iterdir(), key=lambda c: c.name.lower())
    except OSError as e:
        return fail(f"List failed: {e}")
    
    entries = [
        {
            "name": child.name,
            "type": "directory" if child.is_dir() else "file",
            "path": path_guard.relative_to_root(ctx.root, child),
        }
        for child in children
    ]
    return ok(
        directory=path_guard.relative_to_root(ctx.root, target),
        entries=entries,
        count=len(entries),
    )


def search_files(ctx: ToolContext, query: str, dir: str = ".") -> ToolResult:
    """
    Case-insensitive search over file names, then file contents.
    
    Version-control and dependency directories are skipped; the result list
    is capped at SEARCH_RESULT_LIMIT while count reports the full total.
    """
    if not query:
        return fail("query is required")
    
    check = path_guard.resolve(ctx.root, dir)
    if not check.valid:
        return fail(check.error, reason=check.reason.value)
    if not check.path.is_dir():
        return fail(f"Directory not found: {dir}", reason="not_found")
    
    needle = query.lower()
    results = []
    
    for current, dirnames, filenames in os.walk(check.path):
        dirnames[:] = sorted(d for d in dirnames if d not in SEARCH_SKIP_DIRS)
        for name in sorted(filenames):
            full_path = os.path.join(current, name)
            # Symlinks pointing outside the root are skipped
            if not path_guard.resolve(ctx.root, full_path).valid:
                continue
            rel = path_guard.relative_to_root(ctx.root, full_path)
            if needle in name.lower():
                results.append({"path": rel, "match": "filename"})
                continue
            try:
                with open(full_path, "r", encoding="utf-8") as fh:
                    if needle in fh.read().lower():
                        results.append({"path": rel, "match": "content"})
            except (UnicodeDecodeError, OSError):
                # Binary or unreadable
                continue
    
    return ok(
        query=query,
        results=results[:SEARCH_RESULT_LIMIT],
        count=len(results),
    )
