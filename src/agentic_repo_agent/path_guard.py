"""Path confinement for every filesystem-touching tool.

resolve() never raises. Callers get a PathCheck back and turn a rejection
into a failed ToolResult.
"""

import logging
import os
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


class PathRejection(str, Enum):
    NULL_BYTE = "null_byte"
    TRAVERSAL = "traversal"
    PATTERN = "pattern"
    INVALID = "invalid"


# Patterns that only matter when the resolved path also escapes the root.
SUSPICIOUS_PATTERNS = [
    re.compile(r"\.\.[/\\]"),   # parent traversal
    re.compile(r"^[/\\]"),      # absolute path
    re.compile(r"^~"),          # home directory syntax
    re.compile(r"\$\{"),        # variable expansion
    re.compile(r"\$\("),        # command substitution
]


@dataclass(frozen=True)
class PathCheck:
    """Outcome of a confinement check."""
    valid: bool
    path: Optional[Path] = None
    reason: Optional[PathRejection] = None
    error: Optional[str] = None


def _is_within(root: str, candidate: str) -> bool:
    if candidate == root:
        return True
    prefix = root if root.endswith(os.sep) else root + os.sep
    return candidate.startswith(prefix)


def _reject(reason: PathRejection, error: str, input_path) -> PathCheck:
    logger.warning("Path rejected (%s): %r", reason.value, input_path)
    return PathCheck(valid=False, reason=reason, error=error)


def resolve(root: Union[str, Path], input_path) -> PathCheck:
    """
    Resolve input_path against root and confine the result to root.
    
    The result must equal root or sit strictly below root at a path
    separator boundary, so "/proj-evil" never matches "/proj". Symlinks are
    resolved on both sides; non-existent targets are still validated.
    
    Args:
        root: Project root directory
        input_path: Relative (or absolute) path supplied by the model
    
    Returns:
        PathCheck with the resolved absolute path, or a typed rejection
    """
    if not isinstance(input_path, (str, Path)):
        return _reject(PathRejection.INVALID, f"Path must be a string, got {type(input_path).__name__}", input_path)
    
    raw = str(input_path)
    if "\0" in raw:
        return _reject(PathRejection.NULL_BYTE, "Path contains null bytes (security violation)", raw)
    
    root_real = os.path.realpath(str(root))
    candidate = os.path.realpath(os.path.join(root_real, raw))
    
    if _is_within(root_real, candidate):
        return PathCheck(valid=True, path=Path(candidate))
    
    for pattern in SUSPICIOUS_PATTERNS:
        if pattern.search(raw):
            return _reject(PathRejection.PATTERN, f"Suspicious path pattern detected: {raw}", raw)
    
    return _reject(PathRejection.TRAVERSAL, f"Path escapes project root: {raw}", raw)


def relative_to_root(root: Union[str, Path], path: Union[str, Path]) -> str:
    """Relative display form of an already-validated path ("." for the root)."""
    rel = os.path.relpath(str(path), os.path.realpath(str(root)))
    return "." if rel == os.curdir else rel
