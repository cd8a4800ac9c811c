"""Uniform tool result contract."""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class ToolResult:
    """Result of a single tool invocation.

    data["exitCode"], when present, is authoritative: a non-zero exit code
    marks the result as failed even if success was reported optimistically.
    """
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def exit_code(self) -> Optional[int]:
        if self.data is None:
            return None
        return self.data.get("exitCode")

    @property
    def failed(self) -> bool:
        if not self.success:
            return True
        code = self.exit_code
        return code is not None and code != 0

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "data": self.data, "error": self.error}


def ok(**data: Any) -> ToolResult:
    return ToolResult(success=True, data=data)


def fail(error: str, **data: Any) -> ToolResult:
    return ToolResult(success=False, error=error, data=data or None)
