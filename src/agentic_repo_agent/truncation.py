"""Length caps for anything placed into LLM-facing context."""

from typing import Any, List, Tuple

from agentic_repo_agent.constants import CONTEXT_FIELD_LIMIT


def truncate_text(text: str, limit: int) -> Tuple[str, bool]:
    """
    Cap text at limit characters.
    
    Returns:
        (text, truncated) - truncated text carries a marker with the dropped size
    """
    if text is None:
        return "", False
    if len(text) <= limit:
        return text, False
    dropped = len(text) - limit
    return f"{text[:limit]}\n... [truncated {dropped} chars]", True


def cap_fields(value: Any, limit: int = CONTEXT_FIELD_LIMIT) -> Tuple[Any, List[str]]:
    """
    Recursively cap every string inside a JSON-like structure.
    
    Returns:
        (capped_value, truncated_keys) - dotted paths of truncated fields
    """
    truncated: List[str] = []
    
    def walk(node: Any, where: str) -> Any:
        if isinstance(node, str):
            text, was_cut = truncate_text(node, limit)
            if was_cut:
                truncated.append(where or "<value>")
            return text
        if isinstance(node, dict):
            return {k: walk(v, f"{where}.{k}" if where else str(k)) for k, v in node.items()}
        if isinstance(node, (list, tuple)):
            return [walk(v, f"{where}[{i}]") for i, v in enumerate(node)]
        return node
    
    return walk(value, ""), truncated
