"""Error taxonomy for the agent core.

Tool-level errors never cross the tool boundary: the registry converts
them into failed ToolResults. Model client errors live in model_client.
"""


class AgentError(Exception):
    """Base class for agent errors."""
    pass


class ValidationError(AgentError):
    """Bad path, disallowed command or malformed tool arguments."""
    pass


class UnknownToolError(ValidationError):
    """Tool identifier is not part of the closed tool catalog."""

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class ToolArgumentError(ValidationError):
    """Tool arguments failed schema validation."""

    def __init__(self, tool: str, message: str):
        super().__init__(f"Invalid arguments for {tool}: {message}")
        self.tool = tool


class ToolExecutionError(AgentError):
    """Subprocess, timeout or I/O failure inside a tool body."""
    pass


class StateError(AgentError):
    """Illegal mutation of the execution state."""
    pass
