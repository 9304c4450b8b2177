from __future__ import annotations


class ToolError(RuntimeError):
    """Base class for tooling-related failures."""


class ToolExecutionError(ToolError):
    """Raised when a tool invocation fails after retries or due to adapter errors."""

    def __init__(self, tool_name: str, reason: str) -> None:
        super().__init__(f"Tool '{tool_name}' failed: {reason}")
        self.tool_name = tool_name
        self.reason = reason


class ToolNotFoundError(ToolError):
    """Raised when a requested tool cannot be resolved."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Tool '{tool_name}' not found")
        self.tool_name = tool_name
