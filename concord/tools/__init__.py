from .exceptions import ToolError, ToolExecutionError, ToolNotFoundError
from .registry import FunctionTool, Tool, ToolRegistry

__all__ = [
    "FunctionTool",
    "Tool",
    "ToolError",
    "ToolExecutionError",
    "ToolNotFoundError",
    "ToolRegistry",
]
