from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Dict, Iterable, Iterator, Protocol, Tuple, runtime_checkable

__all__ = ["Tool", "FunctionTool", "ToolRegistry"]


@runtime_checkable
class Tool(Protocol):
    name: str
    description: str

    async def invoke(self, tool_input: str) -> str:
        ...


class FunctionTool:
    """Adapter exposing a plain (sync or async) callable as a tool."""

    def __init__(
        self,
        name: str,
        func: Callable[[str], Any] | Callable[[str], Awaitable[Any]],
        *,
        description: str = "",
    ) -> None:
        if not name or not name.strip():
            raise ValueError("Tool name cannot be blank")
        self.name = name
        self.description = description or (inspect.getdoc(func) or "")
        self._func = func

    async def invoke(self, tool_input: str) -> str:
        result = self._func(tool_input)
        if inspect.isawaitable(result):
            result = await result
        return result if isinstance(result, str) else str(result)

    def __repr__(self) -> str:
        return f"FunctionTool(name={self.name!r})"


class ToolRegistry:
    """Name to tool lookup consulted by the step resolver.

    Lookups are exact: the name an agent requests must match the registered
    name character for character.
    """

    def __init__(self, tools: Iterable[Tool] | None = None) -> None:
        self._registry: Dict[str, Tool] = {}
        for tool in tools or ():
            self.register(tool)

    def register(self, tool: Tool, *, name: str | None = None, replace: bool = False) -> None:
        key = name or tool.name
        if not isinstance(key, str) or not key:
            raise ValueError("Tool name must be a non-empty string")
        if key in self._registry and not replace:
            raise ValueError(f"Tool '{key}' is already registered")
        self._registry[key] = tool

    def unregister(self, name: str) -> None:
        self._registry.pop(name, None)

    def clear(self) -> None:
        self._registry.clear()

    def resolve(self, name: str) -> Tool | None:
        return self._registry.get(name)

    get = resolve

    def list(self) -> list[str]:
        return sorted(self._registry)

    def items(self) -> Iterator[Tuple[str, Tool]]:
        yield from self._registry.items()

    def merged(self, other: "ToolRegistry") -> "ToolRegistry":
        """Return a new registry holding both tool sets; ``other`` wins on name clashes."""
        combined = ToolRegistry()
        combined._registry.update(self._registry)
        combined._registry.update(other._registry)
        return combined

    def __contains__(self, name: object) -> bool:
        return name in self._registry

    def __len__(self) -> int:
        return len(self._registry)

    def __repr__(self) -> str:
        return f"ToolRegistry(tools={self.list()!r})"
