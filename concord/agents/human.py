"""
Human-backed participants.

A human takes part in a run through a ``HumanInterface``: the intervention
gate asks it for input at checkpoints, and ``HumanPolicy`` lets a human act
as an ordinary agent inside an execution plan.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Protocol, Sequence, runtime_checkable

from ..core.exceptions import PolicyError
from ..core.logging import get_logger
from ..schemas.agents import AgentDecision, AgentFinish, StepRecord
from .base import PolicyKind

__all__ = [
    "CallbackHumanInterface",
    "HumanInterface",
    "HumanPolicy",
    "InteractionContext",
    "QueueHumanInterface",
]

logger = get_logger(name=__name__)


@dataclass(slots=True)
class InteractionContext:
    """Signals presented to a human and matched by gate conditions."""
    input: str
    output: str | None = None
    error: str | None = None
    additional: dict[str, str] = field(default_factory=dict)

    def with_additional(self, key: str, value: Any) -> "InteractionContext":
        self.additional[key] = str(value)
        return self

    def to_map(self) -> dict[str, str]:
        values = {"input": self.input}
        if self.output is not None:
            values["output"] = self.output
        if self.error is not None:
            values["error"] = self.error
        values.update(self.additional)
        return values


@runtime_checkable
class HumanInterface(Protocol):
    async def request_input(self, prompt: str, context: InteractionContext) -> str:
        ...


class CallbackHumanInterface:
    """Delegates to a caller-supplied function, sync or async."""

    def __init__(self, callback: Callable[[str, InteractionContext], str | Awaitable[str]]) -> None:
        self._callback = callback

    async def request_input(self, prompt: str, context: InteractionContext) -> str:
        response = self._callback(prompt, context)
        if inspect.isawaitable(response):
            response = await response
        return response


class QueueHumanInterface:
    """Interface fed from an asyncio queue; responses are consumed in order.

    Every request is recorded in ``prompts`` so callers can inspect what the
    human was asked.
    """

    def __init__(self, responses: Sequence[str] | None = None) -> None:
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self.prompts: list[tuple[str, InteractionContext]] = []
        for response in responses or ():
            self._queue.put_nowait(response)

    def submit(self, response: str) -> None:
        self._queue.put_nowait(response)

    async def request_input(self, prompt: str, context: InteractionContext) -> str:
        self.prompts.append((prompt, context))
        return await self._queue.get()


class HumanPolicy:
    """Agent policy answered by a human instead of a model."""

    kind = PolicyKind.HUMAN

    def __init__(self, interface: HumanInterface, *, prompt: str = "Please provide your input:") -> None:
        self._interface = interface
        self._prompt = prompt

    async def plan(self, history: Sequence[StepRecord], inputs: Mapping[str, str]) -> AgentDecision:
        context = InteractionContext(input=inputs.get("input", ""))
        previous = inputs.get("previous_agent_output")
        if previous is not None:
            context.output = previous
        for record in history[-3:]:
            context.with_additional(f"observation:{record.action.tool_name}", record.observation)
        try:
            response = await self._interface.request_input(self._prompt, context)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("human_policy_input_failed", error=str(exc))
            raise PolicyError(f"Human input failed: {exc}") from exc
        return AgentFinish(output=response)
