from __future__ import annotations

import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Protocol, Sequence, runtime_checkable

from ..core.exceptions import PolicyError
from ..schemas.agents import ActionRequest, AgentAction, AgentDecision, AgentFinish, StepRecord

__all__ = [
    "AgentPolicy",
    "CallablePolicy",
    "PlanFunction",
    "PolicyKind",
    "finish",
    "act",
]


class PolicyKind(str, Enum):
    """Backend behind an agent policy, chosen when the team is composed."""
    MODEL = "model"
    TEAM = "team"
    HUMAN = "human"


@runtime_checkable
class AgentPolicy(Protocol):
    kind: PolicyKind

    async def plan(self, history: Sequence[StepRecord], inputs: Mapping[str, str]) -> AgentDecision:
        ...


PlanFunction = Callable[
    [Sequence[StepRecord], Mapping[str, str]],
    "AgentDecision | Awaitable[AgentDecision]",
]


class CallablePolicy:
    """Wraps an external decision function (typically a model-backed planner)."""

    kind = PolicyKind.MODEL

    def __init__(self, func: PlanFunction, *, name: str | None = None) -> None:
        self._func = func
        self.name = name or getattr(func, "__name__", "policy")

    async def plan(self, history: Sequence[StepRecord], inputs: Mapping[str, str]) -> AgentDecision:
        try:
            decision: Any = self._func(history, inputs)
            if inspect.isawaitable(decision):
                decision = await decision
        except PolicyError:
            raise
        except Exception as exc:
            raise PolicyError(f"Policy '{self.name}' failed: {exc}") from exc
        if not isinstance(decision, (AgentFinish, AgentAction)):
            raise PolicyError(
                f"Policy '{self.name}' returned {type(decision).__name__}; expected AgentFinish or AgentAction"
            )
        return decision

    def __repr__(self) -> str:
        return f"CallablePolicy(name={self.name!r})"


def finish(output: str) -> AgentFinish:
    return AgentFinish(output=output)


def act(*requests: tuple[str, str] | ActionRequest) -> AgentAction:
    """Build an AgentAction from ``(tool_name, tool_input)`` pairs or ready requests."""
    built = [
        request if isinstance(request, ActionRequest) else ActionRequest(tool_name=request[0], tool_input=request[1])
        for request in requests
    ]
    return AgentAction(requests=built)
