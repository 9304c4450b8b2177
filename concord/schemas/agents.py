from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field


class ActionRequest(BaseModel):
    """A single tool invocation requested by an agent policy."""

    model_config = ConfigDict(frozen=True)

    tool_name: str = Field(..., min_length=1)
    tool_input: str = Field(default="")
    log: str = Field(default="", description="Free-form reasoning attached by the policy.")


class StepRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: ActionRequest
    observation: str


class AgentFinish(BaseModel):
    model_config = ConfigDict(frozen=True)

    output: str


class AgentAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    requests: list[ActionRequest] = Field(..., min_length=1)


AgentDecision = Union[AgentFinish, AgentAction]


class AgentResult(BaseModel):
    """Outcome of one resolver run. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    agent_id: str
    output: str = ""
    success: bool = True
    error: str | None = None
    elapsed_ms: float = Field(default=0.0, ge=0.0)
    timed_out: bool = False
    iterations: int = Field(default=0, ge=0)


class TeamResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    results: list[AgentResult] = Field(default_factory=list)
    success: bool = True
    final_output: str = ""
    elapsed_ms: float = Field(default=0.0, ge=0.0)

    def get(self, agent_id: str) -> AgentResult | None:
        for result in self.results:
            if result.agent_id == agent_id:
                return result
        return None

    @property
    def agent_ids(self) -> list[str]:
        return [result.agent_id for result in self.results]


class ContextEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    sequence: int = Field(ge=0)
    source: str = Field(..., min_length=1)
    content: str
    kind: str = Field(default="message")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ThinkingEventType(str, Enum):
    """Types of progress events streamed while an agent resolves."""
    PLANNING = "agent_planning"
    TOOL_PROGRESS = "agent_tool_progress"
    OBSERVATION = "agent_observation"
    FINISHED = "agent_finished"


class ThinkingEvent(BaseModel):
    event_type: ThinkingEventType
    agent: str
    thought: str
    step_index: int | None = Field(default=None)
    metadata: dict[str, Any] = Field(default_factory=dict)


__all__ = [
    "ActionRequest",
    "AgentAction",
    "AgentDecision",
    "AgentFinish",
    "AgentResult",
    "ContextEntry",
    "StepRecord",
    "TeamResult",
    "ThinkingEvent",
    "ThinkingEventType",
]
