from .agents import (
    ActionRequest,
    AgentAction,
    AgentDecision,
    AgentFinish,
    AgentResult,
    ContextEntry,
    StepRecord,
    TeamResult,
    ThinkingEvent,
    ThinkingEventType,
)

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
