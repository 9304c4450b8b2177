from .base import AgentPolicy, CallablePolicy, PolicyKind, act, finish
from .human import (
    CallbackHumanInterface,
    HumanInterface,
    HumanPolicy,
    InteractionContext,
    QueueHumanInterface,
)

__all__ = [
    "AgentPolicy",
    "CallablePolicy",
    "CallbackHumanInterface",
    "HumanInterface",
    "HumanPolicy",
    "InteractionContext",
    "PolicyKind",
    "QueueHumanInterface",
    "act",
    "finish",
]
