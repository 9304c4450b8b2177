"""
Orchestration Package

This package contains the core orchestration components of the engine:
- Step resolution (plan -> act -> observe loop for one agent)
- Execution plans and the graph scheduler
- Shared coordination context
- Human intervention gate and conditions
- Team and hybrid (human-gated) orchestrators
"""

from .conditions import InterventionCondition, TerminationCondition, TriggerKind, similarity
from .context import ContextStore, InMemoryContextStore, SharedContext
from .gate import CheckpointPhase, CheckpointResult, GateConfig, GateState, HumanInterventionGate
from .hybrid import GateOutcome, HybridBuilder, HybridOrchestrator, HybridPolicy
from .plan import (
    ExecutionPlan,
    ExecutionStep,
    concurrent_plan,
    fan_in,
    fan_out,
    multi_layer_plan,
    nested_team_pattern,
    pipeline_with_concurrent,
    sequential_plan,
    validate_plan,
)
from .resolver import StepResolver, ThinkingEmitter
from .scheduler import ChildAgent, ExecutionGraphScheduler, aggregate_outputs
from .team import TeamBuilder, TeamOrchestrator, TeamPolicy, TeamTool, format_team_output

__all__ = [
    "CheckpointPhase",
    "CheckpointResult",
    "ChildAgent",
    "ContextStore",
    "ExecutionGraphScheduler",
    "ExecutionPlan",
    "ExecutionStep",
    "GateConfig",
    "GateOutcome",
    "GateState",
    "HumanInterventionGate",
    "HybridBuilder",
    "HybridOrchestrator",
    "HybridPolicy",
    "InMemoryContextStore",
    "InterventionCondition",
    "SharedContext",
    "StepResolver",
    "TeamBuilder",
    "TeamOrchestrator",
    "TeamPolicy",
    "TeamTool",
    "TerminationCondition",
    "ThinkingEmitter",
    "TriggerKind",
    "aggregate_outputs",
    "concurrent_plan",
    "fan_in",
    "fan_out",
    "format_team_output",
    "multi_layer_plan",
    "nested_team_pattern",
    "pipeline_with_concurrent",
    "sequential_plan",
    "similarity",
    "validate_plan",
]
