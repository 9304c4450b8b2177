"""
Execution plans.

A plan is an ordered list of steps. Each step names the agents it runs,
whether they run concurrently, and the indices of earlier steps it depends
on. Because dependencies may only point backwards, index order is already a
valid topological order.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Sequence

from ..core.exceptions import InvalidPlan
from ..core.logging import get_logger

__all__ = [
    "ExecutionPlan",
    "ExecutionStep",
    "concurrent_plan",
    "fan_in",
    "fan_out",
    "multi_layer_plan",
    "nested_team_pattern",
    "pipeline_with_concurrent",
    "sequential_plan",
    "validate_plan",
]

logger = get_logger(name=__name__)


@dataclass(frozen=True, slots=True)
class ExecutionStep:
    agent_ids: tuple[str, ...]
    concurrent: bool = False
    dependencies: frozenset[int] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        object.__setattr__(self, "agent_ids", tuple(self.agent_ids))
        object.__setattr__(self, "concurrent", bool(self.concurrent))
        object.__setattr__(self, "dependencies", frozenset(self.dependencies))


@dataclass(frozen=True, slots=True)
class ExecutionPlan:
    steps: tuple[ExecutionStep, ...]
    pattern: str = "hybrid"

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))

    def __iter__(self) -> Iterator[ExecutionStep]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    def __getitem__(self, index: int) -> ExecutionStep:
        return self.steps[index]

    @property
    def agent_ids(self) -> list[str]:
        return [agent_id for step in self.steps for agent_id in step.agent_ids]

    def describe(self) -> list[dict[str, object]]:
        return [
            {
                "index": index,
                "agents": list(step.agent_ids),
                "concurrent": step.concurrent,
                "dependencies": sorted(step.dependencies),
            }
            for index, step in enumerate(self.steps)
        ]


def validate_plan(plan: ExecutionPlan, agent_ids: Iterable[str] | None = None) -> ExecutionPlan:
    """Check the structural invariants of ``plan`` and return it unchanged.

    When ``agent_ids`` (the team roster) is given, every planned agent must be
    on the roster and every roster member must appear in some step.
    """
    if not plan.steps:
        raise InvalidPlan("Execution plan must contain at least one step")

    for index, step in enumerate(plan.steps):
        if not step.agent_ids:
            raise InvalidPlan(f"Step {index} does not name any agent")
        for dependency in sorted(step.dependencies):
            if dependency < 0 or dependency >= index:
                raise InvalidPlan(
                    f"Invalid dependency: step {index} cannot depend on step {dependency} (must be earlier)"
                )

    counts = Counter(plan.agent_ids)
    duplicates = sorted(agent_id for agent_id, count in counts.items() if count > 1)
    if duplicates:
        raise InvalidPlan(f"Agent ids appear in more than one step: {', '.join(duplicates)}")

    if agent_ids is not None:
        roster = list(agent_ids)
        roster_counts = Counter(roster)
        repeated = sorted(agent_id for agent_id, count in roster_counts.items() if count > 1)
        if repeated:
            raise InvalidPlan(f"Duplicate agent id: {', '.join(repeated)}")
        unknown = [agent_id for agent_id in counts if agent_id not in roster_counts]
        if unknown:
            raise InvalidPlan(f"Unknown agent id in execution step: {unknown[0]}")
        uncovered = [agent_id for agent_id in roster if agent_id not in counts]
        if uncovered:
            raise InvalidPlan(f"Agent {uncovered[0]} is not included in any execution step")

    logger.debug("execution_plan_validated", steps=len(plan.steps), agents=len(counts))
    return plan


def sequential_plan(agent_ids: Sequence[str]) -> ExecutionPlan:
    """One sequential step: each agent receives the previous agent's output."""
    return ExecutionPlan([ExecutionStep(agent_ids, concurrent=False)], pattern="sequential")


def concurrent_plan(agent_ids: Sequence[str]) -> ExecutionPlan:
    return ExecutionPlan([ExecutionStep(agent_ids, concurrent=True)], pattern="concurrent")


def pipeline_with_concurrent(first: str, left: str, right: str, last: str) -> ExecutionPlan:
    """``first`` alone, then ``left`` and ``right`` together, then ``last`` over both."""
    return ExecutionPlan(
        [
            ExecutionStep([first]),
            ExecutionStep([left, right], concurrent=True, dependencies=[0]),
            ExecutionStep([last], dependencies=[1]),
        ],
        pattern="pipeline_with_concurrent",
    )


def fan_out(source: str, targets: Sequence[str]) -> ExecutionPlan:
    return ExecutionPlan(
        [
            ExecutionStep([source]),
            ExecutionStep(targets, concurrent=True, dependencies=[0]),
        ],
        pattern="fan_out",
    )


def fan_in(sources: Sequence[str], target: str) -> ExecutionPlan:
    return ExecutionPlan(
        [
            ExecutionStep(sources, concurrent=True),
            ExecutionStep([target], dependencies=[0]),
        ],
        pattern="fan_in",
    )


def nested_team_pattern(team_a: str, team_b: str, team_c: str, leader: str) -> ExecutionPlan:
    """Same shape as ``pipeline_with_concurrent`` where each member is itself a team."""
    plan = pipeline_with_concurrent(team_a, team_b, team_c, leader)
    return ExecutionPlan(plan.steps, pattern="nested_team")


def multi_layer_plan(
    first_layer: Sequence[str],
    second_layer: Sequence[str],
    coordinator: str,
) -> ExecutionPlan:
    return ExecutionPlan(
        [
            ExecutionStep(first_layer, concurrent=True),
            ExecutionStep(second_layer, concurrent=True, dependencies=[0]),
            ExecutionStep([coordinator], dependencies=[1]),
        ],
        pattern="multi_layer",
    )
