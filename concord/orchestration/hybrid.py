"""
Hybrid Orchestrator

Wraps a team run with a human intervention gate. The gate is consulted at
up to three checkpoints: before the team starts, after it finishes, and
when it fails fatally.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field

from ..agents.base import PolicyKind
from ..agents.human import HumanInterface, InteractionContext
from ..core.config import Settings, get_settings
from ..core.exceptions import OrchestrationError, PolicyError, TeamTimeout
from ..core.logging import get_logger
from ..schemas.agents import AgentDecision, AgentFinish, StepRecord, TeamResult
from .conditions import InterventionCondition, TerminationCondition
from .context import SharedContext
from .gate import CheckpointPhase, CheckpointResult, GateConfig, GateState, HumanInterventionGate
from .team import TeamOrchestrator

__all__ = ["GateOutcome", "HybridBuilder", "HybridOrchestrator", "HybridPolicy"]

logger = get_logger(name=__name__)

_FROM_SETTINGS: Any = object()


class GateOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    output: str
    state: GateState
    interventions: int = 0
    terminated: bool = False
    team_result: TeamResult | None = None
    human_inputs: list[str] = Field(default_factory=list)


class HybridOrchestrator:
    def __init__(
        self,
        team: TeamOrchestrator,
        gate: HumanInterventionGate,
        *,
        settings: Settings | None = None,
        run_timeout: float | None = _FROM_SETTINGS,
    ) -> None:
        self._team = team
        self._gate = gate
        if run_timeout is _FROM_SETTINGS:
            run_timeout = (settings or get_settings()).team.global_timeout
        self._run_timeout = run_timeout

    @property
    def team(self) -> TeamOrchestrator:
        return self._team

    @property
    def gate(self) -> HumanInterventionGate:
        return self._gate

    @property
    def run_timeout(self) -> float | None:
        return self._run_timeout

    async def invoke(self, inputs: Mapping[str, str]) -> GateOutcome:
        """Run the team between the enabled checkpoints.

        Raises:
            InputTimeout: the human did not answer in time.
            TeamTimeout: the whole run, human waits included, exceeded ``run_timeout``.
            MaxInterventionsExceeded: the gate paused more often than allowed.
            OrchestrationError: the team failed and no checkpoint handled it.
        """
        if self._run_timeout is None:
            return await self._invoke(inputs)
        try:
            return await asyncio.wait_for(self._invoke(inputs), timeout=self._run_timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("hybrid_run_timeout", team=self._team.name, timeout=self._run_timeout)
            raise TeamTimeout(self._run_timeout) from exc

    async def _invoke(self, inputs: Mapping[str, str]) -> GateOutcome:
        self._gate.reset()
        shared_context = self._team.new_context()
        human_inputs: list[str] = []
        user_input = inputs.get("input", "")
        team_inputs = dict(inputs)
        config = self._gate.config

        if config.is_enabled(CheckpointPhase.BEFORE):
            context = (
                InteractionContext(input=user_input)
                .with_additional("phase", CheckpointPhase.BEFORE.value)
                .with_additional("team_agents", len(self._team.agent_ids))
            )
            checkpoint = await self._checkpoint(CheckpointPhase.BEFORE, context, shared_context, human_inputs)
            if checkpoint.terminated:
                return self._outcome(user_input, human_inputs, terminated=True)
            if checkpoint.human_input is not None:
                team_inputs["human_pre_team_input"] = checkpoint.human_input

        try:
            team_result = await self._team.run(team_inputs, shared_context)
        except OrchestrationError as exc:
            if not config.is_enabled(CheckpointPhase.ON_ERROR):
                raise
            error_text = str(exc)
            context = (
                InteractionContext(input=user_input, error=error_text)
                .with_additional("phase", CheckpointPhase.ON_ERROR.value)
            )
            checkpoint = await self._checkpoint(CheckpointPhase.ON_ERROR, context, shared_context, human_inputs)
            if checkpoint.terminated:
                return self._outcome(error_text, human_inputs, terminated=True)
            if checkpoint.human_input is not None:
                logger.info("hybrid_error_handled_by_human", error_type=type(exc).__name__)
                return self._outcome(checkpoint.human_input, human_inputs)
            raise

        output = team_result.final_output
        if config.is_enabled(CheckpointPhase.AFTER):
            context = (
                InteractionContext(input=user_input, output=output)
                .with_additional("phase", CheckpointPhase.AFTER.value)
                .with_additional("team_success", str(team_result.success).lower())
            )
            checkpoint = await self._checkpoint(CheckpointPhase.AFTER, context, shared_context, human_inputs)
            if checkpoint.terminated:
                return self._outcome(output, human_inputs, terminated=True, team_result=team_result)
            if checkpoint.human_input is not None:
                output = checkpoint.human_input

        return self._outcome(output, human_inputs, team_result=team_result)

    async def _checkpoint(
        self,
        phase: CheckpointPhase,
        context: InteractionContext,
        shared_context: SharedContext,
        human_inputs: list[str],
    ) -> CheckpointResult:
        checkpoint = await self._gate.checkpoint(phase, context, shared_context=shared_context)
        if checkpoint.human_input is not None:
            human_inputs.append(checkpoint.human_input)
        if checkpoint.terminated:
            logger.info("hybrid_terminated", phase=phase.value, condition=checkpoint.condition)
        return checkpoint

    def _outcome(
        self,
        output: str,
        human_inputs: list[str],
        *,
        terminated: bool = False,
        team_result: TeamResult | None = None,
    ) -> GateOutcome:
        return GateOutcome(
            output=output,
            state=self._gate.state,
            interventions=self._gate.interventions,
            terminated=terminated,
            team_result=team_result,
            human_inputs=list(human_inputs),
        )


class HybridPolicy:
    """Lets a gated team take part in a larger plan as a single agent."""

    kind = PolicyKind.TEAM

    def __init__(self, hybrid: HybridOrchestrator) -> None:
        self.hybrid = hybrid

    async def plan(self, history: Sequence[StepRecord], inputs: Mapping[str, str]) -> AgentDecision:
        try:
            outcome = await self.hybrid.invoke(inputs)
        except OrchestrationError as exc:
            raise PolicyError(f"Hybrid team '{self.hybrid.team.name}' failed: {exc}") from exc
        return AgentFinish(output=outcome.output)


class HybridBuilder:
    def __init__(self, team: TeamOrchestrator, interface: HumanInterface, *, settings: Settings | None = None) -> None:
        self._team = team
        self._interface = interface
        self._settings = settings or get_settings()
        self._interventions: list[InterventionCondition] = []
        self._terminations: list[TerminationCondition] = []
        self._before = True
        self._after = False
        self._on_error = True
        self._max_interventions: int | None = None
        self._input_timeout: float | None = None
        self._run_timeout: float | None = _FROM_SETTINGS

    def intervene_when(self, *conditions: InterventionCondition) -> "HybridBuilder":
        self._interventions.extend(conditions)
        return self

    def terminate_when(self, *conditions: TerminationCondition) -> "HybridBuilder":
        self._terminations.extend(conditions)
        return self

    def checkpoints(
        self,
        *,
        before: bool | None = None,
        after: bool | None = None,
        on_error: bool | None = None,
    ) -> "HybridBuilder":
        if before is not None:
            self._before = before
        if after is not None:
            self._after = after
        if on_error is not None:
            self._on_error = on_error
        return self

    def max_interventions(self, limit: int) -> "HybridBuilder":
        self._max_interventions = limit
        return self

    def input_timeout(self, seconds: float) -> "HybridBuilder":
        self._input_timeout = seconds
        return self

    def run_timeout(self, seconds: float | None) -> "HybridBuilder":
        self._run_timeout = seconds
        return self

    def build(self) -> HybridOrchestrator:
        config = GateConfig.from_settings(
            self._settings.gate,
            intervention_conditions=self._interventions,
            termination_conditions=self._terminations,
            before=self._before,
            after=self._after,
            on_error=self._on_error,
        )
        if self._max_interventions is not None:
            config.max_interventions = self._max_interventions
        if self._input_timeout is not None:
            config.input_timeout = self._input_timeout
        return HybridOrchestrator(
            self._team,
            HumanInterventionGate(config, self._interface),
            settings=self._settings,
            run_timeout=self._run_timeout,
        )
