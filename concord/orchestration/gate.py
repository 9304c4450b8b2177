"""
Human Intervention Gate

A small state machine wrapped around a team run. At each enabled checkpoint
the gate first checks its termination conditions (a match ends the run with
the current signal unchanged), then its intervention conditions (a match
pauses the run until a human answers or the input timeout expires).
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from ..agents.human import HumanInterface, InteractionContext
from ..core.config import GateSettings
from ..core.exceptions import EmptyHumanResponse, InputTimeout, InvalidGateConfig, MaxInterventionsExceeded
from ..core.logging import get_logger
from ..core.metrics import record_gate_transition, record_human_intervention
from .conditions import InterventionCondition, TerminationCondition
from .context import SharedContext

__all__ = [
    "CheckpointPhase",
    "CheckpointResult",
    "GateConfig",
    "GateState",
    "HumanInterventionGate",
]

logger = get_logger(name=__name__)


class GateState(str, Enum):
    IDLE = "idle"
    AWAITING_INPUT = "awaiting_input"
    TERMINATED = "terminated"


class CheckpointPhase(str, Enum):
    BEFORE = "before_team"
    AFTER = "after_team"
    ON_ERROR = "team_error"


_SIGNAL_FIELD = {
    CheckpointPhase.BEFORE: "input",
    CheckpointPhase.AFTER: "output",
    CheckpointPhase.ON_ERROR: "error",
}

_PROMPTS = {
    CheckpointPhase.BEFORE: "Pre-team intervention:",
    CheckpointPhase.AFTER: "Post-team intervention:",
    CheckpointPhase.ON_ERROR: "Team execution failed. How should we proceed?",
}


@dataclass(slots=True)
class GateConfig:
    intervention_conditions: list[InterventionCondition] = field(default_factory=list)
    termination_conditions: list[TerminationCondition] = field(default_factory=list)
    max_interventions: int = 10
    input_timeout: float = 300.0
    before: bool = True
    after: bool = False
    on_error: bool = True
    default_prompt: str = "Please provide your input:"
    allow_empty_response: bool = False

    @classmethod
    def from_settings(
        cls,
        settings: GateSettings,
        *,
        intervention_conditions: Sequence[InterventionCondition] = (),
        termination_conditions: Sequence[TerminationCondition] = (),
        before: bool = True,
        after: bool = False,
        on_error: bool = True,
    ) -> "GateConfig":
        return cls(
            intervention_conditions=list(intervention_conditions),
            termination_conditions=list(termination_conditions),
            max_interventions=settings.max_interventions,
            input_timeout=settings.input_timeout,
            before=before,
            after=after,
            on_error=on_error,
            default_prompt=settings.default_prompt,
            allow_empty_response=settings.allow_empty_response,
        )

    def validate(self) -> "GateConfig":
        if not self.intervention_conditions:
            raise InvalidGateConfig("Gate must have at least one intervention condition")
        if self.max_interventions < 0:
            raise InvalidGateConfig("max_interventions cannot be negative")
        if self.input_timeout <= 0:
            raise InvalidGateConfig("input_timeout must be positive")
        for position, condition in enumerate(self.intervention_conditions):
            condition.validate(position)
        for position, condition in enumerate(self.termination_conditions):
            condition.validate(position)
        return self

    def is_enabled(self, phase: CheckpointPhase) -> bool:
        if phase is CheckpointPhase.BEFORE:
            return self.before
        if phase is CheckpointPhase.AFTER:
            return self.after
        return self.on_error


@dataclass(slots=True)
class CheckpointResult:
    phase: CheckpointPhase
    state: GateState
    signal: str
    terminated: bool = False
    human_input: str | None = None
    condition: str | None = None

    @property
    def intervened(self) -> bool:
        return self.human_input is not None


class HumanInterventionGate:
    def __init__(self, config: GateConfig, interface: HumanInterface) -> None:
        self._config = config.validate()
        self._interface = interface
        self._state = GateState.IDLE
        self._interventions = 0

    @property
    def config(self) -> GateConfig:
        return self._config

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def interventions(self) -> int:
        return self._interventions

    def reset(self) -> None:
        self._state = GateState.IDLE
        self._interventions = 0

    def _transition(self, phase: CheckpointPhase, state: GateState) -> None:
        logger.info("gate_transition", phase=phase.value, source=self._state.value, target=state.value)
        self._state = state
        record_gate_transition(phase=phase.value, state=state.value)

    async def checkpoint(
        self,
        phase: CheckpointPhase,
        context: InteractionContext,
        *,
        shared_context: SharedContext | None = None,
        prompt: str | None = None,
    ) -> CheckpointResult:
        signals = context.to_map()
        signal = signals.get(_SIGNAL_FIELD[phase], context.input)

        if self._state is GateState.TERMINATED:
            return CheckpointResult(phase=phase, state=self._state, signal=signal, terminated=True)

        for condition in self._config.termination_conditions:
            if condition.matches(signals):
                self._transition(phase, GateState.TERMINATED)
                return CheckpointResult(
                    phase=phase,
                    state=self._state,
                    signal=signal,
                    terminated=True,
                    condition=condition.description or condition.pattern,
                )

        matched = next(
            (condition for condition in self._config.intervention_conditions if condition.matches(signals)),
            None,
        )
        if matched is None:
            return CheckpointResult(phase=phase, state=self._state, signal=signal)

        self._transition(phase, GateState.AWAITING_INPUT)
        self._interventions += 1
        if self._interventions > self._config.max_interventions:
            record_human_intervention(phase=phase.value, outcome="limit_exceeded")
            self._transition(phase, GateState.TERMINATED)
            raise MaxInterventionsExceeded(self._config.max_interventions)

        try:
            response = await self._await_input(
                phase,
                context,
                prompt or f"{_PROMPTS[phase]} {self._config.default_prompt}",
            )
        except (InputTimeout, EmptyHumanResponse, asyncio.CancelledError):
            self._transition(phase, GateState.TERMINATED)
            raise
        if shared_context is not None:
            await shared_context.append("human", response, kind="human_input")
        self._transition(phase, GateState.IDLE)
        return CheckpointResult(
            phase=phase,
            state=self._state,
            signal=response,
            human_input=response,
            condition=matched.description or matched.pattern,
        )

    async def _await_input(self, phase: CheckpointPhase, context: InteractionContext, prompt: str) -> str:
        start = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self._interface.request_input(prompt, context),
                timeout=self._config.input_timeout,
            )
        except asyncio.TimeoutError as exc:
            record_human_intervention(phase=phase.value, outcome="timeout")
            logger.warning("gate_input_timeout", phase=phase.value, timeout=self._config.input_timeout)
            raise InputTimeout(self._config.input_timeout, phase=phase.value) from exc

        response = response.strip()
        if not response and not self._config.allow_empty_response:
            record_human_intervention(phase=phase.value, outcome="empty")
            raise EmptyHumanResponse(f"Empty human response at {phase.value} is not allowed")

        record_human_intervention(phase=phase.value, outcome="received")
        logger.info(
            "gate_input_received",
            phase=phase.value,
            interventions=self._interventions,
            wait_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response
