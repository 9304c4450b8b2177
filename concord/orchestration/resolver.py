"""
Step Resolver

Drives a single agent policy through a bounded plan -> act -> observe loop
until the policy finishes or the iteration bound is hit. Tool calls made on
behalf of one agent run one at a time, in request order; parallelism across
agents belongs to the scheduler.
"""

from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, Mapping

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..agents.base import AgentPolicy
from ..core.config import ResolverSettings
from ..core.exceptions import IterationLimitExceeded, PolicyError, ToolExecutionError, ToolNotFoundError
from ..core.logging import get_logger
from ..core.metrics import record_tool_invocation
from ..schemas.agents import (
    ActionRequest,
    AgentAction,
    AgentFinish,
    AgentResult,
    StepRecord,
    ThinkingEvent,
    ThinkingEventType,
)
from ..tools.registry import Tool, ToolRegistry
from .context import SharedContext

__all__ = ["StepResolver", "ThinkingEmitter"]

logger = get_logger(name=__name__)

ThinkingEmitter = Callable[[ThinkingEvent], Awaitable[None]]


class StepResolver:
    def __init__(
        self,
        *,
        max_iterations: int,
        tool_retry_attempts: int = 1,
        tool_retry_backoff_seconds: float = 0.0,
        tool_retry_max_backoff_seconds: float = 5.0,
        fail_on_tool_error: bool = False,
        thinking_emitter: ThinkingEmitter | None = None,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be a positive integer")
        if tool_retry_attempts < 1:
            raise ValueError("tool_retry_attempts must be at least 1")
        self.max_iterations = max_iterations
        self.tool_retry_attempts = tool_retry_attempts
        self.tool_retry_backoff_seconds = tool_retry_backoff_seconds
        self.tool_retry_max_backoff_seconds = tool_retry_max_backoff_seconds
        self.fail_on_tool_error = fail_on_tool_error
        self.thinking_emitter = thinking_emitter

    @classmethod
    def from_settings(
        cls,
        settings: ResolverSettings,
        *,
        thinking_emitter: ThinkingEmitter | None = None,
    ) -> "StepResolver":
        return cls(
            max_iterations=settings.max_iterations,
            tool_retry_attempts=settings.tool_retry_attempts,
            tool_retry_backoff_seconds=settings.tool_retry_backoff_seconds,
            tool_retry_max_backoff_seconds=settings.tool_retry_max_backoff_seconds,
            fail_on_tool_error=settings.fail_on_tool_error,
            thinking_emitter=thinking_emitter,
        )

    async def _emit_thinking(
        self,
        agent_id: str,
        thought: str,
        event_type: ThinkingEventType,
        step_index: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        if self.thinking_emitter is None:
            return
        event = ThinkingEvent(
            event_type=event_type,
            agent=agent_id,
            thought=thought,
            step_index=step_index,
            metadata=metadata or {},
        )
        try:
            await self.thinking_emitter(event)
        except Exception as exc:
            logger.warning(
                "resolver_thinking_emit_failed",
                agent_id=agent_id,
                event_type=event_type.value,
                error=str(exc),
            )

    async def resolve(
        self,
        agent_id: str,
        policy: AgentPolicy,
        tools: ToolRegistry,
        inputs: Mapping[str, str],
        *,
        context: SharedContext | None = None,
    ) -> AgentResult:
        """Run ``policy`` to completion.

        Raises:
            PolicyError: the policy could not produce a decision.
            IterationLimitExceeded: ``max_iterations`` plan calls passed without a finish.
            ToolExecutionError: a tool failed and ``fail_on_tool_error`` is set.
        """
        start = time.perf_counter()
        history: list[StepRecord] = []
        effective_inputs = dict(inputs)
        if context is not None:
            summary = await context.summary()
            if summary:
                effective_inputs["coordination_context"] = summary

        iterations = 0
        while True:
            await self._emit_thinking(
                agent_id,
                f"Planning iteration {iterations + 1}",
                ThinkingEventType.PLANNING,
                step_index=iterations + 1,
            )
            decision = await self._plan(agent_id, policy, history, effective_inputs)

            if isinstance(decision, AgentFinish):
                elapsed_ms = (time.perf_counter() - start) * 1000
                await self._emit_thinking(
                    agent_id,
                    "Finished",
                    ThinkingEventType.FINISHED,
                    step_index=iterations + 1,
                    metadata={"elapsed_ms": elapsed_ms},
                )
                logger.info(
                    "resolver_finished",
                    agent_id=agent_id,
                    iterations=iterations + 1,
                    elapsed_ms=round(elapsed_ms, 2),
                )
                return AgentResult(
                    agent_id=agent_id,
                    output=decision.output,
                    success=True,
                    elapsed_ms=elapsed_ms,
                    iterations=iterations + 1,
                )

            for request in decision.requests:
                observation = await self._observe(agent_id, request, tools, step_index=iterations + 1)
                history.append(StepRecord(action=request, observation=observation))

            iterations += 1
            if iterations >= self.max_iterations:
                logger.warning(
                    "resolver_iteration_limit",
                    agent_id=agent_id,
                    max_iterations=self.max_iterations,
                    history_length=len(history),
                )
                raise IterationLimitExceeded(agent_id, self.max_iterations)

    async def _plan(
        self,
        agent_id: str,
        policy: AgentPolicy,
        history: list[StepRecord],
        inputs: Mapping[str, str],
    ) -> AgentFinish | AgentAction:
        try:
            decision = await policy.plan(tuple(history), inputs)
        except PolicyError:
            logger.warning("resolver_policy_failed", agent_id=agent_id, history_length=len(history))
            raise
        except Exception as exc:
            logger.warning("resolver_policy_failed", agent_id=agent_id, error=str(exc))
            raise PolicyError(f"Agent '{agent_id}' policy failed: {exc}") from exc
        if not isinstance(decision, (AgentFinish, AgentAction)):
            raise PolicyError(f"Agent '{agent_id}' policy returned an unsupported decision: {decision!r}")
        return decision

    async def _observe(
        self,
        agent_id: str,
        request: ActionRequest,
        tools: ToolRegistry,
        *,
        step_index: int,
    ) -> str:
        tool = tools.resolve(request.tool_name)
        if tool is None:
            missing = ToolNotFoundError(request.tool_name)
            logger.warning("resolver_tool_not_found", agent_id=agent_id, tool=request.tool_name)
            record_tool_invocation(agent=agent_id, tool=request.tool_name, outcome="not_found")
            return str(missing)

        await self._emit_thinking(
            agent_id,
            f"Invoking {request.tool_name}",
            ThinkingEventType.TOOL_PROGRESS,
            step_index=step_index,
            metadata={"tool": request.tool_name},
        )
        start = time.perf_counter()
        try:
            observation = await self._invoke_with_retry(tool, request)
        except Exception as exc:
            latency = time.perf_counter() - start
            record_tool_invocation(agent=agent_id, tool=request.tool_name, outcome="failure", latency=latency)
            failure = ToolExecutionError(request.tool_name, str(exc) or type(exc).__name__)
            logger.warning(
                "resolver_tool_failed",
                agent_id=agent_id,
                tool=request.tool_name,
                error=failure.reason,
                latency_ms=round(latency * 1000, 2),
            )
            if self.fail_on_tool_error:
                raise failure from exc
            return str(failure)

        latency = time.perf_counter() - start
        record_tool_invocation(agent=agent_id, tool=request.tool_name, outcome="success", latency=latency)
        logger.debug(
            "resolver_tool_completed",
            agent_id=agent_id,
            tool=request.tool_name,
            latency_ms=round(latency * 1000, 2),
        )
        await self._emit_thinking(
            agent_id,
            observation,
            ThinkingEventType.OBSERVATION,
            step_index=step_index,
            metadata={"tool": request.tool_name},
        )
        return observation

    async def _invoke_with_retry(self, tool: Tool, request: ActionRequest) -> str:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.tool_retry_attempts),
            wait=wait_exponential(
                multiplier=self.tool_retry_backoff_seconds,
                max=self.tool_retry_max_backoff_seconds,
            ),
            retry=retry_if_exception_type(Exception),
            reraise=True,
        ):
            with attempt:
                result = await tool.invoke(request.tool_input)
                return result if isinstance(result, str) else str(result)
        raise ToolExecutionError(request.tool_name, "no attempts were made")  # pragma: no cover
