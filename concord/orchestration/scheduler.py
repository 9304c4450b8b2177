"""
Execution Graph Scheduler

Runs the steps of a validated execution plan in index order. Agents of a
concurrent step start together and are joined before the next step starts;
agents of a sequential step run in listed order with the previous agent's
output threaded into the next agent's inputs.
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass, field
from typing import Mapping, Sequence

from ..agents.base import AgentPolicy
from ..core.exceptions import ChildAgentFailed, OrchestrationError, TeamTimeout, ToolError
from ..core.logging import get_logger
from ..core.metrics import observe_agent_result
from ..schemas.agents import AgentResult, TeamResult
from ..tools.registry import ToolRegistry
from .context import SharedContext
from .plan import ExecutionPlan, ExecutionStep
from .resolver import StepResolver

__all__ = ["ChildAgent", "ExecutionGraphScheduler", "aggregate_outputs"]

logger = get_logger(name=__name__)


@dataclass(slots=True)
class ChildAgent:
    """One participant of a team: its policy, its tools and its failure semantics."""
    agent_id: str
    policy: AgentPolicy
    tools: ToolRegistry = field(default_factory=ToolRegistry)
    critical: bool = True
    timeout: float | None = None

    def __post_init__(self) -> None:
        if not self.agent_id or not self.agent_id.strip():
            raise ValueError("agent_id cannot be blank")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive")

    @property
    def kind(self) -> str:
        return self.policy.kind.value


def aggregate_outputs(results: Sequence[AgentResult]) -> str:
    blocks = []
    for result in results:
        if result.success:
            blocks.append(f"{result.agent_id}: {result.output}")
        else:
            blocks.append(f"{result.agent_id}: ERROR - {result.error or 'Unknown error'}")
    return "\n\n".join(blocks)


class ExecutionGraphScheduler:
    def __init__(self, resolver: StepResolver, *, default_agent_timeout: float | None = None) -> None:
        self._resolver = resolver
        self._default_agent_timeout = default_agent_timeout

    @property
    def resolver(self) -> StepResolver:
        return self._resolver

    async def run(
        self,
        plan: ExecutionPlan,
        agents: Mapping[str, ChildAgent],
        shared_context: SharedContext,
        inputs: Mapping[str, str],
        *,
        timeout: float | None = None,
    ) -> TeamResult:
        """Execute ``plan`` and aggregate every agent result in execution order.

        ``timeout`` bounds the whole run; when exceeded every running agent is
        cancelled and ``TeamTimeout`` is raised.
        """
        start = time.perf_counter()
        if timeout is None:
            results = await self._run_steps(plan, agents, shared_context, inputs)
        else:
            try:
                results = await asyncio.wait_for(
                    self._run_steps(plan, agents, shared_context, inputs),
                    timeout=timeout,
                )
            except asyncio.TimeoutError as exc:
                logger.warning("scheduler_global_timeout", timeout=timeout)
                raise TeamTimeout(timeout) from exc

        success = all(result.success for result in results if agents[result.agent_id].critical)
        return TeamResult(
            results=results,
            success=success,
            final_output=aggregate_outputs(results),
            elapsed_ms=(time.perf_counter() - start) * 1000,
        )

    async def _run_steps(
        self,
        plan: ExecutionPlan,
        agents: Mapping[str, ChildAgent],
        shared_context: SharedContext,
        inputs: Mapping[str, str],
    ) -> list[AgentResult]:
        results: list[AgentResult] = []
        step_outputs: dict[int, list[AgentResult]] = {}

        for index, step in enumerate(plan.steps):
            step_inputs = self._step_inputs(step, inputs, step_outputs)
            members = [agents[agent_id] for agent_id in step.agent_ids]
            logger.info(
                "scheduler_step_started",
                step_index=index,
                agents=list(step.agent_ids),
                concurrent=step.concurrent,
            )
            if step.concurrent:
                step_results = await self._run_concurrent(members, step_inputs, shared_context)
            else:
                step_results = await self._run_sequential(members, step_inputs, shared_context)

            for result in step_results:
                content = result.output if result.success else f"ERROR - {result.error}"
                await shared_context.append(result.agent_id, content, kind="agent_result")

            step_outputs[index] = step_results
            results.extend(step_results)
            logger.info(
                "scheduler_step_completed",
                step_index=index,
                succeeded=sum(1 for result in step_results if result.success),
                total=len(step_results),
            )
        return results

    @staticmethod
    def _step_inputs(
        step: ExecutionStep,
        inputs: Mapping[str, str],
        step_outputs: Mapping[int, list[AgentResult]],
    ) -> dict[str, str]:
        step_inputs = dict(inputs)
        for dependency in sorted(step.dependencies):
            payload = [
                {"agent_id": result.agent_id, "output": result.output}
                for result in step_outputs.get(dependency, [])
            ]
            step_inputs[f"step_{dependency}_outputs"] = json.dumps(payload)
        return step_inputs

    async def _run_sequential(
        self,
        members: Sequence[ChildAgent],
        inputs: Mapping[str, str],
        shared_context: SharedContext,
    ) -> list[AgentResult]:
        results: list[AgentResult] = []
        current = dict(inputs)
        for member in members:
            result = await self._run_agent(member, current, shared_context)
            current["previous_agent_output"] = result.output if result.success else f"Error: {result.error}"
            current["previous_agent_id"] = result.agent_id
            results.append(result)
        return results

    async def _run_concurrent(
        self,
        members: Sequence[ChildAgent],
        inputs: Mapping[str, str],
        shared_context: SharedContext,
    ) -> list[AgentResult]:
        tasks = [
            asyncio.create_task(
                self._run_agent(member, dict(inputs), shared_context),
                name=f"agent:{member.agent_id}",
            )
            for member in members
        ]
        try:
            pending = set(tasks)
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_EXCEPTION)
                for task in done:
                    error = task.exception()
                    if error is not None:
                        raise error
        except BaseException:
            cancelled = [task for task in tasks if not task.done()]
            for task in cancelled:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            if cancelled:
                logger.warning(
                    "scheduler_siblings_cancelled",
                    agents=[task.get_name().removeprefix("agent:") for task in cancelled],
                )
            raise
        # Results follow listed order, not completion order.
        return [task.result() for task in tasks]

    async def _run_agent(
        self,
        member: ChildAgent,
        inputs: Mapping[str, str],
        shared_context: SharedContext,
    ) -> AgentResult:
        timeout = member.timeout or self._default_agent_timeout
        start = time.perf_counter()
        try:
            resolution = self._resolver.resolve(
                member.agent_id,
                member.policy,
                member.tools,
                inputs,
                context=shared_context,
            )
            if timeout is None:
                result = await resolution
            else:
                result = await asyncio.wait_for(resolution, timeout=timeout)
        except asyncio.TimeoutError as exc:
            elapsed_ms = (time.perf_counter() - start) * 1000
            message = f"Agent {member.agent_id} timed out after {timeout} seconds"
            observe_agent_result(agent=member.agent_id, outcome="timed_out", latency=elapsed_ms / 1000)
            logger.warning("scheduler_agent_timeout", agent_id=member.agent_id, timeout=timeout)
            if member.critical:
                raise ChildAgentFailed(member.agent_id, TimeoutError(message)) from exc
            return AgentResult(
                agent_id=member.agent_id,
                success=False,
                error=message,
                elapsed_ms=elapsed_ms,
                timed_out=True,
            )
        except (OrchestrationError, ToolError) as exc:
            elapsed_ms = (time.perf_counter() - start) * 1000
            observe_agent_result(agent=member.agent_id, outcome="failed", latency=elapsed_ms / 1000)
            logger.warning(
                "scheduler_agent_failed",
                agent_id=member.agent_id,
                critical=member.critical,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            if member.critical:
                raise ChildAgentFailed(member.agent_id, exc) from exc
            return AgentResult(
                agent_id=member.agent_id,
                success=False,
                error=str(exc) or type(exc).__name__,
                elapsed_ms=elapsed_ms,
            )

        observe_agent_result(
            agent=member.agent_id,
            outcome="success",
            latency=result.elapsed_ms / 1000,
            iterations=result.iterations,
        )
        return result
