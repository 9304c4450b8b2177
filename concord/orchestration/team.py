from __future__ import annotations

import json
import time
from typing import Any, Callable, Iterable, Mapping, Sequence
from uuid import uuid4

from ..agents.base import AgentPolicy, PolicyKind
from ..core.config import Settings, get_settings
from ..core.exceptions import InvalidPlan, OrchestrationError, PolicyError, ToolExecutionError
from ..core.logging import bound_run, get_logger
from ..core.metrics import mark_team_run_completed, mark_team_run_started
from ..schemas.agents import AgentDecision, AgentFinish, StepRecord, TeamResult
from ..tools.registry import ToolRegistry
from .context import ContextStore, SharedContext
from .plan import ExecutionPlan, ExecutionStep, concurrent_plan, sequential_plan, validate_plan
from .resolver import StepResolver
from .scheduler import ChildAgent, ExecutionGraphScheduler

__all__ = [
    "TeamBuilder",
    "TeamOrchestrator",
    "TeamPolicy",
    "TeamTool",
    "format_team_output",
]

logger = get_logger(name=__name__)

_FROM_SETTINGS: Any = object()


class TeamOrchestrator:
    """Scheduler plus shared context behind a single ``invoke(inputs)`` call.

    Each invocation gets a fresh shared context; nothing is carried across
    runs.
    """

    def __init__(
        self,
        agents: Sequence[ChildAgent],
        plan: ExecutionPlan | None = None,
        *,
        name: str = "team",
        settings: Settings | None = None,
        resolver: StepResolver | None = None,
        context_store_factory: Callable[[], ContextStore] | None = None,
        global_timeout: float | None = _FROM_SETTINGS,
        prefix: str | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        ids = [agent.agent_id for agent in agents]
        if not ids:
            raise InvalidPlan("Team must have at least one child agent")
        seen: set[str] = set()
        for agent_id in ids:
            if agent_id in seen:
                raise InvalidPlan(f"Duplicate agent ID: {agent_id}")
            seen.add(agent_id)

        self.name = name
        self.prefix = prefix
        self._agents = {agent.agent_id: agent for agent in agents}
        self._plan = validate_plan(plan if plan is not None else sequential_plan(ids), ids)
        self._resolver = resolver or StepResolver.from_settings(self._settings.resolver)
        self._scheduler = ExecutionGraphScheduler(
            self._resolver,
            default_agent_timeout=self._settings.team.default_agent_timeout,
        )
        self._context_store_factory = context_store_factory
        self._global_timeout = (
            self._settings.team.global_timeout if global_timeout is _FROM_SETTINGS else global_timeout
        )

    @property
    def plan(self) -> ExecutionPlan:
        return self._plan

    @property
    def global_timeout(self) -> float | None:
        return self._global_timeout

    @property
    def agent_ids(self) -> list[str]:
        return list(self._agents)

    @property
    def agents(self) -> Mapping[str, ChildAgent]:
        return dict(self._agents)

    def tools(self) -> ToolRegistry:
        """Every tool available to any member, merged by name."""
        merged = ToolRegistry()
        for agent in self._agents.values():
            merged = merged.merged(agent.tools)
        return merged

    def new_context(self) -> SharedContext:
        store = self._context_store_factory() if self._context_store_factory else None
        return SharedContext(store, summary_limit=self._settings.context.summary_limit)

    async def invoke(self, inputs: Mapping[str, str]) -> TeamResult:
        return await self.run(inputs, self.new_context())

    async def run(self, inputs: Mapping[str, str], shared_context: SharedContext) -> TeamResult:
        team_inputs = dict(inputs)
        team_inputs["team_agent_ids"] = json.dumps(self.agent_ids)
        team_inputs["execution_pattern"] = self._plan.pattern
        if self.prefix:
            team_inputs["team_prefix"] = self.prefix
        if "input" in inputs:
            await shared_context.append("team", inputs["input"], kind="input")

        with bound_run(uuid4().hex, team=self.name):
            start = time.perf_counter()
            mark_team_run_started(team=self.name)
            logger.info(
                "team_run_started",
                agents=self.agent_ids,
                steps=len(self._plan),
                pattern=self._plan.pattern,
            )
            try:
                result = await self._scheduler.run(
                    self._plan,
                    self._agents,
                    shared_context,
                    team_inputs,
                    timeout=self._global_timeout,
                )
            except OrchestrationError as exc:
                mark_team_run_completed(team=self.name, status="failed", latency=time.perf_counter() - start)
                logger.warning("team_run_failed", error_type=type(exc).__name__, error=str(exc))
                raise
            except BaseException:
                mark_team_run_completed(team=self.name, status="cancelled", latency=time.perf_counter() - start)
                raise

            status = "completed" if result.success else "degraded"
            mark_team_run_completed(team=self.name, status=status, latency=time.perf_counter() - start)
            logger.info(
                "team_run_completed",
                success=result.success,
                agents=len(result.results),
                elapsed_ms=round(result.elapsed_ms, 2),
            )
            return result


def format_team_output(result: TeamResult) -> str:
    lines = [
        "Team Execution Summary:",
        f"- Total agents: {len(result.results)}",
        f"- Successful: {sum(1 for item in result.results if item.success)}",
        f"- Execution time: {result.elapsed_ms:.0f}ms",
        "",
        "Individual Agent Results:",
    ]
    for position, item in enumerate(result.results, start=1):
        status = "SUCCESS" if item.success else "FAILED"
        lines.append(f"{position}. Agent '{item.agent_id}' ({item.elapsed_ms:.0f}ms): {status}")
        if item.success:
            lines.append(f"   Output: {item.output}")
        elif item.error:
            lines.append(f"   Error: {item.error}")
        lines.append("")
    lines.append("Final Aggregated Output:")
    lines.append(result.final_output)
    return "\n".join(lines)


class TeamPolicy:
    """Lets a whole team act as a single agent inside a larger plan."""

    kind = PolicyKind.TEAM

    def __init__(self, team: TeamOrchestrator) -> None:
        self.team = team

    async def plan(self, history: Sequence[StepRecord], inputs: Mapping[str, str]) -> AgentDecision:
        nested_inputs = {
            key: value
            for key, value in inputs.items()
            if key not in {"team_agent_ids", "execution_pattern", "team_prefix"}
        }
        try:
            result = await self.team.invoke(nested_inputs)
        except OrchestrationError as exc:
            raise PolicyError(f"Nested team '{self.team.name}' failed: {exc}") from exc
        return AgentFinish(output=format_team_output(result))


class TeamTool:
    """Exposes a team as a tool other agents can call."""

    def __init__(self, team: TeamOrchestrator, *, name: str | None = None, description: str | None = None) -> None:
        self.team = team
        self.name = name or f"{team.name}_agent"
        self.description = description or (
            f"Delegates the input to the '{team.name}' team of {len(team.agent_ids)} agents"
        )

    async def invoke(self, tool_input: str) -> str:
        inputs = _parse_tool_input(tool_input)
        try:
            result = await self.team.invoke(inputs)
        except OrchestrationError as exc:
            raise ToolExecutionError(self.name, str(exc)) from exc
        return format_team_output(result)


def _parse_tool_input(tool_input: str) -> dict[str, str]:
    try:
        payload = json.loads(tool_input)
    except (TypeError, ValueError):
        return {"input": tool_input}
    if isinstance(payload, dict):
        return {str(key): value if isinstance(value, str) else json.dumps(value) for key, value in payload.items()}
    return {"input": tool_input}


class TeamBuilder:
    def __init__(self, name: str = "team", *, settings: Settings | None = None) -> None:
        self._name = name
        self._settings = settings
        self._agents: list[ChildAgent] = []
        self._plan: ExecutionPlan | None = None
        self._pattern = "sequential"
        self._global_timeout: float | None = _FROM_SETTINGS
        self._max_iterations: int | None = None
        self._prefix: str | None = None
        self._context_store_factory: Callable[[], ContextStore] | None = None

    def add_agent(
        self,
        agent_id: str,
        policy: AgentPolicy,
        *,
        tools: ToolRegistry | Iterable[Any] | None = None,
        critical: bool = True,
        timeout: float | None = None,
    ) -> "TeamBuilder":
        registry = tools if isinstance(tools, ToolRegistry) else ToolRegistry(tools or ())
        self._agents.append(
            ChildAgent(agent_id=agent_id, policy=policy, tools=registry, critical=critical, timeout=timeout)
        )
        return self

    def add_team(
        self,
        agent_id: str,
        team: TeamOrchestrator,
        *,
        critical: bool = True,
        timeout: float | None = None,
    ) -> "TeamBuilder":
        return self.add_agent(agent_id, TeamPolicy(team), critical=critical, timeout=timeout)

    def sequential(self) -> "TeamBuilder":
        self._pattern = "sequential"
        self._plan = None
        return self

    def concurrent(self) -> "TeamBuilder":
        self._pattern = "concurrent"
        self._plan = None
        return self

    def hybrid(self, steps: ExecutionPlan | Sequence[ExecutionStep]) -> "TeamBuilder":
        self._plan = steps if isinstance(steps, ExecutionPlan) else ExecutionPlan(steps)
        return self

    def global_timeout(self, seconds: float | None) -> "TeamBuilder":
        self._global_timeout = seconds
        return self

    def max_iterations(self, max_iterations: int) -> "TeamBuilder":
        self._max_iterations = max_iterations
        return self

    def prefix(self, prefix: str) -> "TeamBuilder":
        self._prefix = prefix
        return self

    def context_store(self, factory: Callable[[], ContextStore]) -> "TeamBuilder":
        self._context_store_factory = factory
        return self

    def build(self) -> TeamOrchestrator:
        settings = self._settings or get_settings()
        ids = [agent.agent_id for agent in self._agents]
        plan = self._plan
        if plan is None:
            plan = concurrent_plan(ids) if self._pattern == "concurrent" else sequential_plan(ids)
        resolver = None
        if self._max_iterations is not None:
            resolver_settings = settings.resolver.model_copy(update={"max_iterations": self._max_iterations})
            resolver = StepResolver.from_settings(resolver_settings)
        return TeamOrchestrator(
            self._agents,
            plan,
            name=self._name,
            settings=settings,
            resolver=resolver,
            context_store_factory=self._context_store_factory,
            global_timeout=self._global_timeout,
            prefix=self._prefix,
        )
