from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

from .config import get_settings

AGENT_LATENCY_SECONDS = Histogram(
    "concord_agent_execution_latency_seconds",
    "Latency for each resolved agent",
    labelnames=("agent",),
)

AGENT_RESULT_TOTAL = Counter(
    "concord_agent_result_total",
    "Agent results grouped by outcome (success/failed/timed_out)",
    labelnames=("agent", "outcome"),
)

RESOLVER_ITERATIONS = Histogram(
    "concord_resolver_iterations",
    "Plan calls consumed per resolver invocation",
    labelnames=("agent",),
    buckets=(1, 2, 3, 5, 8, 13, 21, 34, float("inf")),
)

TOOL_INVOCATIONS_TOTAL = Counter(
    "concord_tool_invocations_total",
    "Tool invocation attempts grouped by outcome",
    labelnames=("agent", "tool", "outcome"),
)

TOOL_LATENCY_SECONDS = Histogram(
    "concord_tool_latency_seconds",
    "Latency distribution for tool invocations",
    labelnames=("tool",),
)

TEAM_RUNS_TOTAL = Counter(
    "concord_team_runs_total",
    "Team runs by status",
    labelnames=("team", "status"),
)

TEAM_RUN_LATENCY_SECONDS = Histogram(
    "concord_team_run_latency_seconds",
    "End-to-end team runtime",
    labelnames=("team",),
    buckets=(0.1, 0.5, 1, 2, 5, 10, 30, 60, 120, 300, 600, float("inf")),
)

TEAM_ACTIVE_GAUGE = Gauge(
    "concord_team_runs_active",
    "Team runs in flight",
    labelnames=("team",),
)

GATE_TRANSITIONS_TOTAL = Counter(
    "concord_gate_transitions_total",
    "Human intervention gate state transitions",
    labelnames=("phase", "state"),
)

HUMAN_INTERVENTIONS_TOTAL = Counter(
    "concord_human_interventions_total",
    "Human interventions grouped by outcome",
    labelnames=("phase", "outcome"),
)


def _enabled() -> bool:
    return get_settings().observability.metrics_enabled


def observe_agent_result(*, agent: str, outcome: str, latency: float, iterations: int | None = None) -> None:
    if not _enabled():
        return
    AGENT_RESULT_TOTAL.labels(agent=agent, outcome=outcome).inc()
    AGENT_LATENCY_SECONDS.labels(agent=agent).observe(latency)
    if iterations is not None:
        RESOLVER_ITERATIONS.labels(agent=agent).observe(iterations)


def record_tool_invocation(*, agent: str, tool: str, outcome: str, latency: float | None = None) -> None:
    if not _enabled():
        return
    TOOL_INVOCATIONS_TOTAL.labels(agent=agent, tool=tool, outcome=outcome).inc()
    if latency is not None:
        TOOL_LATENCY_SECONDS.labels(tool=tool).observe(latency)


def mark_team_run_started(*, team: str) -> None:
    if not _enabled():
        return
    TEAM_ACTIVE_GAUGE.labels(team=team).inc()
    TEAM_RUNS_TOTAL.labels(team, "started").inc()


def mark_team_run_completed(*, team: str, status: str, latency: float) -> None:
    if not _enabled():
        return
    TEAM_ACTIVE_GAUGE.labels(team=team).dec()
    TEAM_RUNS_TOTAL.labels(team, status).inc()
    TEAM_RUN_LATENCY_SECONDS.labels(team=team).observe(latency)


def record_gate_transition(*, phase: str, state: str) -> None:
    if not _enabled():
        return
    GATE_TRANSITIONS_TOTAL.labels(phase=phase, state=state).inc()


def record_human_intervention(*, phase: str, outcome: str) -> None:
    if not _enabled():
        return
    HUMAN_INTERVENTIONS_TOTAL.labels(phase=phase, outcome=outcome).inc()
