from __future__ import annotations

import pytest
from prometheus_client import REGISTRY

from concord.core import metrics
from concord.core.config import Settings
from concord.core.metrics import (
    observe_agent_result,
    record_gate_transition,
    record_human_intervention,
    record_tool_invocation,
)


def test_observe_agent_result_records_outcome_and_latency():
    outcome_labels = {"agent": "metrics-agent", "outcome": "success"}
    latency_labels = {"agent": "metrics-agent"}
    count_before = REGISTRY.get_sample_value("concord_agent_result_total", outcome_labels) or 0.0
    latency_before = REGISTRY.get_sample_value("concord_agent_execution_latency_seconds_sum", latency_labels) or 0.0

    observe_agent_result(agent="metrics-agent", outcome="success", latency=1.5, iterations=2)

    assert REGISTRY.get_sample_value("concord_agent_result_total", outcome_labels) == pytest.approx(count_before + 1.0)
    latency_after = REGISTRY.get_sample_value("concord_agent_execution_latency_seconds_sum", latency_labels)
    assert latency_after == pytest.approx(latency_before + 1.5, rel=1e-6)
    assert REGISTRY.get_sample_value("concord_resolver_iterations_count", latency_labels) is not None


def test_tool_invocation_without_latency_only_counts():
    labels = {"agent": "metrics-agent", "tool": "metrics-missing", "outcome": "not_found"}
    before = REGISTRY.get_sample_value("concord_tool_invocations_total", labels) or 0.0

    record_tool_invocation(agent="metrics-agent", tool="metrics-missing", outcome="not_found")

    assert REGISTRY.get_sample_value("concord_tool_invocations_total", labels) == pytest.approx(before + 1.0)
    assert REGISTRY.get_sample_value("concord_tool_latency_seconds_count", {"tool": "metrics-missing"}) is None


def test_gate_metrics_increment():
    transition = {"phase": "after_team", "state": "awaiting_input"}
    intervention = {"phase": "after_team", "outcome": "timeout"}
    transition_before = REGISTRY.get_sample_value("concord_gate_transitions_total", transition) or 0.0
    intervention_before = REGISTRY.get_sample_value("concord_human_interventions_total", intervention) or 0.0

    record_gate_transition(phase="after_team", state="awaiting_input")
    record_human_intervention(phase="after_team", outcome="timeout")

    assert REGISTRY.get_sample_value("concord_gate_transitions_total", transition) == pytest.approx(
        transition_before + 1.0
    )
    assert REGISTRY.get_sample_value("concord_human_interventions_total", intervention) == pytest.approx(
        intervention_before + 1.0
    )


def test_disabled_metrics_record_nothing(monkeypatch: pytest.MonkeyPatch) -> None:
    disabled = Settings(observability={"metrics_enabled": False})
    monkeypatch.setattr(metrics, "get_settings", lambda: disabled)
    labels = {"agent": "metrics-disabled", "outcome": "success"}

    observe_agent_result(agent="metrics-disabled", outcome="success", latency=0.5)
    metrics.mark_team_run_started(team="metrics-disabled")

    assert REGISTRY.get_sample_value("concord_agent_result_total", labels) is None
    assert REGISTRY.get_sample_value("concord_team_runs_active", {"team": "metrics-disabled"}) is None
