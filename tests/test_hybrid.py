from __future__ import annotations

import pytest

from concord.agents.human import QueueHumanInterface
from concord.core.config import get_settings
from concord.core.exceptions import ChildAgentFailed, InputTimeout, TeamTimeout
from concord.orchestration.conditions import InterventionCondition, TerminationCondition
from concord.orchestration.gate import GateConfig, GateState, HumanInterventionGate
from concord.orchestration.hybrid import HybridBuilder, HybridOrchestrator, HybridPolicy
from concord.orchestration.scheduler import ChildAgent
from concord.orchestration.team import TeamBuilder, TeamOrchestrator
from tests.helpers.stubs import ConstantPolicy, EchoInputPolicy, FailingPolicy, SlowPolicy


def _team(policy, *, name: str = "hybrid-team") -> TeamOrchestrator:
    return TeamOrchestrator([ChildAgent("solo", policy)], name=name)


def _hybrid(team: TeamOrchestrator, interface: QueueHumanInterface, **config) -> HybridOrchestrator:
    config.setdefault("intervention_conditions", [InterventionCondition.keyword("review")])
    return HybridOrchestrator(team, HumanInterventionGate(GateConfig(**config), interface))


@pytest.mark.asyncio
async def test_pre_team_input_reaches_agents() -> None:
    policy = EchoInputPolicy("human_pre_team_input")
    interface = QueueHumanInterface(["focus on cost"])
    hybrid = _hybrid(_team(policy), interface)

    outcome = await hybrid.invoke({"input": "please review the budget"})

    assert outcome.output == "solo: focus on cost"
    assert outcome.human_inputs == ["focus on cost"]
    assert outcome.interventions == 1
    assert outcome.terminated is False
    assert outcome.team_result is not None
    assert outcome.state is GateState.IDLE


@pytest.mark.asyncio
async def test_no_checkpoint_match_runs_team_unchanged() -> None:
    interface = QueueHumanInterface()
    hybrid = _hybrid(_team(ConstantPolicy("result")), interface)

    outcome = await hybrid.invoke({"input": "routine task"})

    assert outcome.output == "solo: result"
    assert outcome.human_inputs == []
    assert interface.prompts == []


@pytest.mark.asyncio
async def test_pre_team_termination_skips_the_team() -> None:
    policy = ConstantPolicy("never")
    hybrid = _hybrid(
        _team(policy),
        QueueHumanInterface(),
        termination_conditions=[TerminationCondition.keyword("cancel")],
    )

    outcome = await hybrid.invoke({"input": "cancel everything"})

    assert outcome.terminated is True
    assert outcome.output == "cancel everything"
    assert outcome.state is GateState.TERMINATED
    assert outcome.team_result is None
    assert policy.seen == []


@pytest.mark.asyncio
async def test_error_checkpoint_substitutes_human_answer() -> None:
    interface = QueueHumanInterface(["manual answer"])
    hybrid = _hybrid(
        _team(FailingPolicy("model unavailable")),
        interface,
        intervention_conditions=[InterventionCondition.on_error()],
    )

    outcome = await hybrid.invoke({"input": "task"})

    assert outcome.output == "manual answer"
    assert outcome.team_result is None
    _, context = interface.prompts[0]
    assert "model unavailable" in context.error


@pytest.mark.asyncio
async def test_error_checkpoint_termination_returns_error_text() -> None:
    hybrid = _hybrid(
        _team(FailingPolicy("model unavailable")),
        QueueHumanInterface(),
        termination_conditions=[TerminationCondition.on_error("unavailable")],
    )

    outcome = await hybrid.invoke({"input": "task"})

    assert outcome.terminated is True
    assert outcome.output.startswith("Critical agent 'solo' failed")


@pytest.mark.asyncio
async def test_unhandled_team_error_is_reraised() -> None:
    hybrid = _hybrid(
        _team(FailingPolicy("boom")),
        QueueHumanInterface(),
        intervention_conditions=[InterventionCondition.on_error("timed out")],
    )

    with pytest.raises(ChildAgentFailed):
        await hybrid.invoke({"input": "task"})


@pytest.mark.asyncio
async def test_disabled_error_checkpoint_reraises() -> None:
    interface = QueueHumanInterface(["unused"])
    hybrid = _hybrid(
        _team(FailingPolicy("boom")),
        interface,
        intervention_conditions=[InterventionCondition.on_error()],
        on_error=False,
    )

    with pytest.raises(ChildAgentFailed):
        await hybrid.invoke({"input": "task"})
    assert interface.prompts == []


@pytest.mark.asyncio
async def test_post_team_reply_replaces_output() -> None:
    interface = QueueHumanInterface(["edited by human"])
    hybrid = _hybrid(
        _team(ConstantPolicy("draft v1")),
        interface,
        intervention_conditions=[InterventionCondition.keyword("draft", "output")],
        before=False,
        after=True,
    )

    outcome = await hybrid.invoke({"input": "write"})

    assert outcome.output == "edited by human"
    assert outcome.team_result is not None
    assert outcome.team_result.final_output == "solo: draft v1"
    prompt, context = interface.prompts[0]
    assert prompt.startswith("Post-team intervention:")
    assert context.additional["team_success"] == "true"


@pytest.mark.asyncio
async def test_post_team_termination_keeps_team_output() -> None:
    hybrid = _hybrid(
        _team(ConstantPolicy("FINAL answer")),
        QueueHumanInterface(),
        termination_conditions=[TerminationCondition.keyword("FINAL", "output")],
        after=True,
    )

    outcome = await hybrid.invoke({"input": "write"})

    assert outcome.terminated is True
    assert outcome.output == "solo: FINAL answer"


@pytest.mark.asyncio
async def test_input_timeout_propagates() -> None:
    hybrid = _hybrid(_team(ConstantPolicy("x")), QueueHumanInterface(), input_timeout=0.05)

    with pytest.raises(InputTimeout):
        await hybrid.invoke({"input": "review please"})


@pytest.mark.asyncio
async def test_gate_counter_resets_between_invocations() -> None:
    interface = QueueHumanInterface(["one", "two"])
    hybrid = (
        HybridBuilder(_team(ConstantPolicy("x")), interface)
        .intervene_when(InterventionCondition.keyword("review"))
        .max_interventions(1)
        .build()
    )

    first = await hybrid.invoke({"input": "review a"})
    second = await hybrid.invoke({"input": "review b"})

    assert first.human_inputs == ["one"]
    assert second.human_inputs == ["two"]
    assert second.interventions == 1


@pytest.mark.asyncio
async def test_builder_sets_checkpoints_and_timeout() -> None:
    hybrid = (
        HybridBuilder(_team(SlowPolicy(delay=0.0)), QueueHumanInterface())
        .intervene_when(InterventionCondition.keyword("x"))
        .terminate_when(TerminationCondition.keyword("stop"))
        .checkpoints(before=False, after=True, on_error=False)
        .input_timeout(2.5)
        .run_timeout(30.0)
        .build()
    )

    assert isinstance(hybrid, HybridOrchestrator)
    assert hybrid.run_timeout == 30.0
    config = hybrid.gate.config
    assert (config.before, config.after, config.on_error) == (False, True, False)
    assert config.input_timeout == 2.5
    assert len(config.termination_conditions) == 1


@pytest.mark.asyncio
async def test_hybrid_policy_joins_a_larger_team() -> None:
    inner = _hybrid(_team(ConstantPolicy("checked"), name="inner"), QueueHumanInterface())
    outer = (
        TeamBuilder("outer")
        .add_agent("gated", HybridPolicy(inner))
        .add_agent("next", EchoInputPolicy("previous_agent_output"))
        .build()
    )

    result = await outer.invoke({"input": "routine"})

    assert result.get("next").output == "solo: checked"


@pytest.mark.asyncio
async def test_run_timeout_cancels_a_pending_human_reply() -> None:
    interface = QueueHumanInterface()
    hybrid = (
        HybridBuilder(_team(ConstantPolicy("x")), interface)
        .intervene_when(InterventionCondition.keyword("review"))
        .input_timeout(5.0)
        .run_timeout(0.05)
        .build()
    )

    with pytest.raises(TeamTimeout) as exc_info:
        await hybrid.invoke({"input": "review please"})

    assert exc_info.value.timeout == 0.05
    assert len(interface.prompts) == 1
    assert hybrid.gate.state is GateState.TERMINATED


def test_run_timeout_defaults_to_team_global_timeout() -> None:
    settings = get_settings({"team": {"global_timeout": 42.0}})
    gate = HumanInterventionGate(
        GateConfig(intervention_conditions=[InterventionCondition.keyword("review")]),
        QueueHumanInterface(),
    )

    assert HybridOrchestrator(_team(ConstantPolicy("x")), gate, settings=settings).run_timeout == 42.0
    assert HybridOrchestrator(_team(ConstantPolicy("x")), gate, run_timeout=None).run_timeout is None
