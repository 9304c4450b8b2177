from __future__ import annotations

import pytest

from concord.agents.base import AgentPolicy, CallablePolicy, PolicyKind, act, finish
from concord.agents.human import CallbackHumanInterface, HumanPolicy, InteractionContext, QueueHumanInterface
from concord.core.exceptions import PolicyError
from concord.schemas.agents import ActionRequest, AgentAction, AgentFinish, StepRecord


def test_act_accepts_pairs_and_requests() -> None:
    action = act(("search", "llamas"), ActionRequest(tool_name="echo", tool_input="x", log="why"))

    assert [request.tool_name for request in action.requests] == ["search", "echo"]
    assert action.requests[1].log == "why"


@pytest.mark.asyncio
async def test_callable_policy_supports_sync_and_async() -> None:
    def sync_plan(history, inputs):
        return finish(inputs["input"])

    async def async_plan(history, inputs):
        return act(("echo", "x"))

    assert await CallablePolicy(sync_plan).plan((), {"input": "hi"}) == AgentFinish(output="hi")
    decision = await CallablePolicy(async_plan).plan((), {})
    assert isinstance(decision, AgentAction)
    assert CallablePolicy(sync_plan).kind is PolicyKind.MODEL
    assert isinstance(CallablePolicy(sync_plan), AgentPolicy)


@pytest.mark.asyncio
async def test_callable_policy_wraps_errors_and_bad_decisions() -> None:
    def broken(history, inputs):
        raise KeyError("missing")

    def wrong_type(history, inputs):
        return "just text"

    with pytest.raises(PolicyError, match="broken"):
        await CallablePolicy(broken).plan((), {})
    with pytest.raises(PolicyError, match="expected AgentFinish or AgentAction"):
        await CallablePolicy(wrong_type).plan((), {})


@pytest.mark.asyncio
async def test_human_policy_finishes_with_response() -> None:
    interface = QueueHumanInterface(["looks good"])
    policy = HumanPolicy(interface, prompt="Review:")
    history = [StepRecord(action=ActionRequest(tool_name="lint"), observation="clean")]

    decision = await policy.plan(history, {"input": "task", "previous_agent_output": "draft"})

    assert decision == AgentFinish(output="looks good")
    prompt, context = interface.prompts[0]
    assert prompt == "Review:"
    assert context.output == "draft"
    assert context.additional == {"observation:lint": "clean"}
    assert policy.kind is PolicyKind.HUMAN


@pytest.mark.asyncio
async def test_human_policy_wraps_interface_errors() -> None:
    def explode(prompt: str, context: InteractionContext) -> str:
        raise ConnectionError("console closed")

    policy = HumanPolicy(CallbackHumanInterface(explode))

    with pytest.raises(PolicyError, match="console closed"):
        await policy.plan((), {"input": "x"})


def test_interaction_context_map() -> None:
    context = InteractionContext(input="in", error="bad").with_additional("phase", "team_error")

    assert context.to_map() == {"input": "in", "error": "bad", "phase": "team_error"}
