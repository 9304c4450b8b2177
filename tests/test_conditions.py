from __future__ import annotations

import pytest

from concord.core.exceptions import InvalidGateConfig
from concord.orchestration.conditions import InterventionCondition, TerminationCondition, TriggerKind, similarity


def test_keyword_matches_substring_of_field() -> None:
    condition = InterventionCondition.keyword("approve")

    assert condition.matches({"input": "please approve this"})
    assert not condition.matches({"input": "nothing here"})
    assert not condition.matches({"output": "approve"})


def test_regex_searches_field() -> None:
    condition = InterventionCondition.regex(r"\$\d{4,}", "output")

    assert condition.matches({"input": "", "output": "cost is $12000"})
    assert not condition.matches({"input": "", "output": "cost is $12"})


def test_similarity_threshold() -> None:
    condition = TerminationCondition.similar_to("cancel the request", 0.8)

    assert condition.matches({"input": "Cancel the request"})
    assert not condition.matches({"input": "ship it"})
    assert similarity("same", "same") == 1.0
    assert similarity("", "x") == 0.0


def test_error_trigger_requires_error_signal() -> None:
    any_error = InterventionCondition.on_error()
    timeouts = InterventionCondition.on_error("timed out")

    assert not any_error.matches({"input": "x"})
    assert any_error.matches({"input": "x", "error": "Critical agent 'a' failed: boom"})
    assert timeouts.matches({"error": "Agent a timed out after 1 seconds"})
    assert not timeouts.matches({"error": "boom"})


def test_subclasses_keep_their_type() -> None:
    condition = TerminationCondition.keyword("done")

    assert isinstance(condition, TerminationCondition)
    assert condition.trigger is TriggerKind.KEYWORD


@pytest.mark.parametrize(
    "condition",
    [
        InterventionCondition(pattern=""),
        InterventionCondition(pattern="x", field=""),
        InterventionCondition.regex("(unclosed"),
        InterventionCondition(pattern="x", trigger=TriggerKind.SIMILARITY),
        InterventionCondition.similar_to("x", 1.5),
    ],
)
def test_invalid_conditions_are_rejected(condition: InterventionCondition) -> None:
    with pytest.raises(InvalidGateConfig):
        condition.validate(0)
