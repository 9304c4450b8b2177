from __future__ import annotations

import difflib
import re
from dataclasses import dataclass
from enum import Enum
from typing import Mapping

from ..core.exceptions import InvalidGateConfig

__all__ = [
    "InterventionCondition",
    "TerminationCondition",
    "TriggerKind",
    "similarity",
]


class TriggerKind(str, Enum):
    KEYWORD = "keyword"
    REGEX = "regex"
    SIMILARITY = "similarity"
    ERROR = "error"


def similarity(left: str, right: str) -> float:
    """Case-insensitive similarity ratio in [0, 1]; identical strings score 1.0."""
    if left == right:
        return 1.0
    if not left or not right:
        return 0.0
    return difflib.SequenceMatcher(None, left.lower(), right.lower()).ratio()


@dataclass(frozen=True, slots=True)
class _Condition:
    pattern: str
    trigger: TriggerKind = TriggerKind.KEYWORD
    field: str = "input"
    threshold: float | None = None
    description: str = ""

    def validate(self, position: int) -> None:
        label = f"{type(self).__name__} {position}"
        if not self.field:
            raise InvalidGateConfig(f"{label} has empty field")
        if self.trigger is not TriggerKind.ERROR and not self.pattern:
            raise InvalidGateConfig(f"{label} has empty pattern")
        if self.trigger is TriggerKind.REGEX:
            try:
                re.compile(self.pattern)
            except re.error as exc:
                raise InvalidGateConfig(f"{label} has invalid regex {self.pattern!r}: {exc}") from exc
        if self.trigger is TriggerKind.SIMILARITY:
            if self.threshold is None or not 0.0 <= self.threshold <= 1.0:
                raise InvalidGateConfig(f"{label} has invalid similarity threshold: {self.threshold}")

    def matches(self, signals: Mapping[str, str]) -> bool:
        if self.trigger is TriggerKind.ERROR:
            error = signals.get("error")
            if error is None:
                return False
            return not self.pattern or self.pattern in error
        value = signals.get(self.field)
        if value is None:
            return False
        if self.trigger is TriggerKind.REGEX:
            return re.search(self.pattern, value) is not None
        if self.trigger is TriggerKind.SIMILARITY:
            return similarity(value, self.pattern) >= (self.threshold or 0.0)
        return self.pattern in value

    @classmethod
    def keyword(cls, pattern: str, field: str = "input", *, description: str = ""):
        return cls(pattern=pattern, trigger=TriggerKind.KEYWORD, field=field, description=description)

    @classmethod
    def regex(cls, pattern: str, field: str = "input", *, description: str = ""):
        return cls(pattern=pattern, trigger=TriggerKind.REGEX, field=field, description=description)

    @classmethod
    def similar_to(cls, pattern: str, threshold: float, field: str = "input", *, description: str = ""):
        return cls(
            pattern=pattern,
            trigger=TriggerKind.SIMILARITY,
            field=field,
            threshold=threshold,
            description=description,
        )

    @classmethod
    def on_error(cls, pattern: str = "", *, description: str = ""):
        return cls(pattern=pattern, trigger=TriggerKind.ERROR, field="error", description=description)


class InterventionCondition(_Condition):
    """Pauses the run for human input when it matches the current signal."""

    __slots__ = ()


class TerminationCondition(_Condition):
    """Ends the run early, returning the current signal unchanged."""

    __slots__ = ()
