from __future__ import annotations

import logging

import pytest
import structlog

from concord.core import logging as concord_logging
from concord.core.config import Settings
from concord.core.logging import bound_run, configure_logging, get_logger


def test_bound_run_restores_outer_identifiers() -> None:
    with bound_run("outer", team="editorial"):
        with bound_run("inner", team="research"):
            assert structlog.contextvars.get_contextvars() == {"run_id": "inner", "team": "research"}
        assert structlog.contextvars.get_contextvars() == {"run_id": "outer", "team": "editorial"}
    assert "run_id" not in structlog.contextvars.get_contextvars()


def test_get_logger_binds_initial_values() -> None:
    configure_logging("DEBUG")

    with structlog.testing.capture_logs() as captured:
        get_logger(name="concord.test", component="tests").info("logger_ready")

    assert captured == [{"component": "tests", "event": "logger_ready", "log_level": "info"}]


def test_configure_logging_reads_level_from_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict] = []
    monkeypatch.setattr(concord_logging, "get_settings", lambda: Settings(observability={"log_level": "WARNING"}))
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    configure_logging()
    configure_logging("DEBUG")

    assert [call["level"] for call in calls] == [logging.WARNING, logging.DEBUG]
