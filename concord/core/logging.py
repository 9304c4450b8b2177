from __future__ import annotations

import logging
from typing import Any, ContextManager

import structlog

from .config import get_settings


def configure_logging(level: str | None = None) -> None:
    """Configure structlog and standard logging for the orchestration engine.

    Without an explicit ``level`` the observability settings decide.
    """
    level = level or get_settings().observability.log_level
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(*, name: str | None = None, **kwargs: Any) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger(name)
    if kwargs:
        return logger.bind(**kwargs)
    return logger


def bound_run(run_id: str, **kwargs: Any) -> ContextManager[None]:
    """Attach run identifiers to every log line emitted inside the block.

    Values bound by an enclosing run are restored on exit, so nested teams
    keep their own ``run_id``.
    """
    return structlog.contextvars.bound_contextvars(run_id=run_id, **kwargs)
