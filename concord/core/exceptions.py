from __future__ import annotations

from ..tools.exceptions import ToolError, ToolExecutionError, ToolNotFoundError

__all__ = [
    "ChildAgentFailed",
    "EmptyHumanResponse",
    "InputTimeout",
    "InvalidGateConfig",
    "InvalidPlan",
    "IterationLimitExceeded",
    "MaxInterventionsExceeded",
    "OrchestrationError",
    "PolicyError",
    "TeamTimeout",
    "ToolError",
    "ToolExecutionError",
    "ToolNotFoundError",
]


class OrchestrationError(RuntimeError):
    """Base class for failures raised by the orchestration engine."""


class PolicyError(OrchestrationError):
    """Raised when an agent policy cannot produce a decision."""


class IterationLimitExceeded(OrchestrationError):
    def __init__(self, agent_id: str, max_iterations: int) -> None:
        super().__init__(f"Agent '{agent_id}' exceeded the maximum of {max_iterations} iterations")
        self.agent_id = agent_id
        self.max_iterations = max_iterations


class InvalidPlan(OrchestrationError):
    """Raised when an execution plan fails validation."""


class ChildAgentFailed(OrchestrationError):
    """Raised when a critical agent fails, aborting the whole run."""

    def __init__(self, agent_id: str, cause: BaseException | str) -> None:
        reason = str(cause) or type(cause).__name__
        super().__init__(f"Critical agent '{agent_id}' failed: {reason}")
        self.agent_id = agent_id
        self.cause = cause


class TeamTimeout(OrchestrationError):
    def __init__(self, timeout: float) -> None:
        super().__init__(f"Team execution exceeded the global timeout of {timeout}s")
        self.timeout = timeout


class InvalidGateConfig(OrchestrationError):
    """Raised when intervention gate configuration is inconsistent."""


class InputTimeout(OrchestrationError):
    def __init__(self, timeout: float, *, phase: str | None = None) -> None:
        super().__init__(f"No human input received within {timeout}s")
        self.timeout = timeout
        self.phase = phase


class MaxInterventionsExceeded(OrchestrationError):
    def __init__(self, max_interventions: int) -> None:
        super().__init__(f"Maximum of {max_interventions} human interventions exceeded")
        self.max_interventions = max_interventions


class EmptyHumanResponse(OrchestrationError):
    """Raised when a human replies with nothing and empty responses are disallowed."""
