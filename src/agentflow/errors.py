"""Exception hierarchy for AgentFlow."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from agentflow.models import ExecutionResult


class AgentFlowError(Exception):
    """Base class for all AgentFlow errors."""


class ConfigError(AgentFlowError):
    """Invalid or incomplete configuration."""


class OracleError(AgentFlowError):
    """A reasoning oracle call could not produce a usable answer."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation


class OracleResponseError(OracleError):
    """The oracle answered, but the answer could not be parsed."""


class OracleUnavailableError(OracleError):
    """The oracle could not be reached or did not answer in time."""


class ToolError(AgentFlowError):
    """Raised by capability tools when an invocation fails."""


class RunAbortedError(AgentFlowError):
    """A goal run stopped on an unhandled failure.

    ``result`` holds the partial ledger (status ``failed``); its consistency is
    not guaranteed beyond the last fully joined batch.
    """

    def __init__(self, message: str, result: Optional[ExecutionResult] = None) -> None:
        super().__init__(message)
        self.result = result
