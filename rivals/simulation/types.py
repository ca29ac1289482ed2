"""Type definitions for simulation module."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from ..errors import ErrorCode

# Operator hints printed in the shutdown error summary
ERROR_SUGGESTIONS: dict[str, str] = {
    ErrorCode.INSUFFICIENT_FUNDS.value: "Fund the wallet or enable bootstrap.premint_galactic",
    ErrorCode.NOT_FOUND.value: "Check PACKAGE_ID and delete the state file to force rediscovery",
    ErrorCode.UNKNOWN_OBJECT.value: "The model invented an id; a lower temperature usually helps",
    ErrorCode.ACTION_NOT_AVAILABLE.value: "The model ignored the action list; check the system prompt",
    ErrorCode.RPC_ERROR.value: "Check ledger.rpc_url and network connectivity",
    ErrorCode.LLM_ERROR.value: "Check the model name and its API key in .env",
}


@dataclass
class ErrorRecord:
    """A single error occurrence."""

    timestamp: datetime
    error_type: str
    agent_id: str
    message: str
    suggestion: str | None = None


@dataclass
class ErrorStats:
    """Aggregated error statistics for the session.

    Tracks errors by code and agent for the shutdown summary.
    """

    total_errors: int = 0
    by_type: dict[str, int] = field(default_factory=dict)
    by_agent: dict[str, int] = field(default_factory=dict)
    recent_errors: list[ErrorRecord] = field(default_factory=list)
    max_recent: int = 10  # Keep last N errors

    def record_error(self, error_type: str, agent_id: str, message: str) -> None:
        """Record an error occurrence."""
        self.total_errors += 1
        self.by_type[error_type] = self.by_type.get(error_type, 0) + 1
        self.by_agent[agent_id] = self.by_agent.get(agent_id, 0) + 1

        self.recent_errors.append(
            ErrorRecord(
                timestamp=datetime.now(),
                error_type=error_type,
                agent_id=agent_id,
                message=message,
                suggestion=ERROR_SUGGESTIONS.get(error_type),
            )
        )
        if len(self.recent_errors) > self.max_recent:
            self.recent_errors = self.recent_errors[-self.max_recent:]
