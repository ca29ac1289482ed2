"""Error taxonomy for the rivals orchestrator.

Every failure the core can surface is a RivalsError subclass carrying a
machine-readable code, a category and retry guidance, so the orchestrator
can log it and keep the other agent's loop running.

Hard failures (unwind to the turn boundary):
- TransactionFailure: the ledger reported a non-success status
- MissingResourceFailure: a payment coin, capability or singleton is absent
- InvalidDecision: the decision collaborator returned an unusable selection
- LedgerError: transport or RPC failure talking to the ledger
- DecisionUnavailable: the LLM call itself failed

Soft failures (caught where detected, never unwind further):
- DiscoveryIncomplete: a best-effort scan failed or found nothing
- StateCorruption: the persisted state file could not be parsed

Usage:
    from rivals.errors import MissingResourceFailure

    raise MissingResourceFailure("GALACTIC coin")
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories for error classification.

    - VALIDATION: Collaborator or caller provided bad input
    - RESOURCE: Required on-chain resource missing
    - EXECUTION: Ledger rejected the transaction
    - SYSTEM: Transport, storage or internal problems
    """

    VALIDATION = "validation"
    RESOURCE = "resource"
    EXECUTION = "execution"
    SYSTEM = "system"


class ErrorCode(str, Enum):
    """Specific error codes for programmatic handling."""

    # Validation errors
    MISSING_ARGUMENT = "missing_argument"
    INVALID_ARGUMENT = "invalid_argument"
    ACTION_NOT_AVAILABLE = "action_not_available"
    UNKNOWN_OBJECT = "unknown_object"

    # Resource errors
    NOT_FOUND = "not_found"
    NOT_OWNER = "not_owner"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    ALREADY_EXISTS = "already_exists"

    # Execution errors
    TRANSACTION_FAILED = "transaction_failed"

    # System errors
    RPC_ERROR = "rpc_error"
    CORRUPT_STATE = "corrupt_state"
    DISCOVERY_INCOMPLETE = "discovery_incomplete"
    LLM_ERROR = "llm_error"


@dataclass
class ErrorResponse:
    """Serializable view of an error, stored in the activity feed."""

    error: str = ""
    code: str = ""
    category: str = ""
    retriable: bool = False
    details: dict[str, object] | None = None

    def to_dict(self) -> dict[str, object]:
        result: dict[str, object] = {
            "success": False,
            "error": self.error,
            "code": self.code,
            "category": self.category,
            "retriable": self.retriable,
        }
        if self.details:
            result["details"] = self.details
        return result


class RivalsError(Exception):
    """Base class for every error raised by the orchestrator."""

    code: ErrorCode = ErrorCode.RPC_ERROR
    category: ErrorCategory = ErrorCategory.SYSTEM
    retriable: bool = False

    def __init__(self, message: str, **details: object) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, object] = dict(details)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error=self.message,
            code=self.code.value,
            category=self.category.value,
            retriable=self.retriable,
            details=self.details or None,
        )

    def to_dict(self) -> dict[str, object]:
        return self.to_response().to_dict()


class TransactionFailure(RivalsError):
    """The ledger finalized a transaction with a non-success status."""

    code = ErrorCode.TRANSACTION_FAILED
    category = ErrorCategory.EXECUTION

    def __init__(self, reason: str, digest: str | None = None) -> None:
        super().__init__(reason, digest=digest)
        self.reason = reason
        self.digest = digest


class MissingResourceFailure(RivalsError):
    """A payment coin, capability token or singleton is not available."""

    code = ErrorCode.NOT_FOUND
    category = ErrorCategory.RESOURCE

    def __init__(self, kind: str, owner: str | None = None) -> None:
        message = f"No {kind} available"
        if owner:
            message += f" for {owner}"
        super().__init__(message, kind=kind)
        self.kind = kind


class InvalidDecision(RivalsError):
    """A decision was rejected before it reached the executor."""

    code = ErrorCode.INVALID_ARGUMENT
    category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INVALID_ARGUMENT,
        **details: object,
    ) -> None:
        super().__init__(message, **details)
        self.code = code


class LedgerError(RivalsError):
    """The ledger could not be reached or answered with an RPC error."""

    code = ErrorCode.RPC_ERROR
    category = ErrorCategory.SYSTEM
    retriable = True


class DiscoveryIncomplete(RivalsError):
    """A best-effort scan errored; callers treat the result as empty."""

    code = ErrorCode.DISCOVERY_INCOMPLETE
    category = ErrorCategory.RESOURCE


class StateCorruption(RivalsError):
    """The persisted state file exists but does not parse."""

    code = ErrorCode.CORRUPT_STATE
    category = ErrorCategory.SYSTEM


class DecisionUnavailable(RivalsError):
    """The decision collaborator could not be reached or returned nothing."""

    code = ErrorCode.LLM_ERROR
    category = ErrorCategory.SYSTEM
    retriable = True
