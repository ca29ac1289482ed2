"""Tests for the error taxonomy."""

from __future__ import annotations

import pytest

from rivals.errors import (
    DecisionUnavailable,
    ErrorCategory,
    ErrorCode,
    InvalidDecision,
    LedgerError,
    MissingResourceFailure,
    RivalsError,
    TransactionFailure,
)


class TestErrorTypes:
    def test_missing_resource_message(self) -> None:
        error = MissingResourceFailure("GALACTIC coin")
        assert error.message == "No GALACTIC coin available"
        assert error.kind == "GALACTIC coin"
        assert error.category == ErrorCategory.RESOURCE

    def test_missing_resource_with_owner(self) -> None:
        error = MissingResourceFailure("SUI gas coin", owner="0xabc")
        assert str(error) == "No SUI gas coin available for 0xabc"

    def test_transaction_failure_keeps_digest(self) -> None:
        error = TransactionFailure("MoveAbort(3)", digest="d1")
        assert error.reason == "MoveAbort(3)"
        assert error.digest == "d1"
        assert error.code == ErrorCode.TRANSACTION_FAILED

    def test_invalid_decision_code_override(self) -> None:
        error = InvalidDecision("not allowed", code=ErrorCode.ACTION_NOT_AVAILABLE, action="x")
        assert error.code == ErrorCode.ACTION_NOT_AVAILABLE
        assert error.details == {"action": "x"}
        assert InvalidDecision("bad").code == ErrorCode.INVALID_ARGUMENT

    @pytest.mark.parametrize(
        "error, retriable",
        [
            (LedgerError("down"), True),
            (DecisionUnavailable("timeout"), True),
            (TransactionFailure("abort"), False),
            (MissingResourceFailure("x"), False),
        ],
    )
    def test_retry_guidance(self, error: RivalsError, retriable: bool) -> None:
        assert error.retriable is retriable

    def test_all_are_rivals_errors(self) -> None:
        for cls in (LedgerError, DecisionUnavailable, TransactionFailure, MissingResourceFailure, InvalidDecision):
            assert issubclass(cls, RivalsError)


class TestErrorResponse:
    def test_to_dict(self) -> None:
        data = LedgerError("rpc down", method="suix_getCoins").to_dict()
        assert data == {
            "success": False,
            "error": "rpc down",
            "code": "rpc_error",
            "category": "system",
            "retriable": True,
            "details": {"method": "suix_getCoins"},
        }

    def test_empty_details_omitted(self) -> None:
        assert "details" not in RivalsError("plain").to_dict()
