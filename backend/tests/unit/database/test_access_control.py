"""Strategy executor behind every caller-scoped storage write."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, ProgrammingError

from miche.core.exceptions import (
    AuthorizationDeniedException,
    SlotUnavailableException,
    StorageAuthorizationError,
)
from miche.database.access_control import Strategy, is_authorization_rejection, run_with_fallback


def _reject(message="new row violates row-level security policy"):
    raise StorageAuthorizationError(message)


class _PgError(Exception):
    def __init__(self, message, pgcode=None):
        super().__init__(message)
        self.pgcode = pgcode


class TestIsAuthorizationRejection:
    def test_storage_authorization_error(self):
        assert is_authorization_rejection(StorageAuthorizationError("nope"))

    def test_insufficient_privilege_pgcode(self):
        exc = ProgrammingError("INSERT", {}, _PgError("denied", pgcode="42501"))
        assert is_authorization_rejection(exc)

    def test_rls_message_without_pgcode(self):
        exc = ProgrammingError(
            "INSERT", {}, _PgError('new row violates row-level security policy for table "bookings"')
        )
        assert is_authorization_rejection(exc)

    def test_constraint_violation_is_not_an_authorization_problem(self):
        exc = IntegrityError("INSERT", {}, _PgError("duplicate key value", pgcode="23505"))
        assert not is_authorization_rejection(exc)

    def test_arbitrary_errors(self):
        assert not is_authorization_rejection(ValueError("permission denied"))


class TestRunWithFallback:
    def test_first_success_short_circuits(self):
        elevated = MagicMock(return_value="elevated")

        result = run_with_fallback(
            "op", [Strategy("caller", lambda: "caller"), Strategy("elevated", elevated)]
        )

        assert result == "caller"
        elevated.assert_not_called()

    def test_authorization_rejection_moves_to_next_strategy(self):
        result = run_with_fallback(
            "op", [Strategy("caller", _reject), Strategy("elevated", lambda: "elevated")]
        )

        assert result == "elevated"

    def test_other_errors_propagate_without_fallback(self):
        elevated = MagicMock()

        def boom():
            raise RuntimeError("connection reset")

        with pytest.raises(RuntimeError):
            run_with_fallback("op", [Strategy("caller", boom), Strategy("elevated", elevated)])
        elevated.assert_not_called()

    def test_no_fallback_surfaces_original_rejection(self):
        with pytest.raises(AuthorizationDeniedException) as exc_info:
            run_with_fallback("op", [Strategy("caller", _reject)])

        assert isinstance(exc_info.value.__cause__, StorageAuthorizationError)
        assert exc_info.value.details["operation"] == "op"

    def test_failed_fallback_keeps_the_original_as_cause(self):
        def elevated_fails():
            raise RuntimeError("elevated credential missing")

        with pytest.raises(AuthorizationDeniedException) as exc_info:
            run_with_fallback(
                "op", [Strategy("caller", _reject), Strategy("elevated", elevated_fails)]
            )

        assert "row-level security" in str(exc_info.value.__cause__)
        assert "elevated credential missing" in exc_info.value.details["fallback_error"]

    def test_domain_answer_from_fallback_propagates(self):
        def conflict():
            raise SlotUnavailableException()

        with pytest.raises(SlotUnavailableException):
            run_with_fallback("op", [Strategy("caller", _reject), Strategy("elevated", conflict)])

    def test_needs_a_strategy(self):
        with pytest.raises(ValueError):
            run_with_fallback("op", [])
