# backend/miche/database/access_control.py
"""
Access-control fallback for storage writes.

A write is attempted on the caller-scoped path first. When the storage layer
rejects it for an authorization reason (row-level security or a missing
privilege), the same unit of work is retried once on the elevated path.
Anything other than an authorization rejection propagates untouched.

When the elevated path is missing or also fails, the caller gets an
AuthorizationDeniedException chained to the *original* rejection, so "not
allowed" is never confused with "service unavailable".
"""

from dataclasses import dataclass
import logging
from typing import Callable, Generic, Optional, Sequence, TypeVar

from sqlalchemy.exc import DBAPIError

from ..core.exceptions import (
    AuthorizationDeniedException,
    DomainException,
    StorageAuthorizationError,
)
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")

# insufficient_privilege; Postgres raises it for RLS violations as well
INSUFFICIENT_PRIVILEGE = "42501"

_AUTHORIZATION_MARKERS = (
    "row-level security",
    "violates row level security",
    "permission denied",
    "policy",
)


def _pgcode(exc: BaseException) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    for candidate in (orig, exc):
        code = getattr(candidate, "pgcode", None) or getattr(candidate, "sqlstate", None)
        if code:
            return str(code)
    return None


def is_authorization_rejection(exc: BaseException) -> bool:
    """True only for errors the storage layer raised because the caller is not allowed."""
    if isinstance(exc, StorageAuthorizationError):
        return True
    if isinstance(exc, DBAPIError):
        if _pgcode(exc) == INSUFFICIENT_PRIVILEGE:
            return True
        message = str(exc.orig if exc.orig is not None else exc).lower()
        return any(marker in message for marker in _AUTHORIZATION_MARKERS)
    return False


@dataclass(frozen=True)
class Strategy(Generic[T]):
    """One named way of carrying out a storage operation."""

    name: str
    attempt: Callable[[], T]


def run_with_fallback(operation: str, strategies: Sequence[Strategy[T]]) -> T:
    """
    Try ``strategies`` in order; the first success short-circuits.

    Only an authorization rejection moves on to the next strategy. Domain
    errors raised by a later strategy (for example a slot conflict found on
    the elevated path) are real answers and propagate as they are.
    """
    if not strategies:
        raise ValueError("run_with_fallback needs at least one strategy")

    original: Optional[BaseException] = None
    for index, strategy in enumerate(strategies):
        try:
            result = strategy.attempt()
        except Exception as exc:
            if original is None:
                if not is_authorization_rejection(exc):
                    raise
                original = exc
                remaining = len(strategies) - index - 1
                logger.warning(
                    "Storage rejected %s on %s path for authorization: %s%s",
                    operation,
                    strategy.name,
                    exc,
                    "" if remaining else " (no fallback path configured)",
                )
                continue

            if isinstance(exc, DomainException) and not is_authorization_rejection(exc):
                raise
            prometheus_metrics.record_access_fallback(operation, "failed")
            logger.error(
                "Fallback %s path for %s failed: %s (original rejection: %s)",
                strategy.name,
                operation,
                exc,
                original,
            )
            raise AuthorizationDeniedException(
                operation, str(original), fallback_error=str(exc)
            ) from original
        else:
            if original is not None:
                prometheus_metrics.record_access_fallback(operation, "succeeded")
                logger.warning(
                    "%s succeeded on %s path after scoped rejection", operation, strategy.name
                )
            return result

    prometheus_metrics.record_access_fallback(operation, "unavailable")
    assert original is not None
    raise AuthorizationDeniedException(operation, str(original)) from original


__all__ = [
    "INSUFFICIENT_PRIVILEGE",
    "Strategy",
    "is_authorization_rejection",
    "run_with_fallback",
]
