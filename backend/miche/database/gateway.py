# backend/miche/database/gateway.py
"""
StorageGateway: the single entry point services use to touch the database.

Every call names its ``Scope`` explicitly:

- ``Scope.CALLER`` runs the unit of work with the principal's claims applied,
  and falls back to the elevated path when row-level security rejects it.
- ``Scope.ELEVATED`` runs directly on the service-level path. Used for
  system actors (webhooks, background sweeps) and for reads that feed an
  invariant check, since row-level security filters rows on SELECT rather
  than rejecting the query.

Each attempt gets its own session and commits on success, so a rejected
caller-scoped attempt is fully rolled back before the elevated retry.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, TypeVar

from sqlalchemy.orm import Session, sessionmaker

from ..core.enums import Scope
from . import sessions
from .access_control import Strategy, run_with_fallback

logger = logging.getLogger(__name__)

T = TypeVar("T")
UnitOfWork = Callable[[Session], T]


class StorageGateway:
    def __init__(
        self,
        scoped_factory: sessionmaker,
        elevated_factory: Optional[sessionmaker] = None,
    ) -> None:
        self._scoped_factory = scoped_factory
        self._elevated_factory = elevated_factory

    def run(
        self,
        operation: str,
        work: UnitOfWork[T],
        *,
        scope: Scope,
        principal_id: Optional[str] = None,
    ) -> T:
        """Execute ``work(session)`` in its own transaction under ``scope``."""
        strategies: List[Strategy[T]] = []
        if scope == Scope.CALLER:
            if not principal_id:
                raise ValueError(f"{operation}: caller-scoped storage access needs a principal")
            strategies.append(
                Strategy("caller", lambda: self._attempt_as_caller(work, principal_id))
            )
            if self._elevated_factory is not None:
                strategies.append(Strategy("elevated", lambda: self._attempt_elevated(work)))
        else:
            strategies.append(Strategy("elevated", lambda: self._attempt_elevated(work)))
        return run_with_fallback(operation, strategies)

    def _attempt_as_caller(self, work: UnitOfWork[T], principal_id: str) -> T:
        with sessions.session_scope(self._scoped_factory) as session:
            sessions.apply_caller_claims(session, principal_id)
            return work(session)

    def _attempt_elevated(self, work: UnitOfWork[T]) -> T:
        # Without a service-level credential, system work uses the plain pool identity.
        factory = self._elevated_factory or self._scoped_factory
        with sessions.session_scope(factory) as session:
            return work(session)


_gateway: Optional[StorageGateway] = None


def get_storage_gateway() -> StorageGateway:
    """Process-wide gateway bound to the configured engines."""
    global _gateway
    if _gateway is None:
        sessions.init_session_factories()
        elevated = (
            sessions.ElevatedSessionLocal if sessions.ElevatedSessionLocal.kw.get("bind") else None
        )
        _gateway = StorageGateway(sessions.ScopedSessionLocal, elevated)
    return _gateway


__all__ = ["StorageGateway", "UnitOfWork", "get_storage_gateway"]
