"""Session factories for the caller-scoped and elevated storage paths."""

from __future__ import annotations

from contextlib import contextmanager
import json
import logging
from typing import Generator, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session, sessionmaker

from ..core.config import settings
from .engines import get_elevated_engine, get_scoped_engine

logger = logging.getLogger(__name__)

# Units of work hand their ORM objects back to services after the session closes
ScopedSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False)
ElevatedSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False)

_bound = False


def init_session_factories() -> None:
    """Bind session factories to their engines (idempotent)."""
    global _bound
    if _bound:
        return
    ScopedSessionLocal.configure(bind=get_scoped_engine())
    elevated_engine = get_elevated_engine()
    if elevated_engine is not None:
        ElevatedSessionLocal.configure(bind=elevated_engine)
    else:
        logger.info("Elevated storage path not configured; scoped writes will not fall back")
    _bound = True


def apply_caller_claims(session: Session, principal_id: str, email: Optional[str] = None) -> None:
    """
    Make row-level security policies evaluate against the caller.

    Both settings are transaction-local, so they vanish on commit or rollback
    and never leak to the next checkout of the pooled connection.
    """
    bind = session.get_bind()
    if bind.dialect.name != "postgresql":
        return
    claims = {"sub": principal_id, "role": settings.db_caller_role}
    if email:
        claims["email"] = email
    session.execute(
        text("SELECT set_config('request.jwt.claims', :claims, true)"),
        {"claims": json.dumps(claims)},
    )
    session.execute(
        text("SELECT set_config('role', :role, true)"),
        {"role": settings.db_caller_role},
    )


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = [
    "ScopedSessionLocal",
    "ElevatedSessionLocal",
    "init_session_factories",
    "apply_caller_claims",
    "session_scope",
]
