"""Database engine factories for the two storage access levels."""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import urlparse

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool

from ..core.config import settings

logger = logging.getLogger(__name__)

_BASE_CONNECT_ARGS: dict[str, Any] = {
    "sslmode": "require",
    "keepalives": 1,
    "keepalives_idle": 15,
    "keepalives_interval": 5,
    "keepalives_count": 3,
    "connect_timeout": 5,
    "application_name": "miche_backend",
}


def _should_require_ssl(url: str) -> bool:
    try:
        hostname = urlparse(url).hostname or ""
    except ValueError:
        hostname = ""
    normalized = hostname.lower()
    return "supabase" in normalized


def _build_connect_args(*, db_url: str, pool_name: str) -> dict[str, Any]:
    if not db_url.startswith("postgresql"):
        return {}
    args = dict(_BASE_CONNECT_ARGS)
    args["application_name"] = f"miche_{pool_name.lower()}"
    args["options"] = f"-c statement_timeout={settings.db_statement_timeout_ms}"
    if not _should_require_ssl(db_url):
        args.pop("sslmode", None)
    return args


def _add_pool_events(engine: Engine, pool_name: str) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(_dbapi_connection: Any, _connection_record: Any) -> None:
        logger.info("[%s] Database connection established", pool_name)

    @event.listens_for(engine, "invalidate")
    def _on_invalidate(_dbapi_connection: Any, _connection_record: Any, exception: Any) -> None:
        logger.warning(
            "[%s] Connection invalidated: %s",
            pool_name,
            str(exception) if exception else "unknown",
        )


def _create_engine(db_url: str, *, pool_name: str) -> Engine:
    engine = create_engine(
        db_url,
        poolclass=QueuePool,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=30,
        pool_pre_ping=True,
        future=True,
        connect_args=_build_connect_args(db_url=db_url, pool_name=pool_name),
    )
    _add_pool_events(engine, pool_name)
    return engine


_scoped_engine: Engine | None = None
_elevated_engine: Engine | None = None


def get_scoped_engine() -> Engine:
    """Engine for caller-scoped sessions (row-level security applies)."""
    global _scoped_engine
    if _scoped_engine is None:
        _scoped_engine = _create_engine(settings.database_url, pool_name="Scoped")
    return _scoped_engine


def get_elevated_engine() -> Optional[Engine]:
    """Engine for the service-level credential, or None when it is not configured."""
    global _elevated_engine
    if not settings.elevated_path_configured:
        return None
    if _elevated_engine is None:
        assert settings.elevated_database_url is not None
        _elevated_engine = _create_engine(
            settings.elevated_database_url.get_secret_value(), pool_name="Elevated"
        )
    return _elevated_engine


__all__ = ["get_scoped_engine", "get_elevated_engine"]
