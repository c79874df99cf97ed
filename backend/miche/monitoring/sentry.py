# backend/miche/monitoring/sentry.py
from __future__ import annotations

import logging
from typing import Any, Mapping

import sentry_sdk
from sentry_sdk.integrations.celery import CeleryIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from ..core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_TRACES_SAMPLE_RATE = 0.1
FAILED_REQUEST_STATUS_CODES = {403, *range(500, 600)}

_UNSAMPLED_PATH_SUFFIXES = ("/health", "/metrics")


def _extract_sampling_path(sampling_context: Mapping[str, Any]) -> str | None:
    scope = sampling_context.get("asgi_scope")
    if isinstance(scope, Mapping):
        path = scope.get("path")
        if isinstance(path, str):
            return path
    return None


def _traces_sampler(sampling_context: Mapping[str, Any]) -> float:
    path = _extract_sampling_path(sampling_context)
    if path and (path.rstrip("/") or "/").endswith(_UNSAMPLED_PATH_SUFFIXES):
        return 0.0
    return DEFAULT_TRACES_SAMPLE_RATE


def init_sentry() -> bool:
    """Initialise Sentry for the API process and Celery workers. No-op without a DSN."""
    dsn = (settings.sentry_dsn or "").strip()
    if not dsn:
        logger.debug("Sentry disabled: SENTRY_DSN not set")
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=settings.environment,
        integrations=[
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            FastApiIntegration(
                transaction_style="endpoint",
                failed_request_status_codes=FAILED_REQUEST_STATUS_CODES,
            ),
            CeleryIntegration(monitor_beat_tasks=True),
        ],
        send_default_pii=False,
        traces_sampler=_traces_sampler,
    )
    logger.info("Sentry initialized")
    return True
