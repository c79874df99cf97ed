# backend/miche/tasks/booking_tasks.py
"""
Celery tasks for the booking lifecycle.

- ``expire_stale_pending_bookings`` (beat): releases slots held by
  checkouts that were never completed.
- ``send_booking_confirmation``: the notification hand-off queued after a
  booking is confirmed.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Callable, Dict, Optional, ParamSpec, Protocol, TypeVar, cast

from celery.result import AsyncResult
from celery.utils.log import get_task_logger
from sqlalchemy.orm import Session

from ..core.enums import Scope
from ..core.exceptions import ExternalProcessorException
from ..database.gateway import get_storage_gateway
from ..integrations.payment_processor import get_payment_processor
from ..repositories.factory import RepositoryFactory
from .celery_app import celery_app

logger = get_task_logger(__name__)

P = ParamSpec("P")
R = TypeVar("R", covariant=True)


class TaskWrapper(Protocol[P, R]):
    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> R:
        ...

    delay: Callable[..., AsyncResult]
    apply_async: Callable[..., AsyncResult]


def typed_task(
    *task_args: Any, **task_kwargs: Any
) -> Callable[[Callable[P, R]], TaskWrapper[P, R]]:
    """Return a typed Celery task decorator for mypy."""

    return cast(
        Callable[[Callable[P, R]], TaskWrapper[P, R]],
        celery_app.task(*task_args, **task_kwargs),
    )


@typed_task(name="miche.tasks.booking_tasks.expire_stale_pending_bookings", max_retries=0)
def expire_stale_pending_bookings() -> Dict[str, int]:
    """Cancel (or confirm, when paid) bookings left pending past the TTL."""
    from ..services.settlement_service import SettlementService

    try:
        processor = get_payment_processor()
    except ExternalProcessorException as exc:
        logger.warning("Skipping pending-booking sweep: %s", exc.message)
        return {"examined": 0, "confirmed": 0, "cancelled": 0, "skipped": 0}

    service = SettlementService(get_storage_gateway(), processor)
    return asdict(service.sweep_expired_pending())


@typed_task(
    name="miche.tasks.booking_tasks.send_booking_confirmation",
    bind=True,
    max_retries=3,
    default_retry_delay=60,
)
def send_booking_confirmation(self: Any, booking_id: str) -> Optional[Dict[str, Any]]:
    """
    Build the confirmation notice for a confirmed booking and hand it to the
    notification channel (email/push are delivered outside this service).
    """

    def _read(db: Session) -> Optional[Dict[str, Any]]:
        booking = RepositoryFactory.create_booking_repository(db).get_by_id(booking_id)
        if booking is None:
            return None
        return {
            "booking_id": booking.id,
            "client_id": booking.client_id,
            "professional_id": booking.professional_id,
            "service_name": booking.service_name,
            "start_at": booking.start_at.isoformat(),
            "location": booking.location,
            "total_amount": str(booking.total_amount),
            "status": booking.status,
        }

    try:
        notice = get_storage_gateway().run("notify.load_booking", _read, scope=Scope.ELEVATED)
    except Exception as exc:
        raise self.retry(exc=exc)
    if notice is None:
        logger.warning("Confirmation requested for unknown booking %s", booking_id)
        return None
    logger.info("Booking confirmation ready for delivery: %s", notice)
    return notice
