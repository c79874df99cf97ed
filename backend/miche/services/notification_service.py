# backend/miche/services/notification_service.py
"""
Fire-and-forget booking notifications.

Delivery itself happens in a Celery worker. Enqueueing can fail (broker
down, misconfiguration); that is logged and swallowed here because a
notification problem must never undo or fail a booking transition.
"""

import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(self, enqueue: Optional[Callable[[str], object]] = None):
        self._enqueue = enqueue

    def _default_enqueue(self, booking_id: str) -> object:
        # Imported lazily: the task module imports the service layer
        from ..tasks.booking_tasks import send_booking_confirmation

        return send_booking_confirmation.delay(booking_id)

    def booking_confirmed(self, booking_id: str) -> bool:
        """Queue the confirmation notice. Returns False when it could not be queued."""
        enqueue = self._enqueue or self._default_enqueue
        try:
            enqueue(booking_id)
        except Exception as exc:
            logger.warning(
                "Could not queue confirmation for booking %s: %s", booking_id, exc, exc_info=True
            )
            return False
        logger.debug("Queued confirmation notice for booking %s", booking_id)
        return True
