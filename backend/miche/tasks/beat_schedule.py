# backend/miche/tasks/beat_schedule.py
"""
Celery Beat schedule for Miche Mobile.

Only the pending-booking expiry sweep runs periodically; its interval comes
from ``expiry_sweep_interval_minutes``.
"""

from datetime import timedelta
from typing import Any, Dict

from ..core.config import settings


def get_beat_schedule() -> Dict[str, Dict[str, Any]]:
    return {
        "expire-stale-pending-bookings": {
            "task": "miche.tasks.booking_tasks.expire_stale_pending_bookings",
            "schedule": timedelta(minutes=settings.expiry_sweep_interval_minutes),
            "options": {"queue": "bookings", "expires": settings.expiry_sweep_interval_minutes * 60},
        },
    }
