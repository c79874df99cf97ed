from datetime import timedelta

from miche.core.config import settings
from miche.tasks.beat_schedule import get_beat_schedule
from miche.tasks.celery_app import celery_app


def test_expiry_sweep_is_scheduled():
    entry = get_beat_schedule()["expire-stale-pending-bookings"]

    assert entry["task"] == "miche.tasks.booking_tasks.expire_stale_pending_bookings"
    assert entry["schedule"] == timedelta(minutes=settings.expiry_sweep_interval_minutes)
    assert entry["options"]["queue"] == "bookings"


def test_schedule_is_installed_on_the_app():
    assert "expire-stale-pending-bookings" in celery_app.conf.beat_schedule


def test_notifications_route_to_their_own_queue():
    routes = celery_app.conf.task_routes

    assert routes["miche.tasks.booking_tasks.send_*"] == {"queue": "notifications"}
