from miche.services.notification_service import NotificationDispatcher


def test_enqueues_booking_id():
    sent = []

    assert NotificationDispatcher(enqueue=sent.append).booking_confirmed("B1") is True
    assert sent == ["B1"]


def test_enqueue_failure_is_reported_not_raised(caplog):
    def broken(booking_id):
        raise ConnectionError("broker unreachable")

    assert NotificationDispatcher(enqueue=broken).booking_confirmed("B1") is False
    assert "Could not queue confirmation for booking B1" in caplog.text


def test_default_enqueue_uses_celery_task(monkeypatch):
    from miche.tasks import booking_tasks

    queued = []

    class _Task:
        delay = staticmethod(queued.append)

    monkeypatch.setattr(booking_tasks, "send_booking_confirmation", _Task)

    assert NotificationDispatcher().booking_confirmed("B2") is True
    assert queued == ["B2"]
