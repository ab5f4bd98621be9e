import asyncio
import json

import httpx

import config
from repository.queue import QueueRepo
from tables.queue_entries import WAITING, UP_NEXT
from utils import email_webhook
from utils.firebase_service import FirebaseService
from utils.notification_service import NotificationService, UpNextDispatcher
from utils.queue_engine import QueueService


def join(db, seed, name, vip=False, email=None, push_token=None):
    entry, promoted = QueueService.join(
        db, seed.barber.id, seed.haircut.id, name,
        customer_email=email, is_vip=vip, push_token=push_token
    )
    return entry, promoted


def notified(db, entry_id):
    db.expire_all()
    return QueueRepo.get(db, entry_id).notified_up_next


def test_successful_dispatch_marks_entry(db, seed, dispatcher):
    entry, _ = join(db, seed, "A")

    assert asyncio.run(NotificationService.process_up_next(db, entry.id, dispatcher)) is True
    assert dispatcher.sent == [entry.id]
    assert notified(db, entry.id) is True


def test_already_notified_entry_is_not_sent_twice(db, seed, dispatcher):
    entry, _ = join(db, seed, "A")
    asyncio.run(NotificationService.process_up_next(db, entry.id, dispatcher))

    assert asyncio.run(NotificationService.process_up_next(db, entry.id, dispatcher)) is False
    assert dispatcher.sent == [entry.id]


def test_waiting_entry_is_not_notified(db, seed, dispatcher):
    join(db, seed, "A")
    waiting, _ = join(db, seed, "B")
    assert waiting.status == WAITING
    assert asyncio.run(NotificationService.process_up_next(db, waiting.id, dispatcher)) is False
    assert dispatcher.sent == []


def test_failed_dispatch_leaves_flag_for_the_sweep(db, seed, dispatcher):
    dispatcher.failures = 1
    entry, _ = join(db, seed, "A")

    assert asyncio.run(NotificationService.process_up_next(db, entry.id, dispatcher)) is False
    assert notified(db, entry.id) is False
    assert QueueRepo.get(db, entry.id).status == UP_NEXT

    assert asyncio.run(NotificationService.sweep(db, dispatcher)) == 1
    assert notified(db, entry.id) is True
    assert asyncio.run(NotificationService.sweep(db, dispatcher)) == 0


def test_sweep_keeps_retrying_until_delivery(db, seed, dispatcher):
    dispatcher.failures = 3
    entry, _ = join(db, seed, "A")

    results = [asyncio.run(NotificationService.sweep(db, dispatcher)) for _ in range(4)]

    assert results == [0, 0, 0, 1]
    assert notified(db, entry.id) is True


def test_bumped_entry_is_notified_again_on_repromotion(db, seed, dispatcher):
    regular, _ = join(db, seed, "R")
    asyncio.run(NotificationService.sweep(db, dispatcher))
    vip, _ = join(db, seed, "V", vip=True)

    asyncio.run(NotificationService.sweep(db, dispatcher))
    assert dispatcher.sent == [regular.id, vip.id]
    assert notified(db, regular.id) is False

    QueueService.call_next(db, seed.barber.id, vip.id)
    asyncio.run(NotificationService.sweep(db, dispatcher))
    assert dispatcher.sent == [regular.id, vip.id, regular.id]


def test_background_dispatch_uses_its_own_session(db, seed, session_factory, dispatcher):
    entry, promoted = join(db, seed, "A")

    asyncio.run(NotificationService.dispatch_promoted(session_factory, [e.id for e in promoted], dispatcher))

    assert dispatcher.sent == [entry.id]
    assert notified(db, entry.id) is True


def test_unconfigured_channels_count_as_delivered(db, seed, monkeypatch):
    monkeypatch.setattr(config, "N8N_WEBHOOK_URL", None)
    entry, _ = join(db, seed, "A", email="ana@example.com")

    assert asyncio.run(NotificationService.process_up_next(db, entry.id, UpNextDispatcher())) is True


def _mock_webhook(monkeypatch, handler):
    monkeypatch.setattr(config, "N8N_WEBHOOK_URL", "https://n8n.example.com/webhook/dashq")
    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        email_webhook.httpx, "AsyncClient",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs)
    )


def test_email_webhook_payload(db, seed, monkeypatch):
    received = []

    def handler(request):
        received.append(request)
        return httpx.Response(200, json={"ok": True})

    _mock_webhook(monkeypatch, handler)
    entry, _ = join(db, seed, "Ana", email="ana@example.com")

    assert asyncio.run(NotificationService.process_up_next(db, entry.id, UpNextDispatcher())) is True

    [request] = received
    payload = json.loads(request.content)
    assert payload["type"] == "up_next"
    assert payload["email"] == "ana@example.com"
    assert payload["barberName"] == "Marco Reyes"
    assert payload["serviceName"] == "Haircut"
    assert payload["duration"] == 30


def test_email_webhook_error_is_retried_later(db, seed, monkeypatch):
    _mock_webhook(monkeypatch, lambda request: httpx.Response(503))
    entry, _ = join(db, seed, "Ana", email="ana@example.com")

    assert asyncio.run(NotificationService.process_up_next(db, entry.id, UpNextDispatcher())) is False
    assert notified(db, entry.id) is False


def test_push_failure_is_retried_later(db, seed, monkeypatch):
    async def failing_send(**kwargs):
        return {"success": False, "error": "internal"}

    monkeypatch.setattr(config, "N8N_WEBHOOK_URL", None)
    monkeypatch.setattr(FirebaseService, "send_notification", failing_send)
    entry, _ = join(db, seed, "Ana", push_token="fcm-token-123")

    assert asyncio.run(NotificationService.process_up_next(db, entry.id, UpNextDispatcher())) is False
    assert notified(db, entry.id) is False


def test_unregistered_push_token_is_not_retried(db, seed, monkeypatch):
    calls = []

    async def unregistered(**kwargs):
        calls.append(kwargs["token"])
        return {"success": False, "error": "unregistered_token", "should_remove": True}

    monkeypatch.setattr(config, "N8N_WEBHOOK_URL", None)
    monkeypatch.setattr(FirebaseService, "send_notification", unregistered)
    entry, _ = join(db, seed, "Ana", push_token="stale-token")

    assert asyncio.run(NotificationService.process_up_next(db, entry.id, UpNextDispatcher())) is True
    assert calls == ["stale-token"]
