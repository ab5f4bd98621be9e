import asyncio
import threading
from datetime import datetime, time, timedelta

import pytest

import config
from tables.appointments import Appointment

from repository.queue import QueueRepo
from tables.queue_entries import CANCELLED, IN_PROGRESS
from utils.queue_engine import QueueService
from utils import scheduler
from utils.scheduler import close_shop, run_converter_tick, run_sweep_tick
from utils.shop_time import seconds_until_shop_time, shop_today, to_shop_local, utcnow


def test_closing_cancels_open_entries_and_takes_barbers_offline(db, seed, auth_headers):
    auth_headers(seed.barber_user)
    a, _ = QueueService.join(db, seed.barber.id, seed.haircut.id, "A")
    b, _ = QueueService.join(db, seed.barber.id, seed.haircut.id, "B")
    c, _ = QueueService.join(db, seed.barber.id, seed.haircut.id, "C")
    QueueService.call_next(db, seed.barber.id, a.id)

    assert close_shop(db) == 2

    db.expire_all()
    assert QueueRepo.get(db, a.id).status == IN_PROGRESS
    assert QueueRepo.get(db, b.id).status == CANCELLED
    assert QueueRepo.get(db, c.id).status == CANCELLED
    assert seed.barber.is_available is False
    assert seed.barber.is_active is False
    assert seed.barber_user.current_session_id is None


def test_seconds_until_closing_later_today():
    now = datetime(2030, 3, 14, 2, 0)  # 10:00 in Manila
    assert seconds_until_shop_time(time(19, 0), now) == 9 * 3600


def test_seconds_until_closing_rolls_to_next_day():
    now = datetime(2030, 3, 14, 11, 30)  # 19:30 in Manila
    assert seconds_until_shop_time(time(19, 0), now) == pytest.approx(23.5 * 3600)


def test_shop_today_crosses_utc_midnight():
    now = datetime(2030, 3, 14, 17, 0)  # 01:00 on the 15th in Manila
    assert shop_today(now).day == 15
    assert to_shop_local(now).hour == 1


def test_converter_tick_converts_and_notifies(db, seed, session_factory, monkeypatch):
    monkeypatch.setattr(config, "SessionLocal", session_factory)
    start = utcnow() + timedelta(minutes=20)
    db.add(Appointment(
        barber_id=seed.barber.id, service_id=seed.haircut.id, customer_name="Ana Cruz",
        scheduled_time=start, end_time=start + timedelta(minutes=30),
    ))
    db.commit()

    asyncio.run(run_converter_tick())

    db.expire_all()
    [entry] = QueueRepo.active_for_barber(db, seed.barber.id)
    assert entry.is_vip is True
    assert entry.notified_up_next is True


def test_ticks_run_store_work_off_the_event_loop_thread(session_factory, monkeypatch):
    monkeypatch.setattr(config, "SessionLocal", session_factory)
    seen = []

    def convert(db):
        seen.append(threading.get_ident())
        return []

    def pending(db, limit=100):
        seen.append(threading.get_ident())
        return []

    monkeypatch.setattr(scheduler, "convert_due_appointments", convert)
    monkeypatch.setattr(QueueRepo, "pending_notifications", staticmethod(pending))

    asyncio.run(run_converter_tick())
    asyncio.run(run_sweep_tick())

    assert len(seen) == 2
    assert threading.get_ident() not in seen
