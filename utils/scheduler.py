# utils/scheduler.py - Periodic jobs run inside the API process
"""
Three loops started from the FastAPI lifespan: the appointment converter,
the Up Next notification sweep, and the cleanup at closing time. Each tick
opens its own session, and the store work runs in the threadpool so a
barber row lock held by a request never stalls the event loop. The
converter and sweep are flag-guarded, so running several API instances at
once only duplicates work, never state.
"""
import asyncio
import logging
from typing import List
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

import config
from repository.barbers import BarberRepo
from repository.queue import QueueRepo
from repository.users import SessionRepo, UserRepo
from utils.converter import convert_due_appointments
from utils.notification_service import NotificationService
from utils.shop_time import seconds_until_shop_time

logger = logging.getLogger(__name__)


def close_shop(db: Session) -> int:
    """Cancel everyone still waiting and take every barber offline"""
    cancelled = QueueRepo.cancel_open_entries(db)
    BarberRepo.set_all_offline(db)
    UserRepo.clear_session_markers(db)
    db.commit()
    SessionRepo.cleanup_old_sessions(db)
    logger.info(f"[Closing] Cancelled {cancelled} open queue entries, barbers set offline")
    return cancelled


def _convert_due_ids(db: Session) -> List[int]:
    return [entry.id for entry in convert_due_appointments(db)]


async def run_converter_tick():
    db = config.SessionLocal()
    try:
        promoted_ids = await run_in_threadpool(_convert_due_ids, db)
        for entry_id in promoted_ids:
            await NotificationService.process_up_next(db, entry_id)
    finally:
        db.close()


async def run_sweep_tick():
    db = config.SessionLocal()
    try:
        await NotificationService.sweep(db)
    finally:
        db.close()


async def _every(name: str, seconds: float, tick):
    logger.info(f"Starting {name} loop (every {seconds}s)")
    while True:
        try:
            await tick()
        except Exception as e:
            logger.error(f"Error in {name} loop: {e}")
        await asyncio.sleep(seconds)


async def _closing_loop():
    logger.info(f"Starting closing cleanup loop (daily at {config.SHOP_CLOSING_TIME})")
    while True:
        await asyncio.sleep(seconds_until_shop_time(config.SHOP_CLOSING_TIME))
        db = config.SessionLocal()
        try:
            await run_in_threadpool(close_shop, db)
        except Exception as e:
            await run_in_threadpool(db.rollback)
            logger.error(f"Error in closing cleanup: {e}")
        finally:
            db.close()


def start_background_jobs() -> List[asyncio.Task]:
    tasks = [
        asyncio.create_task(_every("appointment converter", config.CONVERTER_INTERVAL_SECONDS, run_converter_tick)),
        asyncio.create_task(_every("notification sweep", config.NOTIFICATION_SWEEP_SECONDS, run_sweep_tick)),
    ]
    if config.CLOSING_CLEANUP_ENABLED:
        tasks.append(asyncio.create_task(_closing_loop()))
    return tasks


async def stop_background_jobs(tasks: List[asyncio.Task]):
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
