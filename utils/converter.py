# utils/converter.py - Move due appointments into the live queue
import logging
from datetime import datetime
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import config
from repository.appointments import AppointmentRepo
from repository.barbers import BarberRepo
from repository.queue import QueueRepo
from tables.appointments import Appointment
from tables.queue_entries import QueueEntry, WAITING, IN_PROGRESS, CANCELLED, REMOVABLE_STATUSES
from utils.queue_engine import PromotionEngine
from utils.shop_time import utcnow

logger = logging.getLogger(__name__)


def _insert_vip_entry(db: Session, appointment: Appointment) -> QueueEntry:
    entry = QueueEntry(
        barber_id=appointment.barber_id,
        service_id=appointment.service_id,
        user_id=appointment.user_id,
        customer_name=f"{appointment.customer_name} (Appointment)",
        customer_email=appointment.customer_email,
        customer_phone=appointment.customer_phone,
        push_token=appointment.push_token,
        head_count=1,
        is_vip=True,
        is_confirmed=True,
        status=WAITING,
    )
    QueueRepo.insert(db, entry)
    logger.info(f"[Converter] Appointment #{appointment.id} -> queue entry #{entry.id}")
    return entry


def _convert_one(db: Session, appointment: Appointment) -> List[QueueEntry]:
    """Claim, insert and promote for one appointment in a single transaction"""
    existing = QueueRepo.active_for_user(db, appointment.user_id) if appointment.user_id else None

    # Customer is in another barber's chair; retry once that cut is done.
    if existing is not None and existing.barber_id != appointment.barber_id and existing.status == IN_PROGRESS:
        logger.warning(
            f"[Converter] Appointment #{appointment.id} deferred: customer is in progress "
            f"with barber {existing.barber_id}"
        )
        return []

    # Both lanes are locked in id order, like every other multi-barber write.
    touched = {appointment.barber_id}
    if existing is not None:
        touched.add(existing.barber_id)
    for barber_id in sorted(touched):
        BarberRepo.lock(db, barber_id)

    if not AppointmentRepo.claim_for_conversion(db, appointment.id):
        db.rollback()
        logger.info(f"[Converter] Appointment #{appointment.id} already converted")
        return []

    changed = set()
    if existing is None:
        _insert_vip_entry(db, appointment)
        changed.add(appointment.barber_id)
    elif existing.barber_id == appointment.barber_id:
        if existing.status in REMOVABLE_STATUSES:
            # Customer walked in early; their live entry takes the appointment's priority.
            if QueueRepo.transition(db, existing.id, REMOVABLE_STATUSES, is_vip=True, is_confirmed=True):
                changed.add(appointment.barber_id)
            db.expire(existing)
        logger.info(f"[Converter] Appointment #{appointment.id} merged into active entry #{existing.id}")
    else:
        # Walk-in with another barber gives way to the booked reservation.
        if not QueueRepo.transition(db, existing.id, REMOVABLE_STATUSES, status=CANCELLED):
            db.rollback()
            logger.warning(f"[Converter] Appointment #{appointment.id} deferred: entry #{existing.id} changed")
            return []
        db.expire(existing)
        logger.info(
            f"[Converter] Appointment #{appointment.id} replaces walk-in #{existing.id} "
            f"with barber {existing.barber_id}"
        )
        _insert_vip_entry(db, appointment)
        changed.update({appointment.barber_id, existing.barber_id})

    promoted = []
    for barber_id in sorted(changed):
        promoted.extend(PromotionEngine.enforce(db, barber_id))
    db.commit()
    return promoted


def convert_due_appointments(db: Session, now: Optional[datetime] = None) -> List[QueueEntry]:
    """
    Convert every confirmed, unconverted appointment starting within the
    lead window. Safe to run concurrently with itself: the conversion flag is
    claimed with a conditional update in the same transaction as the insert.

    Returns the entries promoted to Up Next along the way.
    """
    now = now or utcnow()
    due = AppointmentRepo.due_for_conversion(db, now, config.APPOINTMENT_LEAD_MINUTES)
    if not due:
        return []

    logger.info(f"[Converter] {len(due)} appointment(s) due for conversion")

    promoted = []
    for appointment in due:
        try:
            promoted.extend(_convert_one(db, appointment))
        except IntegrityError:
            db.rollback()
            logger.warning(f"[Converter] Appointment #{appointment.id} hit a concurrent queue write, retrying next tick")
    return promoted
