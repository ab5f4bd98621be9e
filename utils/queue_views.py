# utils/queue_views.py - Read-only projections of a barber's queue
from sqlalchemy.orm import Session

from models.queue import NextAppointment, PublicQueueItem, QueueDetailsResponse, QueueEntryResponse
from repository.appointments import AppointmentRepo
from repository.queue import QueueRepo
from tables.queue_entries import WAITING
from utils.shop_time import shop_today, to_shop_local, utcnow


def queue_details(db: Session, barber_id: int, now=None) -> QueueDetailsResponse:
    """Barber dashboard, including the next appointment for the safety gap warning"""
    now = now or utcnow()
    in_progress = QueueRepo.in_progress(db, barber_id)
    up_next = QueueRepo.up_next(db, barber_id)

    next_appointment = None
    appointment = AppointmentRepo.next_unconverted(db, barber_id, now)
    if appointment is not None:
        next_appointment = NextAppointment(
            id=appointment.id,
            customer_name=appointment.customer_name,
            scheduled_time=to_shop_local(appointment.scheduled_time),
            service_name=appointment.service.name if appointment.service else None,
            duration_minutes=appointment.service.duration_minutes if appointment.service else None,
        )

    return QueueDetailsResponse(
        waiting=[QueueEntryResponse.from_orm(e) for e in QueueRepo.waiting(db, barber_id)],
        in_progress=QueueEntryResponse.from_orm(in_progress) if in_progress else None,
        up_next=QueueEntryResponse.from_orm(up_next) if up_next else None,
        next_appointment=next_appointment,
    )


def public_queue(db: Session, barber_id: int, now=None):
    """
    Customer-facing board: In Progress and Up Next first, then the waiting
    line merged with today's not-yet-converted appointments shown as
    anonymous ``Reserved`` rows at their scheduled time.
    """
    now = now or utcnow()
    entries = QueueRepo.active_for_barber(db, barber_id)

    active, waiting = [], []
    for entry in entries:
        item = PublicQueueItem(
            id=entry.id,
            customer_name=entry.customer_name,
            status=entry.status,
            is_vip=entry.is_vip,
            head_count=entry.head_count,
            duration_minutes=entry.service.duration_minutes if entry.service else None,
            created_at=entry.created_at,
        )
        (waiting if entry.status == WAITING else active).append(item)

    for appointment in AppointmentRepo.unconverted_for_day(db, barber_id, shop_today(now)):
        waiting.append(PublicQueueItem(
            id=f"appt_{appointment.id}",
            customer_name="Reserved Slot",
            status="Reserved",
            created_at=appointment.scheduled_time,
            is_ghost=True,
            display_time=to_shop_local(appointment.scheduled_time).strftime("%I:%M %p"),
        ))

    waiting.sort(key=lambda item: (not item.is_vip, item.created_at))
    return active + waiting
