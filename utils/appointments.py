# utils/appointments.py - Booking with a write-time conflict guard
import logging
from datetime import date, datetime, timedelta
from typing import List, Optional
from sqlalchemy.orm import Session

import config
from repository.appointments import AppointmentRepo
from repository.barbers import BarberRepo, ServiceRepo
from tables.appointments import Appointment, CONFIRMED
from utils.errors import ConflictError, NotFoundError, ValidationError
from utils.shop_time import shop_datetime, shop_today, to_shop_local, to_utc_naive, utcnow
from utils.slots import compute_slots

logger = logging.getLogger(__name__)


def _service_duration(service) -> int:
    return service.duration_minutes or config.DEFAULT_SERVICE_DURATION


class AppointmentService:

    @staticmethod
    def available_slots(
        db: Session,
        barber_id: int,
        slot_date: date,
        service_id: int,
        now: Optional[datetime] = None,
    ) -> List[str]:
        if BarberRepo.get(db, barber_id) is None:
            raise ValidationError(f"Unknown barber {barber_id}.")
        service = ServiceRepo.get_active(db, service_id)
        if service is None:
            raise ValidationError(f"Unknown service {service_id}.")

        booked = [
            (a.scheduled_time, a.end_time)
            for a in AppointmentRepo.confirmed_for_day(db, barber_id, slot_date)
        ]
        return compute_slots(slot_date, _service_duration(service), booked, now=now)

    @staticmethod
    def book(
        db: Session,
        barber_id: int,
        service_id: int,
        start: datetime,
        customer_name: str,
        customer_email: Optional[str] = None,
        user_id: Optional[int] = None,
        now: Optional[datetime] = None,
        customer_phone: Optional[str] = None,
        push_token: Optional[str] = None,
    ) -> Appointment:
        """
        Book [start, start + duration). Naive ``start`` is read as shop-local.

        The conflict check runs again here, under the barber row lock, so
        two customers racing for the same slot cannot both win; the loser
        gets ConflictError.
        """
        customer_name = (customer_name or "").strip()
        if not customer_name:
            raise ValidationError("Customer name is required.")
        if start is None:
            raise ValidationError("Scheduled time is required.")

        now = now or utcnow()
        start_utc = to_utc_naive(start)
        local_start = to_shop_local(start_utc)

        if local_start.date() <= shop_today(now):
            raise ValidationError("Appointments must be booked at least 1 day in advance.")

        service = ServiceRepo.get_active(db, service_id)
        if service is None:
            raise ValidationError(f"Unknown service {service_id}.")
        end_utc = start_utc + timedelta(minutes=_service_duration(service))

        day = local_start.date()
        if start_utc < shop_datetime(day, config.SHOP_OPENING_TIME) or \
                end_utc > shop_datetime(day, config.SHOP_CLOSING_TIME):
            raise ValidationError("Appointment must be within business hours.")

        if BarberRepo.lock(db, barber_id) is None:
            raise ValidationError(f"Unknown barber {barber_id}.")

        conflict = AppointmentRepo.conflicts(db, barber_id, start_utc, end_utc).first()
        if conflict is not None:
            db.rollback()
            raise ConflictError("Slot was just taken. Please choose another.")

        appointment = Appointment(
            barber_id=barber_id,
            service_id=service_id,
            user_id=user_id,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone,
            push_token=push_token,
            scheduled_time=start_utc,
            end_time=end_utc,
            status=CONFIRMED,
            is_converted_to_queue=False,
        )
        AppointmentRepo.insert(db, appointment)
        db.commit()
        db.refresh(appointment)

        logger.info(f"[Appointment] Booked #{appointment.id} for {customer_name} on {local_start.isoformat()}")
        return appointment

    @staticmethod
    def reject(db: Session, appointment_id: int, barber_id: int, reason: Optional[str] = None) -> Appointment:
        """Barber cancels a confirmed appointment. Terminal."""
        appointment = AppointmentRepo.get(db, appointment_id)
        if appointment is None or appointment.barber_id != barber_id:
            raise NotFoundError(f"Appointment #{appointment_id} not found.")

        if not AppointmentRepo.cancel(db, appointment_id, reason):
            db.rollback()
            raise NotFoundError(f"Appointment #{appointment_id} is not confirmed.")
        db.commit()
        db.refresh(appointment)

        logger.info(f"[Reject] Barber {barber_id} cancelled appointment #{appointment_id}")
        return appointment
