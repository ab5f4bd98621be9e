# repository/appointments.py - Store primitives for appointments
from datetime import datetime, timedelta, date
from typing import List, Optional
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import and_
from tables.appointments import Appointment, CONFIRMED, CANCELLED
from utils.shop_time import shop_day_bounds


class AppointmentRepo:
    @staticmethod
    def get(db: Session, appointment_id: int) -> Optional[Appointment]:
        return db.query(Appointment).filter(Appointment.id == appointment_id).first()

    @staticmethod
    def conflicts(db: Session, barber_id: int, start: datetime, end: datetime):
        """Confirmed appointments overlapping the half-open interval [start, end)"""
        return db.query(Appointment).filter(
            and_(
                Appointment.barber_id == barber_id,
                Appointment.status == CONFIRMED,
                Appointment.scheduled_time < end,  # existing start < new end
                Appointment.end_time > start       # existing end > new start
            )
        )

    @staticmethod
    def confirmed_for_day(db: Session, barber_id: int, day: date) -> List[Appointment]:
        day_start, day_end = shop_day_bounds(day)
        return AppointmentRepo.conflicts(db, barber_id, day_start, day_end).order_by(
            Appointment.scheduled_time
        ).all()

    @staticmethod
    def insert(db: Session, appointment: Appointment) -> Appointment:
        db.add(appointment)
        db.flush()
        return appointment

    @staticmethod
    def due_for_conversion(db: Session, now: datetime, lead_minutes: int) -> List[Appointment]:
        return db.query(Appointment).filter(
            and_(
                Appointment.status == CONFIRMED,
                Appointment.is_converted_to_queue == False,
                Appointment.scheduled_time >= now,
                Appointment.scheduled_time <= now + timedelta(minutes=lead_minutes)
            )
        ).order_by(Appointment.scheduled_time, Appointment.id).all()

    @staticmethod
    def claim_for_conversion(db: Session, appointment_id: int) -> bool:
        """Flip is_converted_to_queue false -> true; False if someone else already did"""
        matched = db.query(Appointment).filter(
            and_(
                Appointment.id == appointment_id,
                Appointment.status == CONFIRMED,
                Appointment.is_converted_to_queue == False
            )
        ).update({"is_converted_to_queue": True}, synchronize_session=False)
        return matched == 1

    @staticmethod
    def cancel(db: Session, appointment_id: int, reason: Optional[str] = None) -> bool:
        matched = db.query(Appointment).filter(
            and_(Appointment.id == appointment_id, Appointment.status == CONFIRMED)
        ).update(
            {"status": CANCELLED, "cancellation_reason": reason},
            synchronize_session=False
        )
        return matched == 1

    @staticmethod
    def for_user(db: Session, user_id: int) -> List[Appointment]:
        return db.query(Appointment).options(
            joinedload(Appointment.barber), joinedload(Appointment.service)
        ).filter(Appointment.user_id == user_id).order_by(
            Appointment.scheduled_time.desc()
        ).all()

    @staticmethod
    def upcoming_for_barber(db: Session, barber_id: int, since: datetime) -> List[Appointment]:
        return db.query(Appointment).options(joinedload(Appointment.service)).filter(
            and_(
                Appointment.barber_id == barber_id,
                Appointment.status == CONFIRMED,
                Appointment.scheduled_time >= since
            )
        ).order_by(Appointment.scheduled_time.asc()).all()

    @staticmethod
    def unconverted_for_day(db: Session, barber_id: int, day: date) -> List[Appointment]:
        day_start, day_end = shop_day_bounds(day)
        return db.query(Appointment).filter(
            and_(
                Appointment.barber_id == barber_id,
                Appointment.status == CONFIRMED,
                Appointment.is_converted_to_queue == False,
                Appointment.scheduled_time >= day_start,
                Appointment.scheduled_time < day_end
            )
        ).order_by(Appointment.scheduled_time).all()

    @staticmethod
    def next_unconverted(db: Session, barber_id: int, now: datetime) -> Optional[Appointment]:
        return db.query(Appointment).options(joinedload(Appointment.service)).filter(
            and_(
                Appointment.barber_id == barber_id,
                Appointment.status == CONFIRMED,
                Appointment.is_converted_to_queue == False,
                Appointment.scheduled_time > now
            )
        ).order_by(Appointment.scheduled_time.asc()).first()
