# routes/appointments.py - Slot lookup, booking and barber rejection
import logging
from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session
from datetime import date
from typing import List
from config import get_db, get_session_factory
from models.appointments import (
    BookAppointmentRequest, RejectAppointmentRequest, SlotsResponse, AppointmentResponse
)
from repository.appointments import AppointmentRepo
from repository.users import get_current_user
from tables.appointments import Appointment
from tables.users import Users
from utils.appointments import AppointmentService
from utils.notification_service import AppointmentNotifier
from utils.queue_engine import require_barber_owner
from utils.shop_time import to_shop_local, utcnow


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])

def to_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        barber_id=appointment.barber_id,
        service_id=appointment.service_id,
        user_id=appointment.user_id,
        customer_name=appointment.customer_name,
        customer_email=appointment.customer_email,
        customer_phone=appointment.customer_phone,
        scheduled_time=to_shop_local(appointment.scheduled_time),
        end_time=to_shop_local(appointment.end_time),
        status=appointment.status,
        is_converted_to_queue=appointment.is_converted_to_queue,
        cancellation_reason=appointment.cancellation_reason,
        barber_name=appointment.barber.full_name if appointment.barber else None,
        service_name=appointment.service.name if appointment.service else None,
    )

@router.get("/slots", response_model=SlotsResponse)
def get_slots(
    barber_id: int = Query(...),
    service_id: int = Query(...),
    slot_date: date = Query(..., alias="date", description="Shop-local date, YYYY-MM-DD"),
    db: Session = Depends(get_db)
):
    slots = AppointmentService.available_slots(db, barber_id, slot_date, service_id)
    return SlotsResponse(barber_id=barber_id, service_id=service_id, date=slot_date, slots=slots)

@router.post("/book", response_model=AppointmentResponse)
def book_appointment(
    req: BookAppointmentRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
    current_user: Users = Depends(get_current_user)
):
    appointment = AppointmentService.book(
        db,
        barber_id=req.barber_id,
        service_id=req.service_id,
        start=req.scheduled_time,
        customer_name=req.customer_name,
        customer_email=req.customer_email or current_user.email,
        user_id=current_user.id,
        customer_phone=req.customer_phone,
        push_token=req.push_token,
    )
    background_tasks.add_task(AppointmentNotifier.barber_alert, session_factory, appointment.id)
    return to_response(appointment)

@router.put("/{appointment_id}/reject", response_model=AppointmentResponse)
def reject_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    req: RejectAppointmentRequest = RejectAppointmentRequest(),
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
    current_user: Users = Depends(get_current_user)
):
    """Barber cancels a booked appointment; the customer is emailed"""
    appointment = AppointmentRepo.get(db, appointment_id)
    barber_id = appointment.barber_id if appointment else None
    if barber_id is not None:
        require_barber_owner(db, barber_id, current_user)

    appointment = AppointmentService.reject(db, appointment_id, barber_id, req.reason)
    background_tasks.add_task(AppointmentNotifier.cancellation, session_factory, appointment.id)
    return to_response(appointment)

@router.get("/my", response_model=List[AppointmentResponse])
def my_appointments(
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user)
):
    return [to_response(a) for a in AppointmentRepo.for_user(db, current_user.id)]

@router.get("/barber/{barber_id}", response_model=List[AppointmentResponse])
def barber_appointments(
    barber_id: int,
    db: Session = Depends(get_db),
    current_user: Users = Depends(get_current_user)
):
    """Upcoming confirmed appointments for the barber's schedule"""
    require_barber_owner(db, barber_id, current_user)
    return [to_response(a) for a in AppointmentRepo.upcoming_for_barber(db, barber_id, utcnow())]
