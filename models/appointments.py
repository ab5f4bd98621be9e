# models/appointments.py - Appointment request and response models
from pydantic import BaseModel, validator
from datetime import datetime, date
from typing import Optional, List


class BookAppointmentRequest(BaseModel):
    barber_id: int
    service_id: int
    scheduled_time: datetime  # naive values are shop-local
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    push_token: Optional[str] = None

    @validator('customer_name')
    def validate_customer_name(cls, v):
        if not v or not v.strip():
            raise ValueError('Customer name is required')
        return v.strip()


class RejectAppointmentRequest(BaseModel):
    reason: Optional[str] = None

    @validator('reason')
    def validate_reason(cls, v):
        if v and len(v) > 200:
            raise ValueError('Reason cannot exceed 200 characters')
        return v


class SlotsResponse(BaseModel):
    barber_id: int
    service_id: int
    date: date
    slots: List[str]


class AppointmentResponse(BaseModel):
    id: int
    barber_id: int
    service_id: int
    user_id: Optional[int] = None
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    scheduled_time: datetime
    end_time: datetime
    status: str
    is_converted_to_queue: bool
    cancellation_reason: Optional[str] = None
    barber_name: Optional[str] = None
    service_name: Optional[str] = None
