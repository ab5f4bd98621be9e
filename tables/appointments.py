# tables/appointments.py - Booked slots that later migrate into the live queue
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from config import Base
import datetime

CONFIRMED = "confirmed"
CANCELLED = "cancelled"

class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_barber_window", "barber_id", "status", "scheduled_time"),
    )

    id = Column(Integer, primary_key=True, index=True)
    barber_id = Column(Integer, ForeignKey("barber_profiles.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    customer_name = Column(String(120), nullable=False)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(40), nullable=True)
    push_token = Column(String(500), nullable=True)  # carried onto the queue entry

    # Naive UTC; [scheduled_time, end_time) is the occupied interval
    scheduled_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)

    status = Column(String(20), default=CONFIRMED, nullable=False)  # confirmed, cancelled
    is_converted_to_queue = Column(Boolean, default=False, nullable=False)
    cancellation_reason = Column(String(200), nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)

    barber = relationship("BarberProfile")
    service = relationship("Service")
