# tables/queue_entries.py - Live walk-in queue, one lane per barber
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from config import Base
import datetime

WAITING = "Waiting"
UP_NEXT = "Up Next"
IN_PROGRESS = "In Progress"
DONE = "Done"
CANCELLED = "Cancelled"

ACTIVE_STATUSES = (WAITING, UP_NEXT, IN_PROGRESS)
REMOVABLE_STATUSES = (WAITING, UP_NEXT)

_ACTIVE_SQL = "status IN ('Waiting', 'Up Next', 'In Progress') AND user_id IS NOT NULL"

class QueueEntry(Base):
    __tablename__ = 'queue_entries'
    __table_args__ = (
        # One chair and one Up Next slot per barber, one active entry per user
        Index(
            "uq_queue_in_progress_per_barber", "barber_id", unique=True,
            sqlite_where=text("status = 'In Progress'"),
            postgresql_where=text("status = 'In Progress'"),
        ),
        Index(
            "uq_queue_up_next_per_barber", "barber_id", unique=True,
            sqlite_where=text("status = 'Up Next'"),
            postgresql_where=text("status = 'Up Next'"),
        ),
        Index(
            "uq_queue_active_per_user", "user_id", unique=True,
            sqlite_where=text(_ACTIVE_SQL),
            postgresql_where=text(_ACTIVE_SQL),
        ),
        Index("ix_queue_barber_status", "barber_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    barber_id = Column(Integer, ForeignKey("barber_profiles.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    customer_name = Column(String(120), nullable=False)
    customer_phone = Column(String(40), nullable=True)
    customer_email = Column(String(255), nullable=True)
    head_count = Column(Integer, default=1, nullable=False)
    is_vip = Column(Boolean, default=False, nullable=False)
    status = Column(String(20), default=WAITING, nullable=False)

    notified_up_next = Column(Boolean, default=False, nullable=False)
    is_confirmed = Column(Boolean, default=False, nullable=False)  # customer is on the way
    reference_image_url = Column(String(500), nullable=True)
    push_token = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    barber = relationship("BarberProfile")
    service = relationship("Service")
