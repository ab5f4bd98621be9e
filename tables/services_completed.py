# tables/services_completed.py - Earnings ledger written when a cut is done
from sqlalchemy import Column, Integer, Float, DateTime, ForeignKey
from config import Base
import datetime

class CompletedService(Base):
    __tablename__ = 'services_completed'

    id = Column(Integer, primary_key=True)
    barber_id = Column(Integer, ForeignKey("barber_profiles.id"), nullable=False, index=True)
    queue_entry_id = Column(Integer, ForeignKey("queue_entries.id"), nullable=False, unique=True)
    price = Column(Float, nullable=False)  # unit price x head count + tip + VIP charge
    head_count = Column(Integer, default=1)
    tip_amount = Column(Float, default=0)
    vip_charge = Column(Float, default=0)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)
