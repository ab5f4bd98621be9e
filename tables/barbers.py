# tables/barbers.py - Barber profile with customer-visible availability
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from config import Base
import datetime

class BarberProfile(Base):
    __tablename__ = 'barber_profiles'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True)
    full_name = Column(String, nullable=False)
    is_available = Column(Boolean, default=False)  # accepting new queue joins
    is_active = Column(Boolean, default=False)     # logged in / present in the shop
    created_at = Column(DateTime, default=datetime.datetime.utcnow)

    user = relationship("Users", back_populates="barber_profile")
