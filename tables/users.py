# tables/users.py - Accounts for customers, barbers and admins
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from config import Base
import datetime

class Users(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    username = Column(String, unique=True, index=True)
    password = Column(String)
    email = Column(String, nullable=True)
    phone_number = Column(String, nullable=True)
    full_name = Column(String)
    is_barber = Column(Boolean, default=False)
    is_admin = Column(Boolean, default=False)
    create_date = Column(DateTime, default=datetime.datetime.utcnow)
    update_date = Column(DateTime)

    # Marker for the single concurrent barber login; cleared when the barber goes unavailable
    current_session_id = Column(String(255), nullable=True)

    # Relationships
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")
    barber_profile = relationship("BarberProfile", back_populates="user", uselist=False)
