# tables/services.py - Haircut services offered by the shop
from sqlalchemy import Column, Integer, String, Boolean, Float
from config import Base

class Service(Base):
    __tablename__ = 'services'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=30)
    price = Column(Float, nullable=False, default=0)
    is_active = Column(Boolean, default=True)
