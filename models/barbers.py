# models/barbers.py - Barber and service listing models
from pydantic import BaseModel
from typing import Optional


class AvailabilityRequest(BaseModel):
    is_available: bool


class BarberResponse(BaseModel):
    id: int
    full_name: str
    is_available: bool
    is_active: bool

    class Config:
        from_attributes = True


class ServiceResponse(BaseModel):
    id: int
    name: str
    duration_minutes: int
    price: Optional[float] = None

    class Config:
        from_attributes = True
