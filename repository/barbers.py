# repository/barbers.py - Barber profile and service lookups
from typing import List, Optional
from sqlalchemy.orm import Session
from tables.barbers import BarberProfile
from tables.services import Service


class BarberRepo:
    @staticmethod
    def get(db: Session, barber_id: int) -> Optional[BarberProfile]:
        return db.query(BarberProfile).filter(BarberProfile.id == barber_id).first()

    @staticmethod
    def lock(db: Session, barber_id: int) -> Optional[BarberProfile]:
        """Row lock serializing writes for one barber (no-op on SQLite, which serializes writers)"""
        return db.query(BarberProfile).filter(
            BarberProfile.id == barber_id
        ).with_for_update().first()

    @staticmethod
    def list_all(db: Session) -> List[BarberProfile]:
        return db.query(BarberProfile).order_by(BarberProfile.full_name).all()

    @staticmethod
    def set_all_offline(db: Session) -> int:
        return db.query(BarberProfile).filter(
            (BarberProfile.is_active == True) | (BarberProfile.is_available == True)
        ).update({"is_active": False, "is_available": False}, synchronize_session=False)


class ServiceRepo:
    @staticmethod
    def get(db: Session, service_id: int) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id).first()

    @staticmethod
    def get_active(db: Session, service_id: int) -> Optional[Service]:
        return db.query(Service).filter(
            Service.id == service_id, Service.is_active == True
        ).first()

    @staticmethod
    def list_active(db: Session) -> List[Service]:
        return db.query(Service).filter(Service.is_active == True).order_by(Service.name).all()
