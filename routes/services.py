# routes/services.py - Service menu
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from config import get_db
from models.barbers import ServiceResponse
from repository.barbers import ServiceRepo


router = APIRouter(prefix="/services", tags=["Services"])

@router.get("", response_model=List[ServiceResponse])
def list_services(db: Session = Depends(get_db)):
    return [ServiceResponse.from_orm(s) for s in ServiceRepo.list_active(db)]
