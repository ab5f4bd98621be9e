# routes/barbers.py - Barber list and availability toggle
import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from config import get_db
from models.barbers import AvailabilityRequest, BarberResponse
from repository.barbers import BarberRepo
from repository.users import get_current_user, get_current_session
from tables.users import Users
from tables.user_sessions import UserSession
from utils.errors import AuthorizationError
from utils.queue_engine import require_barber_owner


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/barbers", tags=["Barbers"])

@router.get("", response_model=List[BarberResponse])
def list_barbers(db: Session = Depends(get_db)):
    return [BarberResponse.from_orm(b) for b in BarberRepo.list_all(db)]

@router.put("/{barber_id}/availability", response_model=BarberResponse)
def set_availability(
    barber_id: int,
    req: AvailabilityRequest,
    db: Session = Depends(get_db),
    current_session: UserSession = Depends(get_current_session),
    current_user: Users = Depends(get_current_user)
):
    """
    Owner only. The barber's signed-in session holds the marker, and a
    change from any other session is refused. Going unavailable releases it.
    """
    barber = require_barber_owner(db, barber_id, current_user)
    owner = barber.user

    if not current_user.is_admin and owner.current_session_id not in (None, current_session.session_token):
        logger.warning(f"Availability change for barber {barber_id} from a second session of user {current_user.id}")
        raise AuthorizationError("This barber account is signed in on another device.")

    barber.is_available = req.is_available
    if req.is_available:
        barber.is_active = True
        if not current_user.is_admin:
            owner.current_session_id = current_session.session_token
    else:
        owner.current_session_id = None
    db.commit()
    db.refresh(barber)

    logger.info(f"Barber {barber_id} is now {'available' if barber.is_available else 'unavailable'}")
    return BarberResponse.from_orm(barber)
