# routes/users.py - Session-based authentication
import logging
from fastapi import APIRouter, Depends, Request
from models.users import TokenResponse, Register, Login, ResponseSchema, LogoutRequest
from sqlalchemy.orm import Session
from sqlalchemy import and_
from config import get_db
from repository.users import (
    UserRepo, JWTRepo, SessionRepo, get_current_user, get_current_session, pwd_context
)
from tables.barbers import BarberProfile
from tables.users import Users
from tables.user_sessions import UserSession


logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)

def get_client_info(request: Request):
    """Extract client information from request"""
    user_agent = request.headers.get('user-agent', 'Unknown')
    ip_address = request.client.host if request.client else 'Unknown'
    return user_agent[:500], ip_address

def _token_response(user: Users, session: UserSession) -> dict:
    if user.is_admin:
        role = "admin"
    elif user.is_barber:
        role = "barber"
    else:
        role = "customer"

    return TokenResponse(
        access_token=JWTRepo.generate_session_token(session.session_token),
        token_type="bearer",
        role=role,
        user_id=user.id,
        username=user.username,
        barber_id=user.barber_profile.id if user.barber_profile else None,
    ).dict(exclude_none=True)

@router.post('/signup')
async def signup(request: Register, req: Request, db: Session = Depends(get_db)):
    if UserRepo.find_by_username(db, request.username):
        return ResponseSchema(
            code="400",
            status="Error",
            message="Username already exists"
        ).dict(exclude_none=True)

    _user = Users(
        username=request.username,
        password=pwd_context.hash(request.password),
        email=request.email,
        phone_number=request.phone_number,
        full_name=request.full_name,
        is_barber=request.is_barber,
    )
    UserRepo.insert(db, _user)

    if _user.is_barber:
        # New barbers start offline until they toggle availability
        db.add(BarberProfile(user_id=_user.id, full_name=_user.full_name, is_active=True))
        db.commit()
        db.refresh(_user)

    device_info, ip_address = get_client_info(req)
    session = SessionRepo.create_session(db, _user, device_info, ip_address)
    logger.info(f"User {_user.id} registered as {'barber' if _user.is_barber else 'customer'}")

    return ResponseSchema(
        code="200",
        status="OK",
        message="User registered and logged in successfully",
        result=_token_response(_user, session)
    ).dict(exclude_none=True)

@router.post('/login')
async def login(request: Login, req: Request, db: Session = Depends(get_db)):
    _user = UserRepo.find_by_username(db, request.username)

    if not _user or not pwd_context.verify(request.password, _user.password):
        logger.warning(f"Failed login for username {request.username!r}")
        return ResponseSchema(
            code="400",
            status="Bad Request",
            message="Invalid username or password"
        ).dict(exclude_none=True)

    if _user.is_barber and _user.current_session_id and \
            SessionRepo.get_session_by_token(db, _user.current_session_id) is not None:
        logger.warning(f"User {_user.id} attempted a second barber login. Blocking!")
        return ResponseSchema(
            code="409",
            status="Conflict",
            message="This barber account is already signed in on another device."
        ).dict(exclude_none=True)

    device_info, ip_address = get_client_info(req)
    session = SessionRepo.create_session(db, _user, device_info, ip_address)

    if _user.barber_profile is not None:
        _user.barber_profile.is_active = True
        db.commit()
        logger.info(f"Barber {_user.barber_profile.id} logged in, session marker updated")

    return ResponseSchema(
        code="200",
        status="OK",
        message="Login successful",
        result=_token_response(_user, session)
    ).dict(exclude_none=True)

@router.post('/logout')
async def logout(
    request: LogoutRequest = LogoutRequest(),
    db: Session = Depends(get_db),
    current_session: UserSession = Depends(get_current_session),
    current_user: Users = Depends(get_current_user)
):
    """Logout from current session or all sessions. A barber also goes offline."""
    if request.logout_all_devices:
        db.query(UserSession).filter(
            and_(UserSession.user_id == current_user.id, UserSession.is_active == True)
        ).update({"is_active": False}, synchronize_session=False)
        current_user.current_session_id = None
        db.commit()
        message = "Logged out from all devices successfully"
    else:
        SessionRepo.invalidate_session(db, current_session.session_token)
        message = "Logged out successfully"

    barber = current_user.barber_profile
    if barber is not None:
        db.refresh(current_user)
        if current_user.current_session_id is None:
            barber.is_active = False
            barber.is_available = False
            db.commit()
            logger.info(f"Barber {barber.id} logged out and went offline")

    return ResponseSchema(
        code="200",
        status="OK",
        message=message
    ).dict(exclude_none=True)
