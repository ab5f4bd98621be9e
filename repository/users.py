# repository/users.py - Session-based authentication
import secrets
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy.orm import Session
from sqlalchemy import and_
from tables.users import Users
from tables.user_sessions import UserSession
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from config import get_db, SECRET_KEY, ALGORITHM, SESSION_CLEANUP_HOURS, MAX_SESSIONS_PER_USER

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)

class UserRepo:
    @staticmethod
    def insert(db: Session, user: Users):
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def find_by_username(db: Session, username: str):
        return db.query(Users).filter(Users.username == username).first()

    @staticmethod
    def get(db: Session, user_id: int):
        return db.query(Users).filter(Users.id == user_id).first()

    @staticmethod
    def clear_session_markers(db: Session):
        """Release every barber's single-login marker"""
        return db.query(Users).filter(
            Users.current_session_id != None
        ).update({"current_session_id": None}, synchronize_session=False)

class SessionRepo:
    @staticmethod
    def create_session(db: Session, user: Users, device_info: str = None, ip_address: str = None):
        """Create a new session; a barber's newest session becomes the current one"""
        session_token = secrets.token_urlsafe(64)

        SessionRepo.cleanup_user_sessions(db, user.id)

        session = UserSession(
            user_id=user.id,
            session_token=session_token,
            device_info=device_info,
            ip_address=ip_address
        )
        db.add(session)

        if user.is_barber:
            user.current_session_id = session_token
            user.update_date = datetime.utcnow()

        db.commit()
        db.refresh(session)
        return session

    @staticmethod
    def get_session_by_token(db: Session, session_token: str):
        return db.query(UserSession).filter(
            and_(
                UserSession.session_token == session_token,
                UserSession.is_active == True
            )
        ).first()

    @staticmethod
    def update_session_access(db: Session, session: UserSession):
        session.last_accessed = datetime.utcnow()
        db.commit()

    @staticmethod
    def invalidate_session(db: Session, session_token: str):
        """Invalidate a session (logout)"""
        session = db.query(UserSession).filter(
            UserSession.session_token == session_token
        ).first()

        if session:
            session.is_active = False
            db.query(Users).filter(
                and_(
                    Users.id == session.user_id,
                    Users.current_session_id == session_token
                )
            ).update({"current_session_id": None}, synchronize_session=False)
            db.commit()
            return True
        return False

    @staticmethod
    def cleanup_user_sessions(db: Session, user_id: int):
        """Keep only the most recent MAX_SESSIONS_PER_USER sessions"""
        active_sessions = db.query(UserSession).filter(
            and_(
                UserSession.user_id == user_id,
                UserSession.is_active == True
            )
        ).order_by(UserSession.last_accessed.desc()).all()

        if len(active_sessions) >= MAX_SESSIONS_PER_USER:
            for session in active_sessions[MAX_SESSIONS_PER_USER-1:]:
                session.is_active = False
            db.commit()

    @staticmethod
    def cleanup_old_sessions(db: Session):
        """Clean up very old inactive sessions"""
        cutoff_date = datetime.utcnow() - timedelta(hours=SESSION_CLEANUP_HOURS)
        db.query(UserSession).filter(
            and_(
                UserSession.last_accessed < cutoff_date,
                UserSession.is_active == False
            )
        ).delete()
        db.commit()

class JWTRepo:
    @staticmethod
    def generate_session_token(session_token: str):
        """JWT that only carries a session reference; it dies with the session"""
        payload = {
            "session": session_token,
            "type": "session"
        }
        return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)

    @staticmethod
    def verify_session_token(token: str):
        try:
            payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
            session_token = payload.get("session")
            token_type = payload.get("type")

            if session_token is None or token_type != "session":
                raise JWTError("Invalid token format")

            return session_token
        except JWTError:
            return None

def _resolve_session(db: Session, token: str) -> UserSession:
    session_token = JWTRepo.verify_session_token(token)
    if session_token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    session = SessionRepo.get_session_by_token(db, session_token)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired or invalid",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session

def get_current_session(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
):
    """Get current session object"""
    return _resolve_session(db, credentials.credentials)

def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
):
    """Get current user from session token"""
    session = _resolve_session(db, credentials.credentials)
    SessionRepo.update_session_access(db, session)

    user = UserRepo.get(db, session.user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user

def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
    db: Session = Depends(get_db)
) -> Optional[Users]:
    """Walk-ins may join without an account; a bad token is still rejected"""
    if credentials is None:
        return None
    return get_current_user(credentials, db)
