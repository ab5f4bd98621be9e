# models/users.py - Account and session models
from pydantic import BaseModel, validator
from typing import Optional, Any

class Register(BaseModel):
    username: str
    password: str
    full_name: str
    email: Optional[str] = None
    phone_number: Optional[str] = None
    is_barber: bool = False

    @validator('username')
    def validate_username(cls, v):
        v = v.strip()
        if len(v) < 3:
            raise ValueError('Username must be at least 3 characters long')
        return v

    @validator('password')
    def validate_password(cls, v):
        if len(v) < 6:
            raise ValueError('Password must be at least 6 characters long')
        return v

    @validator('full_name')
    def validate_full_name(cls, v):
        if not v or not v.strip():
            raise ValueError('Full name is required')
        return v.strip()

class Login(BaseModel):
    username: str
    password: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str
    role: str
    user_id: int
    username: str
    barber_id: Optional[int] = None
    expires_on_logout: bool = True  # Indicate that token doesn't auto-expire

class LogoutRequest(BaseModel):
    """Request model for logout"""
    logout_all_devices: bool = False

class ResponseSchema(BaseModel):
    code: str
    status: str
    message: str
    result: Optional[Any] = None
