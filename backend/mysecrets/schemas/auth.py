# mysecrets/schemas/auth.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class RegisterIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)


class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class GoogleLoginIn(BaseModel):
    id_token: str = Field(min_length=1)


class RefreshIn(BaseModel):
    # Only used when the client cannot send the HttpOnly cookie.
    refresh_token: Optional[str] = None


class AuthOut(BaseModel):
    user_id: str
    email: str
    first_name: str
    last_name: str
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime


class MeOut(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    is_google_user: bool
    created_at: datetime
    last_login_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MessageOut(BaseModel):
    message: str


class LogoutAllOut(BaseModel):
    message: str
    revoked: int
