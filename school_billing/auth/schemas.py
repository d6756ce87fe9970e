from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from school_billing.core.enums import UserRole


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.staff


class RegisterResponse(BaseModel):
    success: bool
    message: str
    user_id: int = Field(..., serialization_alias="userId")


class LoginRequest(BaseModel):
    username: str
    password: str


class UserInfo(BaseModel):
    id: int
    username: str
    email: str
    role: str


class LoginResponse(BaseModel):
    success: bool = True
    message: str = "Login successful"
    token: str
    token_type: str = "bearer"
    user: UserInfo
    issued_at: datetime


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for role checks."""

    id: int
    username: str
    role: str
