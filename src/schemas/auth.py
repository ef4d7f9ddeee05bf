from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator


UserRole = Literal["admin", "advertiser", "publisher"]


class SignInRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=255)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.lower()


class UserRead(BaseModel):
    id: UUID
    name: str
    email: str
    role: UserRole
    is_active: bool

    class Config:
        from_attributes = True


class SessionResponse(BaseModel):
    token: str
    expires_at: datetime
    user: UserRead
