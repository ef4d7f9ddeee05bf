from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator


class SubmissionFile(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1, max_length=100)
    size: int = Field(0, ge=0)
    # Optional per-file copy, e.g. {"from_lines": "...", "subject_lines": "..."}
    metadata: dict[str, Any] | None = None


class SubmissionCreate(BaseModel):
    offer_id: UUID
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    company_name: str | None = Field(None, max_length=255)
    telegram_id: str | None = Field(None, max_length=64)
    creative_type: str = Field(..., min_length=1, max_length=50)
    priority: Literal["high", "medium"] = "medium"
    from_lines: str | None = None
    subject_lines: str | None = None
    additional_notes: str | None = None
    files: list[SubmissionFile] = Field(default_factory=list, max_length=50)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("telegram_id")
    @classmethod
    def _blank_telegram_is_none(cls, v: str | None) -> str | None:
        return (v or "").strip() or None


class SubmissionResponse(BaseModel):
    success: bool = True
    request_id: UUID
    tracking_code: str


class TrackedCreative(BaseModel):
    id: UUID
    name: str
    url: str
    type: str
    format: str | None
    status: str

    class Config:
        from_attributes = True


class TrackResponse(BaseModel):
    id: UUID
    tracking_code: str
    offer_name: str
    creative_type: str
    priority: str
    status: str
    approval_stage: str
    admin_comments: str | None
    advertiser_comments: str | None
    submitted_at: datetime
    updated_at: datetime
    files: list[TrackedCreative] = Field(default_factory=list)
