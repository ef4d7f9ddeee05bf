from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


RequestStatus = Literal["new", "pending", "approved", "rejected", "sent-back"]
ApprovalStage = Literal["admin", "advertiser", "completed"]


class CreativeRead(BaseModel):
    id: UUID
    request_id: UUID | None
    name: str
    url: str
    type: str
    size: int
    format: str | None
    status: str
    scan_attempts: int
    last_scan_error: str | None
    status_updated_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True


class CreativeRequestRead(BaseModel):
    id: UUID
    offer_id: UUID | None
    offer_name: str
    creative_type: str
    creative_count: int
    from_lines_count: int
    subject_lines_count: int

    publisher_id: UUID | None
    publisher_name: str
    company_name: str | None
    email: str
    telegram_id: str | None

    advertiser_id: UUID | None
    advertiser_name: str | None

    priority: str
    tracking_code: str
    status: RequestStatus
    approval_stage: ApprovalStage

    admin_status: str
    admin_approved_by: UUID | None
    admin_approved_at: datetime | None
    admin_comments: str | None

    advertiser_status: str | None
    advertiser_responded_by: UUID | None
    advertiser_responded_at: datetime | None
    advertiser_comments: str | None

    from_lines: str | None
    subject_lines: str | None
    additional_notes: str | None

    submitted_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PageMeta(BaseModel):
    page: int
    limit: int
    total: int


class CreativeRequestListResponse(BaseModel):
    data: list[CreativeRequestRead] = Field(default_factory=list)
    meta: PageMeta


class CreativeRequestDetail(CreativeRequestRead):
    creatives: list[CreativeRead] = Field(default_factory=list)


class ReturnRequestBody(BaseModel):
    feedback: str | None = Field(None, max_length=5000)
    reason: str | None = Field(None, max_length=5000)

    @property
    def text(self) -> str | None:
        return self.feedback or self.reason


class StatusHistoryRead(BaseModel):
    id: UUID
    request_id: UUID
    from_status: str | None
    to_status: str
    actor_role: str
    actor_id: UUID | None
    reason: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class AdvertiserActionBody(BaseModel):
    request_id: UUID
    action: Literal["APPROVE", "REJECT"]
    comments: str | None = Field(None, max_length=5000)


class ReasonBody(BaseModel):
    reason: str | None = Field(None, max_length=5000)
    comments: str | None = Field(None, max_length=5000)

    @property
    def text(self) -> str | None:
        return self.reason or self.comments


class TransitionResponse(BaseModel):
    success: bool = True
    id: UUID
    status: RequestStatus
    approval_stage: ApprovalStage
    advertiser_status: str | None
