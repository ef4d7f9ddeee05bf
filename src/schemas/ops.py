from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from src.schemas.creative_request import CreativeRead
from src.schemas.job import JobRead


class HourlyBucket(BaseModel):
    hour: str
    created: int
    completed: int
    failed: int


class OpsMetricsResponse(BaseModel):
    active_jobs: int
    failed_last_24h: int
    dead_total: int
    error_rate: float
    avg_duration_ms: float | None
    audit_logs_last_24h: int
    stuck_scanning: int
    hourly: list[HourlyBucket] = Field(default_factory=list)
    active: list[JobRead] = Field(default_factory=list)
    failed: list[JobRead] = Field(default_factory=list)
    recent: list[JobRead] = Field(default_factory=list)


class StuckCreativesResponse(BaseModel):
    items: list[CreativeRead] = Field(default_factory=list)
    threshold_minutes: int


class ResetStuckResponse(BaseModel):
    success: bool = True
    reset: int
    ids: list[UUID] = Field(default_factory=list)


class AuditLogRead(BaseModel):
    id: UUID
    user_id: UUID | None
    action: str
    entity_type: str | None
    entity_id: str | None
    details: dict[str, Any] | None
    ip_address: str | None
    user_agent: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogListResponse(BaseModel):
    items: list[AuditLogRead] = Field(default_factory=list)
    total: int
    page: int
    page_size: int
