from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field


class EverflowFilters(BaseModel):
    status: str | None = "active"
    advertiser_id: str | None = None
    # Everflow page size
    limit: int | None = Field(None, ge=1, le=1000)


class EverflowSyncRequest(BaseModel):
    conflict_resolution: Literal["skip", "update", "merge"] = "update"
    filters: EverflowFilters = Field(default_factory=EverflowFilters)


class EverflowSyncResponse(BaseModel):
    success: bool = True
    job_id: UUID
    status: str


class ActiveJobResponse(BaseModel):
    active: bool
    job_id: UUID | None = None
    status: str | None = None
    progress: int | None = None
    total: int | None = None


class SyncStatusResponse(BaseModel):
    job_id: UUID
    type: str
    status: str
    progress: int
    total: int
    error: str | None
    error_type: str | None
    result: dict[str, Any] | None
    finished_at: datetime | None
    attempt: int
    max_attempts: int
    next_run_at: datetime | None


class EverflowConnectionResponse(BaseModel):
    success: bool
    message: str
    error: str | None = None
