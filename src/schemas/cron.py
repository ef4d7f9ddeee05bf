from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class ProcessJobsResponse(BaseModel):
    message: str
    processed: int
    paused: bool = False
    reason: str | None = None


class DiscoverCreativesResponse(BaseModel):
    discovered: int
    enqueued: int
    job_ids: list[UUID] = Field(default_factory=list)


class AutoTransitionResponse(BaseModel):
    count: int
    ids: list[UUID] = Field(default_factory=list)


class CleanupResponse(BaseModel):
    deleted: int


class HealthCheckResponse(BaseModel):
    healthy: bool
    last_completed_at: datetime | None
    alerted: bool


class WarmupResponse(BaseModel):
    success: bool
    message: str
