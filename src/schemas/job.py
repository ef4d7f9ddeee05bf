from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field


JobStatus = Literal["pending", "running", "completed", "failed", "dead", "cancelled"]


class JobRead(BaseModel):
    id: UUID
    type: str
    status: JobStatus
    progress: int
    total: int
    payload: dict[str, Any] | None
    result: dict[str, Any] | None
    error: str | None
    error_type: str | None
    attempt: int
    max_attempts: int
    retry_count: int
    max_retries: int
    replay_count: int
    last_replay_at: datetime | None
    last_error_at: datetime | None
    dead_lettered_at: datetime | None
    next_run_at: datetime | None
    created_at: datetime
    started_at: datetime | None
    finished_at: datetime | None
    duration_ms: int | None

    class Config:
        from_attributes = True


class JobListResponse(BaseModel):
    items: list[JobRead] = Field(default_factory=list)


class JobEventRead(BaseModel):
    id: UUID
    job_id: UUID
    type: str
    message: str | None
    data: dict[str, Any] | None
    created_at: datetime

    class Config:
        from_attributes = True


class JobEventListResponse(BaseModel):
    items: list[JobEventRead] = Field(default_factory=list)


class JobCancelResponse(BaseModel):
    success: bool
    message: str
    status: JobStatus


class JobReplayResponse(BaseModel):
    success: bool = True
    new_job_id: UUID


class QueueStateResponse(BaseModel):
    paused: bool
    reason: str | None = None
    at: str | None = None
