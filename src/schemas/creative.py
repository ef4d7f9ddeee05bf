from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class ProofreadEnqueueResponse(BaseModel):
    success: bool = True
    job_id: UUID


class ExternalTaskRead(BaseModel):
    id: UUID
    creative_id: UUID
    source: str
    external_task_id: str | None
    status: str
    result: dict[str, Any] | None
    error_message: str | None
    started_at: datetime | None
    finished_at: datetime | None

    class Config:
        from_attributes = True


class ExternalTaskListResponse(BaseModel):
    items: list[ExternalTaskRead] = Field(default_factory=list)
