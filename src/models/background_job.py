from __future__ import annotations

import uuid

from sqlalchemy import DateTime, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from src.timeutils import utcnow

from .base import Base, JSONType


class BackgroundJob(Base):
    __tablename__ = "background_jobs"
    __table_args__ = (
        Index("idx_background_jobs_status_created", "status", "created_at"),
        Index("idx_background_jobs_status_next_run", "status", "next_run_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    # pending | running | completed | failed | dead | cancelled
    status: Mapped[str] = mapped_column(String(20), nullable=False, server_default="pending", default="pending")

    progress: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0", default=0)
    total: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0", default=0)

    payload: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    result: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_type: Mapped[str | None] = mapped_column(String(30), nullable=True)

    attempt: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0", default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, server_default="3", default=3)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0", default=0)
    max_retries: Mapped[int] = mapped_column(Integer, nullable=False, server_default="5", default=5)
    replay_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0", default=0)

    last_replay_at: Mapped[object | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_error_at: Mapped[object | None] = mapped_column(DateTime(timezone=True), nullable=True)
    dead_lettered_at: Mapped[object | None] = mapped_column(DateTime(timezone=True), nullable=True)
    next_run_at: Mapped[object | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[object] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), default=utcnow)
    started_at: Mapped[object | None] = mapped_column(DateTime(timezone=True), nullable=True)
    finished_at: Mapped[object | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
