from __future__ import annotations

import asyncio
import base64
from collections.abc import Awaitable, Callable
import logging
import re
from typing import Any
from urllib.parse import urlparse
from uuid import UUID

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.models.external_task import ExternalTask
from src.timeutils import utcnow

logger = logging.getLogger("creative_approval.grammar")

PROCESS_TIMEOUT_SECONDS = 180.0
WARMUP_TIMEOUT_SECONDS = 30.0
MAX_ATTEMPTS = 2
RETRY_DELAY_SECONDS = 10.0
_UNAVAILABLE = {502, 503, 504}
_DATA_URL_RE = re.compile(r"^data:([^;]+);base64,(.*)$", re.DOTALL)

MOCK_RESULT: dict[str, Any] = {
    "status": "SUCCESS",
    "message": "Mock analysis - AI service not configured",
    "result": {
        "input_type": "image",
        "corrections_count": 0,
        "issues": [],
        "suggestions": [
            {
                "icon": "info",
                "type": "info",
                "description": "Grammar AI service is not configured. Set GRAMMAR_AI_URL in environment variables.",
            }
        ],
        "qualityScore": {"grammar": 100, "readability": 100, "conversion": 100, "brandAlignment": 100},
    },
}


class GrammarServiceError(Exception):
    pass


def _filename_from_url(file_url: str, content_type: str | None) -> str:
    raw = urlparse(file_url).path.rsplit("/", 1)[-1] or "file"
    # Uploaded files are stored as "<random>-<original name>".
    name = raw[raw.rfind("-") + 1:] if raw.rfind("-") > 0 else raw
    if "." not in name:
        ext = (content_type or "image/png").split("/")[-1].split(";")[0] or "png"
        name = f"{name}.{ext}"
    return name


class GrammarService:
    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        *,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._session_maker = session_maker
        self._base_url = (base_url if base_url is not None else settings.grammar_ai_url or "").rstrip("/") or None
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=PROCESS_TIMEOUT_SECONDS)
        self._sleep = sleep

    async def __aenter__(self) -> GrammarService:
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def warmup(self) -> dict[str, Any]:
        if not self._base_url:
            return {"success": False, "message": "GRAMMAR_AI_URL not configured"}
        try:
            response = await self._client.get(f"{self._base_url}/health", timeout=WARMUP_TIMEOUT_SECONDS)
        except httpx.HTTPError as exc:
            return {"success": False, "message": f"Warmup failed: {exc!r}"}
        if response.is_success:
            return {"success": True, "message": "Service is warm and ready"}
        return {"success": False, "message": f"Health check returned {response.status_code}"}

    async def _load_file(self, file_url: str) -> tuple[str, bytes, str]:
        match = _DATA_URL_RE.match(file_url)
        if match:
            mime_type = match.group(1)
            try:
                content = base64.b64decode(match.group(2), validate=True)
            except ValueError as exc:
                raise GrammarServiceError("Invalid data URL format") from exc
            return f"creative.{mime_type.split('/')[-1] or 'png'}", content, mime_type

        response = await self._client.get(file_url)
        if response.is_error:
            raise GrammarServiceError(f"Failed to download file from storage: {response.status_code}")
        content_type = response.headers.get("content-type", "application/octet-stream")
        return _filename_from_url(file_url, content_type), response.content, content_type

    async def _record(self, **values: Any) -> ExternalTask:
        async with self._session_maker() as session:
            async with session.begin():
                task = ExternalTask(**values)
                session.add(task)
                await session.flush()
        return task

    async def submit_for_analysis(self, *, creative_id: UUID, file_url: str, user_id: UUID | None = None) -> ExternalTask:
        """Send a creative to the grammar AI service and record the external task.

        Without a configured service a completed mock result is recorded so
        the rest of the flow still works in development.
        """

        now = utcnow()
        if not self._base_url:
            logger.warning("grammar_mock creative_id=%s reason=not_configured", creative_id)
            return await self._record(
                creative_id=creative_id,
                user_id=user_id,
                source="grammar_ai_mock",
                external_task_id=f"mock-{int(now.timestamp() * 1000)}",
                status="completed",
                result=MOCK_RESULT,
                started_at=now,
                finished_at=now,
            )

        filename, content, content_type = await self._load_file(file_url)
        url = f"{self._base_url}/process"

        response: httpx.Response | None = None
        for attempt in range(1, MAX_ATTEMPTS + 1):
            response = await self._client.post(
                url,
                params={"format": "json"},
                files={"file": (filename, content, content_type)},
                data={"async_processing": "true"},
            )
            if response.status_code in _UNAVAILABLE:
                logger.warning(
                    "grammar_unavailable status=%s attempt=%s/%s", response.status_code, attempt, MAX_ATTEMPTS
                )
                if attempt < MAX_ATTEMPTS:
                    await self._sleep(RETRY_DELAY_SECONDS)
                    continue
                raise GrammarServiceError(
                    f"AI Service temporarily unavailable ({response.status_code}). The service may be starting up."
                )
            break

        if response.is_error:
            raise GrammarServiceError(f"AI Service Error ({response.status_code}): {response.text or 'Empty response'}")

        data = response.json()
        task_id = data.get("task_id")
        finished = str(data.get("status", "")).upper() == "SUCCESS" or "corrections" in data
        return await self._record(
            creative_id=creative_id,
            user_id=user_id,
            source="grammar_ai",
            external_task_id=task_id,
            status="completed" if finished else "processing",
            result=data if finished else None,
            started_at=now,
            finished_at=utcnow() if finished else None,
        )

    async def check_task_status(self, task: ExternalTask) -> ExternalTask:
        """Poll the AI service for a processing task and persist any final state."""

        if task.status != "processing" or not task.external_task_id or not self._base_url:
            return task

        response = await self._client.get(f"{self._base_url}/task/{task.external_task_id}")
        if response.is_error:
            raise GrammarServiceError(f"Task status check failed: {response.status_code}")
        data = response.json()
        remote_status = str(data.get("status", "")).upper()

        async with self._session_maker() as session:
            async with session.begin():
                row = await session.get(ExternalTask, task.id, with_for_update=True)
                if row is None:
                    return task
                if remote_status == "SUCCESS":
                    row.status = "completed"
                    row.result = data
                    row.finished_at = utcnow()
                elif remote_status == "FAILURE":
                    row.status = "failed"
                    row.error_message = str(data.get("error") or data.get("message") or "Analysis failed")
                    row.finished_at = utcnow()
        return row

    async def refresh_processing(self, tasks: list[ExternalTask]) -> list[ExternalTask]:
        """Poll each processing task once. A failed poll leaves that row as it was."""

        refreshed: list[ExternalTask] = []
        for task in tasks:
            try:
                refreshed.append(await self.check_task_status(task))
            except (GrammarServiceError, httpx.HTTPError, ValueError) as exc:
                logger.warning("grammar_poll_failed task_id=%s error=%r", task.id, exc)
                refreshed.append(task)
        return refreshed
