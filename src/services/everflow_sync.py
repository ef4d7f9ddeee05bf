from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.models.advertiser import Advertiser
from src.models.offer import Offer
from src.models.sync_history import SyncHistory
from src.services.everflow_client import EverflowClient
from src.timeutils import ensure_aware, utcnow

logger = logging.getLogger("creative_approval.everflow.sync")

CONFLICT_RESOLUTIONS = ("skip", "update", "merge")

ProgressCallback = Callable[[int, int, str], Awaitable[None]]
EventCallback = Callable[[str, str, dict[str, Any]], Awaitable[None]]
CancelCheck = Callable[[], Awaitable[None]]

_OFFER_STATUS = {"active": "Active", "paused": "Inactive", "pending": "Inactive", "deleted": "Inactive"}
_ADVERTISER_STATUS = {
    "active": "active",
    "paused": "inactive",
    "pending": "inactive",
    "deleted": "inactive",
    "inactive": "inactive",
}
_MAX_PAGES = 500
_MAX_REPORTED_ERRORS = 50


def map_offer_status(value: str | None) -> str:
    return _OFFER_STATUS.get((value or "").lower(), "Inactive")


def map_advertiser_status(value: str | None) -> str:
    if not value:
        return "active"
    return _ADVERTISER_STATUS.get(value.lower(), "active")


def _extract_entries(response: Any, key: str) -> tuple[list[dict[str, Any]], dict[str, Any] | None]:
    """Pull the record list and paging block out of an Everflow table response."""

    if isinstance(response, list):
        return response, None
    if not isinstance(response, dict):
        return [], None

    paging = response.get("paging") if isinstance(response.get("paging"), dict) else None
    for candidate in (key, "entries", "data"):
        value = response.get(candidate)
        if isinstance(value, list):
            return value, paging
        if isinstance(value, dict):
            nested, nested_paging = _extract_entries(value, key)
            if nested:
                return nested, nested_paging or paging
    return [], paging


@dataclass
class SyncResult:
    sync_id: UUID
    status: str = "completed"
    total: int = 0
    synced: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "sync_id": str(self.sync_id),
            "status": self.status,
            "total": self.total,
            "synced": self.synced,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors": self.errors[:_MAX_REPORTED_ERRORS],
        }


class EverflowSyncService:
    """Imports offers and advertisers from Everflow into the local tables.

    Records are committed one at a time so a bad record only fails itself.
    A failure to reach Everflow marks the sync_history row failed and
    propagates, leaving the retry decision to the job queue.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        client: EverflowClient,
        *,
        page_size: int = 100,
        chunk_size: int = 50,
        progress_every: int = 5,
    ) -> None:
        self._session_maker = session_maker
        self._client = client
        self._page_size = page_size
        self._chunk_size = chunk_size
        self._progress_every = progress_every

    async def _start_history(self, *, sync_type: str, user_id: str | None, options: dict[str, Any]) -> UUID:
        async with self._session_maker() as session:
            async with session.begin():
                history = SyncHistory(
                    sync_type=sync_type,
                    status="in_progress",
                    started_by=user_id,
                    sync_options=options,
                    started_at=utcnow(),
                )
                session.add(history)
                await session.flush()
                return history.id

    async def _finish_history(self, result: SyncResult, *, error_message: str | None = None) -> None:
        async with self._session_maker() as session:
            async with session.begin():
                history = await session.get(SyncHistory, result.sync_id)
                if history is None:
                    return
                history.status = result.status
                history.total_records = result.total
                history.synced_records = result.synced
                history.created_records = result.created
                history.updated_records = result.updated
                history.skipped_records = result.skipped
                history.failed_records = result.failed
                history.error_message = error_message
                history.completed_at = utcnow()

    async def _fetch_all(self, fetch_page: Callable[[int], Awaitable[Any]], *, key: str, id_field: str) -> list[dict[str, Any]]:
        records: list[dict[str, Any]] = []
        seen: set[Any] = set()
        page = 1

        while page <= _MAX_PAGES:
            entries, paging = _extract_entries(await fetch_page(page), key)
            for entry in entries:
                record_id = entry.get(id_field)
                if record_id in seen:
                    logger.warning("everflow_duplicate_record key=%s id=%s", key, record_id)
                    continue
                seen.add(record_id)
                records.append(entry)

            if not entries or paging is None:
                break
            total_count = int(paging.get("total_count") or 0)
            page_size = int(paging.get("page_size") or self._page_size)
            if page * page_size >= total_count:
                break
            page += 1

        return records

    async def sync_offers(
        self,
        *,
        user_id: str | None,
        conflict_resolution: str = "update",
        filters: dict[str, Any] | None = None,
        on_progress: ProgressCallback | None = None,
        on_event: EventCallback | None = None,
        cancel_check: CancelCheck | None = None,
    ) -> SyncResult:
        filters = filters or {}
        page_size = int(filters.get("limit") or self._page_size)
        advertiser_cache: dict[str, UUID | None] = {}

        async def upsert(session: AsyncSession, record: dict[str, Any]) -> str:
            return await self._upsert_offer(
                session,
                record,
                user_id=user_id,
                conflict_resolution=conflict_resolution,
                advertiser_cache=advertiser_cache,
            )

        return await self._run(
            sync_type="offers",
            id_field="network_offer_id",
            user_id=user_id,
            conflict_resolution=conflict_resolution,
            filters=filters,
            fetch_page=lambda page: self._client.get_offers(
                page=page,
                page_size=page_size,
                status=filters.get("status"),
                advertiser_id=filters.get("advertiser_id"),
            ),
            upsert=upsert,
            on_progress=on_progress,
            on_event=on_event,
            cancel_check=cancel_check,
        )

    async def sync_advertisers(
        self,
        *,
        user_id: str | None,
        conflict_resolution: str = "update",
        filters: dict[str, Any] | None = None,
        on_progress: ProgressCallback | None = None,
        on_event: EventCallback | None = None,
        cancel_check: CancelCheck | None = None,
    ) -> SyncResult:
        filters = filters or {}
        page_size = int(filters.get("limit") or self._page_size)

        async def upsert(session: AsyncSession, record: dict[str, Any]) -> str:
            return await self._upsert_advertiser(session, record, conflict_resolution=conflict_resolution)

        return await self._run(
            sync_type="advertisers",
            id_field="network_advertiser_id",
            user_id=user_id,
            conflict_resolution=conflict_resolution,
            filters=filters,
            fetch_page=lambda page: self._client.get_advertisers(
                page=page, page_size=page_size, status=filters.get("status")
            ),
            upsert=upsert,
            on_progress=on_progress,
            on_event=on_event,
            cancel_check=cancel_check,
        )

    async def _run(
        self,
        *,
        sync_type: str,
        id_field: str,
        user_id: str | None,
        conflict_resolution: str,
        filters: dict[str, Any],
        fetch_page: Callable[[int], Awaitable[Any]],
        upsert: Callable[[AsyncSession, dict[str, Any]], Awaitable[str]],
        on_progress: ProgressCallback | None,
        on_event: EventCallback | None,
        cancel_check: CancelCheck | None,
    ) -> SyncResult:
        if conflict_resolution not in CONFLICT_RESOLUTIONS:
            raise ValueError(f"Unsupported conflict resolution: {conflict_resolution}")

        sync_id = await self._start_history(
            sync_type=sync_type,
            user_id=user_id,
            options={"conflict_resolution": conflict_resolution, "filters": filters},
        )
        result = SyncResult(sync_id=sync_id)
        logger.info(
            "sync_started sync_id=%s type=%s user_id=%s conflict=%s", sync_id, sync_type, user_id, conflict_resolution
        )

        try:
            records = await self._fetch_all(fetch_page, key=sync_type, id_field=id_field)
            result.total = len(records)

            async with self._session_maker() as session:
                for index, record in enumerate(records, start=1):
                    try:
                        outcome = await upsert(session, record)
                        await session.commit()
                    except (SQLAlchemyError, ValueError, TypeError) as exc:
                        await session.rollback()
                        result.failed += 1
                        result.errors.append({"id": record.get(id_field), "error": str(exc)})
                        logger.error(
                            "sync_record_failed sync_id=%s type=%s id=%s error=%s",
                            sync_id,
                            sync_type,
                            record.get(id_field),
                            exc,
                        )
                    else:
                        self._count(result, outcome)

                    await self._after_record(
                        index,
                        records,
                        result,
                        id_field=id_field,
                        label=sync_type,
                        on_progress=on_progress,
                        on_event=on_event,
                        cancel_check=cancel_check,
                    )
        except Exception as exc:
            result.status = "failed"
            await self._finish_history(result, error_message=str(exc))
            logger.error("sync_failed sync_id=%s type=%s error=%s", sync_id, sync_type, exc)
            raise

        await self._finish_history(result)
        logger.info(
            "sync_completed sync_id=%s type=%s total=%s created=%s updated=%s skipped=%s failed=%s",
            sync_id,
            sync_type,
            result.total,
            result.created,
            result.updated,
            result.skipped,
            result.failed,
        )
        return result

    @staticmethod
    def _count(result: SyncResult, outcome: str) -> None:
        if outcome == "created":
            result.created += 1
            result.synced += 1
        elif outcome == "updated":
            result.updated += 1
            result.synced += 1
        else:
            result.skipped += 1

    async def _after_record(
        self,
        index: int,
        records: list[dict[str, Any]],
        result: SyncResult,
        *,
        id_field: str,
        label: str,
        on_progress: ProgressCallback | None,
        on_event: EventCallback | None,
        cancel_check: CancelCheck | None,
    ) -> None:
        total = len(records)
        if on_progress and (index % self._progress_every == 0 or index == total):
            await on_progress(index, total, f"Processing {label}")

        if index % self._chunk_size == 0 or index == total:
            chunk = records[max(0, index - self._chunk_size):index]
            if on_event:
                await on_event(
                    "chunk_processed",
                    f"Processed {index}/{total} {label}",
                    {
                        "processed": index,
                        "total": total,
                        "created": result.created,
                        "updated": result.updated,
                        "skipped": result.skipped,
                        "failed": result.failed,
                        "ids": [r.get(id_field) for r in chunk],
                    },
                )
            if cancel_check and index < total:
                await cancel_check()

    async def _local_advertiser_id(
        self, session: AsyncSession, everflow_advertiser_id: str, cache: dict[str, UUID | None]
    ) -> UUID | None:
        if everflow_advertiser_id not in cache:
            r = await session.execute(
                select(Advertiser.id).where(Advertiser.everflow_advertiser_id == everflow_advertiser_id)
            )
            cache[everflow_advertiser_id] = r.scalar_one_or_none()
        return cache[everflow_advertiser_id]

    async def _upsert_offer(
        self,
        session: AsyncSession,
        record: dict[str, Any],
        *,
        user_id: str | None,
        conflict_resolution: str,
        advertiser_cache: dict[str, UUID | None],
    ) -> str:
        network_offer_id = record.get("network_offer_id")
        if network_offer_id is None:
            raise ValueError("Offer record is missing network_offer_id")

        network_advertiser_id = record.get("network_advertiser_id")
        relationship = record.get("relationship") or {}
        advertiser_name = (
            record.get("network_advertiser_name")
            or (relationship.get("advertiser") or {}).get("name")
            or f"Advertiser {network_advertiser_id}"
        )
        everflow_advertiser_id = str(network_advertiser_id) if network_advertiser_id is not None else None
        values = {
            "offer_name": record.get("name") or f"Offer {network_offer_id}",
            "advertiser_name": advertiser_name,
            "status": map_offer_status(record.get("offer_status")),
            "everflow_advertiser_id": everflow_advertiser_id,
            "everflow_data": record,
            "advertiser_id": (
                await self._local_advertiser_id(session, everflow_advertiser_id, advertiser_cache)
                if everflow_advertiser_id
                else None
            ),
        }

        r = await session.execute(select(Offer).where(Offer.everflow_offer_id == str(network_offer_id)))
        existing = r.scalar_one_or_none()

        if existing is None:
            session.add(
                Offer(
                    everflow_offer_id=str(network_offer_id),
                    created_method="API",
                    visibility="Public",
                    created_by=user_id,
                    updated_by=user_id,
                    created_at=utcnow(),
                    updated_at=utcnow(),
                    **values,
                )
            )
            return "created"

        if conflict_resolution == "skip":
            return "skipped"

        if conflict_resolution == "merge":
            time_saved = record.get("time_saved")
            remote_updated = datetime.fromtimestamp(time_saved, tz=timezone.utc) if time_saved else None
            local_updated = ensure_aware(existing.updated_at)
            if remote_updated is not None and local_updated is not None and remote_updated <= local_updated:
                return "skipped"

        for key, value in values.items():
            setattr(existing, key, value)
        existing.updated_by = user_id
        existing.updated_at = utcnow()
        return "updated"

    async def _upsert_advertiser(self, session: AsyncSession, record: dict[str, Any], *, conflict_resolution: str) -> str:
        network_advertiser_id = record.get("network_advertiser_id")
        if network_advertiser_id is None:
            raise ValueError("Advertiser record is missing network_advertiser_id")

        values = {
            "name": record.get("name") or f"Advertiser {network_advertiser_id}",
            "status": map_advertiser_status(record.get("advertiser_status")),
            "everflow_data": record,
        }

        r = await session.execute(
            select(Advertiser).where(Advertiser.everflow_advertiser_id == str(network_advertiser_id))
        )
        existing = r.scalar_one_or_none()

        if existing is None:
            session.add(
                Advertiser(
                    everflow_advertiser_id=str(network_advertiser_id),
                    contact_email=record.get("contact_email"),
                    created_at=utcnow(),
                    updated_at=utcnow(),
                    **values,
                )
            )
            return "created"

        if conflict_resolution == "skip":
            return "skipped"

        if conflict_resolution == "merge":
            time_saved = record.get("time_saved")
            remote_updated = datetime.fromtimestamp(time_saved, tz=timezone.utc) if time_saved else None
            local_updated = ensure_aware(existing.updated_at)
            if remote_updated is not None and local_updated is not None and remote_updated <= local_updated:
                return "skipped"

        for key, value in values.items():
            setattr(existing, key, value)
        existing.updated_at = utcnow()
        return "updated"
