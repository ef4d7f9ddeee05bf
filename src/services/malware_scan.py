from __future__ import annotations

from dataclasses import dataclass
import logging
from uuid import UUID

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.services import creative_status

logger = logging.getLogger("creative_approval.scan")

SCAN_TIMEOUT_SECONDS = 120.0


class MalwareScanError(Exception):
    pass


@dataclass(frozen=True)
class ScanResult:
    # clean | infected | skipped
    status: str
    info: str | None = None


class MalwareScanClient:
    def __init__(
        self,
        *,
        base_url: str | None,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/") if base_url else None
        self._api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=SCAN_TIMEOUT_SECONDS)

    @classmethod
    def from_settings(cls, *, client: httpx.AsyncClient | None = None) -> MalwareScanClient:
        return cls(base_url=settings.malware_scan_url, api_key=settings.malware_scan_api_key, client=client)

    async def __aenter__(self) -> MalwareScanClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def configured(self) -> bool:
        return bool(self._base_url)

    async def scan_url(self, file_url: str) -> ScanResult:
        if not self.configured:
            return ScanResult(status="skipped", info="Malware scan service not configured")

        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        try:
            response = await self._client.post(f"{self._base_url}/scan", json={"file_url": file_url}, headers=headers)
        except httpx.TimeoutException as exc:
            raise MalwareScanError(f"Malware scan timed out: {exc!r}") from exc
        except httpx.TransportError as exc:
            raise MalwareScanError(f"Network error reaching malware scanner: {exc!r}") from exc

        if response.is_error:
            raise MalwareScanError(f"Malware scan failed: {response.status_code} {response.reason_phrase}")

        data = response.json()
        status = str(data.get("status", "")).lower()
        if status not in ("clean", "infected"):
            raise MalwareScanError(f"Malware scan returned an unexpected status: {status or 'missing'}")
        return ScanResult(status=status, info=data.get("info"))


async def scan_creative(
    session_maker: async_sessionmaker[AsyncSession],
    client: MalwareScanClient,
    *,
    creative_id: UUID,
    file_url: str,
) -> ScanResult:
    """Scan one creative and persist the verdict on its row.

    Scanner errors are recorded on the creative and re-raised so the
    calling job is retried.
    """

    async with session_maker() as session:
        async with session.begin():
            await creative_status.update_creative_status(session, creative_id, status=creative_status.SCANNING)

    try:
        result = await client.scan_url(file_url)
    except MalwareScanError as exc:
        async with session_maker() as session:
            async with session.begin():
                await creative_status.update_creative_status(
                    session, creative_id, status=creative_status.FAILED, scan_error=str(exc)
                )
        raise

    verdict = creative_status.INFECTED if result.status == "infected" else creative_status.CLEAN
    async with session_maker() as session:
        async with session.begin():
            await creative_status.update_creative_status(
                session,
                creative_id,
                status=verdict,
                scan_error=result.info if verdict == creative_status.INFECTED else None,
            )

    logger.info("creative_scanned creative_id=%s verdict=%s scanner=%s", creative_id, verdict, result.status)
    return result
