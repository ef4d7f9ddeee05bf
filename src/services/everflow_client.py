from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging
from typing import Any

import httpx

from src.config import settings

logger = logging.getLogger("creative_approval.everflow")

DEFAULT_TIMEOUT_SECONDS = 30.0


class EverflowError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class EverflowClient:
    """Thin async wrapper over the Everflow network API.

    Retries transport errors, 5xx responses and 429s with exponential backoff;
    a 429 carrying Retry-After waits exactly that many seconds.
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str,
        network_id: str | None = None,
        client: httpx.AsyncClient | None = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._network_id = network_id
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT_SECONDS)
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._sleep = sleep

    @classmethod
    def from_settings(cls, *, client: httpx.AsyncClient | None = None) -> EverflowClient:
        return cls(
            api_key=settings.everflow_api_key,
            base_url=settings.everflow_base_url,
            network_id=settings.everflow_network_id,
            client=client,
        )

    async def __aenter__(self) -> EverflowClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "X-Eflow-API-Key": self._api_key or ""}
        if self._network_id:
            headers["X-Eflow-Network-Id"] = self._network_id
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        if not self.configured:
            raise EverflowError("Unauthorized: Everflow API key is not configured", status_code=401)

        url = f"{self._base_url}{path}"
        last_error: Exception | None = None

        for attempt in range(self._max_retries + 1):
            try:
                response = await self._client.request(method, url, params=params, json=json, headers=self._headers())
            except httpx.TransportError as exc:
                last_error = EverflowError(f"Network error calling Everflow {path}: {exc!r}")
                delay = self._retry_delay * (2 ** attempt)
            else:
                if response.status_code == 429:
                    last_error = EverflowError("Everflow rate limit exceeded (429)", status_code=429)
                    retry_after = response.headers.get("Retry-After")
                    delay = float(retry_after) if retry_after and retry_after.isdigit() else self._retry_delay * (2 ** attempt)
                elif response.status_code >= 500:
                    last_error = EverflowError(
                        f"API request failed: {response.status_code} {response.reason_phrase}",
                        status_code=response.status_code,
                    )
                    delay = self._retry_delay * (2 ** attempt)
                elif response.is_error:
                    message = _error_message(response) or f"API request failed: {response.status_code} {response.reason_phrase}"
                    raise EverflowError(message, status_code=response.status_code)
                else:
                    return response.json()

            if attempt < self._max_retries:
                logger.warning(
                    "everflow_retry path=%s attempt=%s delay_s=%.2f error=%s", path, attempt + 1, delay, last_error
                )
                await self._sleep(delay)

        logger.error("everflow_request_failed path=%s error=%s", path, last_error)
        raise last_error or EverflowError(f"Everflow request failed: {path}")

    async def get_offers(
        self,
        *,
        page: int = 1,
        page_size: int = 100,
        status: str | None = None,
        advertiser_id: str | None = None,
    ) -> Any:
        filters: dict[str, Any] = {}
        if status:
            filters["offer_status"] = status
        if advertiser_id:
            filters["network_advertiser_id"] = advertiser_id
        body = {"filters": filters} if filters else {}
        logger.info("everflow_fetch_offers page=%s page_size=%s filters=%s", page, page_size, filters)
        return await self.request(
            "POST", "/networks/offerstable", params={"page": page, "page_size": page_size}, json=body
        )

    async def get_advertisers(self, *, page: int = 1, page_size: int = 100, status: str | None = None) -> Any:
        filters: dict[str, Any] = {"advertiser_status": status} if status else {}
        body = {"filters": filters} if filters else {}
        logger.info("everflow_fetch_advertisers page=%s page_size=%s filters=%s", page, page_size, filters)
        return await self.request(
            "POST", "/networks/advertiserstable", params={"page": page, "page_size": page_size}, json=body
        )

    async def test_connection(self) -> bool:
        try:
            await self.request("GET", "/networks/offers", params={"limit": 1})
        except EverflowError as exc:
            logger.warning("everflow_connection_failed error=%s", exc)
            return False
        return True


def _error_message(response: httpx.Response) -> str | None:
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict) and data.get("message"):
        return f"{data['message']} ({response.status_code})"
    return None
