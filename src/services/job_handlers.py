"""Handlers for each background job type, keyed by BackgroundJob.type."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from src.services.everflow_client import EverflowClient
from src.services.everflow_sync import EverflowSyncService
from src.services.grammar import GrammarService
from src.services.job_runner import JobContext, JobHandler
from src.services.malware_scan import MalwareScanClient, scan_creative

EVERFLOW_OFFER_SYNC = "everflow_sync"
EVERFLOW_ADVERTISER_SYNC = "everflow_advertiser_sync"
CREATIVE_SCAN = "creative_scan"
GRAMMAR_CHECK = "grammar_check"

# Factories are module attributes so tests can swap in clients with a mock transport.
everflow_client_factory = EverflowClient.from_settings
malware_scan_client_factory = MalwareScanClient.from_settings
grammar_service_factory = GrammarService


def _user_id(payload: dict[str, Any]) -> str | None:
    value = payload.get("user_id")
    return str(value) if value else None


async def _run_everflow_sync(ctx: JobContext, *, advertisers: bool) -> dict[str, Any]:
    payload = ctx.payload

    async def on_progress(current: int, total: int, stage: str) -> None:
        await ctx.report_progress(current, total, stage=stage)

    async def on_event(type: str, message: str, data: dict[str, Any]) -> None:
        await ctx.emit(type, message, data)

    await ctx.report_progress(0, 0, stage="Fetching from Everflow")
    async with everflow_client_factory() as client:
        service = EverflowSyncService(ctx.session_maker, client)
        sync = service.sync_advertisers if advertisers else service.sync_offers
        result = await sync(
            user_id=_user_id(payload),
            conflict_resolution=payload.get("conflict_resolution") or "update",
            filters=payload.get("filters") or {},
            on_progress=on_progress,
            on_event=on_event,
            cancel_check=ctx.ensure_not_cancelled,
        )
    return result.as_dict()


async def run_everflow_offer_sync(ctx: JobContext) -> dict[str, Any]:
    return await _run_everflow_sync(ctx, advertisers=False)


async def run_everflow_advertiser_sync(ctx: JobContext) -> dict[str, Any]:
    return await _run_everflow_sync(ctx, advertisers=True)


async def run_creative_scan(ctx: JobContext) -> dict[str, Any]:
    creative_id = UUID(str(ctx.payload["creative_id"]))
    async with malware_scan_client_factory() as client:
        result = await scan_creative(ctx.session_maker, client, creative_id=creative_id, file_url=ctx.payload["url"])
    return {"creative_id": str(creative_id), "scan_status": result.status, "scan_info": result.info, "total": 1}


async def run_grammar_check(ctx: JobContext) -> dict[str, Any]:
    creative_id = UUID(str(ctx.payload["creative_id"]))
    user_id = ctx.payload.get("user_id")
    async with grammar_service_factory(ctx.session_maker) as service:
        task = await service.submit_for_analysis(
            creative_id=creative_id,
            file_url=ctx.payload["url"],
            user_id=UUID(str(user_id)) if user_id else None,
        )
    return {
        "creative_id": str(creative_id),
        "external_task_id": task.external_task_id,
        "task_status": task.status,
        "source": task.source,
        "total": 1,
    }


def default_handlers() -> dict[str, JobHandler]:
    return {
        EVERFLOW_OFFER_SYNC: run_everflow_offer_sync,
        EVERFLOW_ADVERTISER_SYNC: run_everflow_advertiser_sync,
        CREATIVE_SCAN: run_creative_scan,
        GRAMMAR_CHECK: run_grammar_check,
    }
