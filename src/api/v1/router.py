from fastapi import APIRouter

from src.api.v1.endpoints.admin_advertisers import router as admin_advertisers_router
from src.api.v1.endpoints.admin_offers import router as admin_offers_router
from src.api.v1.endpoints.admin_publishers import router as admin_publishers_router
from src.api.v1.endpoints.admin_requests import router as admin_requests_router
from src.api.v1.endpoints.advertiser_responses import router as advertiser_responses_router
from src.api.v1.endpoints.auth import router as auth_router
from src.api.v1.endpoints.creatives import router as creatives_router
from src.api.v1.endpoints.cron import router as cron_router
from src.api.v1.endpoints.everflow import router as everflow_router
from src.api.v1.endpoints.jobs import router as jobs_router
from src.api.v1.endpoints.ops import router as ops_router
from src.api.v1.endpoints.publisher import router as publisher_router

router = APIRouter()


@router.get("/ping")
async def ping():
    return {"ping": "pong"}


router.include_router(auth_router)
router.include_router(publisher_router)
router.include_router(admin_requests_router)
router.include_router(admin_offers_router)
router.include_router(admin_advertisers_router)
router.include_router(admin_publishers_router)
router.include_router(advertiser_responses_router)
router.include_router(jobs_router)
router.include_router(everflow_router)
router.include_router(creatives_router)
router.include_router(ops_router)
router.include_router(cron_router)
