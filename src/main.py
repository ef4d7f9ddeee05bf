import logging
import time
import uuid

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.errors import register_exception_handlers
from src.api.v1.router import router as v1_router
from src.config import settings
from src.database import get_db
from src.logging_config import configure_logging, request_id_ctx_var

logger = logging.getLogger("creative_approval.api")


def create_app() -> FastAPI:
    app = FastAPI(title="Creative Approval API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Attach a request id to every response and log a compact access line.

        If the caller provides X-Request-ID it is reused, otherwise a UUID4 is generated.
        """

        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_ctx_var.set(request_id)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_ctx_var.reset(token)
        duration_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "access request_id=%s method=%s path=%s status=%s duration_ms=%.2f",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response

    register_exception_handlers(app)

    @app.get("/health")
    async def health(session: AsyncSession = Depends(get_db)):
        try:
            await session.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("health_check_db_failed")
            return JSONResponse(status_code=503, content={"status": "degraded", "database": "unavailable"})
        return {"status": "ok", "database": "ok"}

    app.include_router(v1_router, prefix="/api/v1")
    return app


configure_logging()
app = create_app()
