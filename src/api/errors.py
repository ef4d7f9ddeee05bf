import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.services.errors import DomainError

logger = logging.getLogger("creative_approval.api")


def _get_request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _envelope(request: Request, status_code: int, detail, headers: dict[str, str] | None = None) -> JSONResponse:
    request_id = _get_request_id(request)
    response = JSONResponse(
        status_code=status_code,
        content={"detail": detail, "request_id": request_id},
        headers=headers,
    )
    if request_id:
        response.headers["X-Request-ID"] = request_id
    return response


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def domain_exception_handler(request: Request, exc: DomainError):
        if exc.status_code >= 500:
            logger.error("domain_error request_id=%s detail=%s", _get_request_id(request), exc.detail)
        return _envelope(request, exc.status_code, exc.detail)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _envelope(request, exc.status_code, exc.detail, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _envelope(request, 422, jsonable_errors(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled_error request_id=%s", _get_request_id(request), exc_info=exc)
        return _envelope(request, 500, "Internal Server Error")


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry the raw exception object, which JSONResponse cannot encode.
    errors = []
    for err in exc.errors():
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        errors.append(err)
    return errors
