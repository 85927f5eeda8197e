"""FastAPI entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from apps.backend.config import get_settings
from apps.backend.middleware.request_log import RequestLogMiddleware, TRACE_HEADER, ensure_trace_id
from apps.backend.routers import health, telegram
from apps.backend.utils.api_errors import error_envelope

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    s = get_settings()
    if not s.maker_bot_token:
        logger.warning("MAKER_BOT_TOKEN is not set; maker webhook replies will fail")
    if not s.public_base_url:
        logger.warning("PUBLIC_BASE_URL is not set; new bots cannot register webhooks")
    yield


app = FastAPI(
    title="Bot Maker",
    description="Multi-tenant Telegram bot maker",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLogMiddleware)

app.include_router(health.router, tags=["System"])
app.include_router(telegram.router, prefix="/v1/telegram", tags=["Telegram"])


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    trace_id = ensure_trace_id(request.scope)
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail or "error")
    resp = JSONResponse(
        content=error_envelope(code="http_error", message=detail, trace_id=trace_id),
        status_code=exc.status_code,
    )
    resp.headers[TRACE_HEADER] = trace_id
    return resp


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    trace_id = ensure_trace_id(request.scope)
    logger.exception("Unhandled exception trace_id=%s path=%s", trace_id, request.url.path)
    resp = JSONResponse(
        content=error_envelope(
            code="internal_error",
            message="Internal server error",
            trace_id=trace_id,
            detail=str(exc)[:200].replace("'", ""),
        ),
        status_code=500,
    )
    resp.headers[TRACE_HEADER] = trace_id
    return resp
