"""Telegram webhook endpoints: one dynamic tenant endpoint plus the maker bot."""
from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session

from apps.backend.config import get_settings
from apps.backend.deps import get_db
from apps.backend.middleware.request_log import ensure_trace_id
from apps.backend.repository import tenants
from apps.backend.services.dispatch import dispatch_maker_update, dispatch_tenant_update
from apps.backend.services.errors import MalformedEvent, UnknownTenant
from apps.backend.services.tenants import webhook_secret_for
from apps.backend.utils.api_errors import error_envelope

router = APIRouter()
logger = logging.getLogger(__name__)

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


def _error(request: Request, status_code: int, code: str, message: str) -> JSONResponse:
    trace_id = ensure_trace_id(request.scope)
    return JSONResponse(
        error_envelope(code=code, message=message, trace_id=trace_id),
        status_code=status_code,
    )


def _secret_ok(request: Request, token: str) -> bool:
    """A header is optional (pre-secret webhooks); a wrong one is rejected."""
    header_secret = request.headers.get(SECRET_HEADER)
    if header_secret is None:
        return True
    return hmac.compare_digest(header_secret.encode(), webhook_secret_for(token).encode())


async def _read_update(request: Request) -> dict | None:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


@router.get("/tenant")
def tenant_webhook_alive():
    return PlainTextResponse("Created Bot is running.")


@router.post("/tenant")
async def tenant_webhook(request: Request, db: Session = Depends(get_db)):
    token = (request.query_params.get("token") or "").strip()
    if not token:
        return _error(request, 400, "missing_token", "No token provided")
    if tenants(db).find_one(token=token) is None:
        return _error(request, 404, UnknownTenant.code, "Bot not found")
    if not _secret_ok(request, token):
        return _error(request, 403, "forbidden", "Secret token mismatch")
    update = await _read_update(request)
    if update is None:
        return _error(request, 400, MalformedEvent.code, "Invalid update")
    try:
        dispatch_tenant_update(db, token, update)
    except UnknownTenant:
        return _error(request, 404, UnknownTenant.code, "Bot not found")
    except MalformedEvent as e:
        return _error(request, 400, MalformedEvent.code, e.detail)
    except Exception:
        db.rollback()
        logger.exception("tenant update failed trace_id=%s", ensure_trace_id(request.scope))
    return JSONResponse({"ok": True})


@router.get("/maker")
def maker_webhook_alive():
    return PlainTextResponse("Bot Maker is running.")


@router.post("/maker")
async def maker_webhook(request: Request, db: Session = Depends(get_db)):
    maker_token = get_settings().maker_bot_token
    if maker_token and not _secret_ok(request, maker_token):
        return _error(request, 403, "forbidden", "Secret token mismatch")
    update = await _read_update(request)
    if update is None:
        return _error(request, 400, MalformedEvent.code, "Invalid update")
    try:
        dispatch_maker_update(db, update)
    except MalformedEvent as e:
        return _error(request, 400, MalformedEvent.code, e.detail)
    except Exception:
        db.rollback()
        logger.exception("maker update failed trace_id=%s", ensure_trace_id(request.scope))
    return JSONResponse({"ok": True})
