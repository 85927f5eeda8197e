"""Middleware: per-request trace id and an access log line with bot tokens masked."""
import logging
import re
import time
import uuid
from urllib.parse import unquote

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("uvicorn.error")

TRACE_SCOPE_KEY = "trace_id"
TRACE_HEADER = "X-Trace-Id"

# <digits>:<secret> as issued by BotFather
_BOT_TOKEN_RE = re.compile(r"\d{5,}:[A-Za-z0-9_-]{20,}")


def ensure_trace_id(scope: dict) -> str:
    """Get or set the trace id on the ASGI scope; stable for the request lifecycle."""
    tid = scope.get(TRACE_SCOPE_KEY)
    if tid and isinstance(tid, str):
        return tid
    tid = str(uuid.uuid4())[:16]
    scope[TRACE_SCOPE_KEY] = tid
    return tid


def mask_token(value: str) -> str:
    def _mask(m: re.Match) -> str:
        head = m.group(0).split(":", 1)[0]
        return f"{head}:[MASKED]"

    return _BOT_TOKEN_RE.sub(_mask, value or "")


def _masked_target(request: Request) -> str:
    path = request.url.path
    query = request.url.query
    target = f"{path}?{query}" if query else path
    return mask_token(unquote(target))


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        trace_id = ensure_trace_id(request.scope)
        request.state.trace_id = trace_id
        start = time.perf_counter()
        response = await call_next(request)
        latency_ms = int((time.perf_counter() - start) * 1000)
        response.headers[TRACE_HEADER] = trace_id
        if request.url.path.startswith("/v1/"):
            logger.info(
                "request trace_id=%s method=%s target=%s status=%s latency_ms=%s",
                trace_id,
                request.method,
                _masked_target(request),
                response.status_code,
                latency_ms,
            )
        return response
