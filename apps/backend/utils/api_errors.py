"""API error envelope shared by the webhook routers and the app-level handlers."""
from __future__ import annotations


def error_envelope(
    *,
    code: str,
    message: str,
    trace_id: str,
    detail: str | None = None,
) -> dict:
    out = {
        "code": code,
        "message": message,
        "trace_id": trace_id,
        # flat alias for clients that only read `error`
        "error": code,
    }
    if detail:
        out["detail"] = detail
    return out
