"""Join-gate channel URL per tenant."""
from __future__ import annotations

import re

from sqlalchemy.orm import Session

from apps.backend.config import get_settings
from apps.backend.repository import channel_gates
from apps.backend.services.errors import ValidationError

_SCHEME_RE = re.compile(r"^(?:https?://)?(?:www\.)?", re.IGNORECASE)
_HOST_RE = re.compile(r"^(?:t\.me|telegram\.me|telegram\.dog)/", re.IGNORECASE)
_CHANNEL_URL_RE = re.compile(
    r"^https://t\.me/(?:[A-Za-z0-9_]+|(?:\+|joinchat/)[A-Za-z0-9_-]+)$"
)


def normalize_channel_url(raw: str | None) -> str:
    """Coerce user input to `https://t.me/<handle>`.

    Accepts `foo`, `@foo`, `t.me/foo`, `http(s)://t.me/foo/`, `telegram.me/foo`
    and invite links (`t.me/+hash`, `t.me/joinchat/hash`).
    """
    value = (raw or "").strip()
    value = _SCHEME_RE.sub("", value, count=1)
    value = value.rstrip("/")
    if _HOST_RE.match(value):
        value = _HOST_RE.sub("", value, count=1)
    value = value.lstrip("@")
    url = f"https://t.me/{value}"
    if not _CHANNEL_URL_RE.match(url):
        raise ValidationError(f"invalid channel url: {raw!r}")
    return url


def get_channel_url(db: Session, bot_token: str) -> str:
    row = channel_gates(db).find_one(bot_token=bot_token)
    return row.url if row and row.url else get_settings().default_channel_url


def set_channel_url(db: Session, bot_token: str, raw: str) -> str:
    url = normalize_channel_url(raw)
    channel_gates(db).upsert({"bot_token": bot_token}, {"url": url})
    return url
