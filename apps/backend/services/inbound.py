"""Parsing of inbound Telegram updates into a flat event."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from apps.backend.services.content import Content
from apps.backend.services.errors import MalformedEvent


@dataclass
class InboundEvent:
    chat_id: int | str
    sender_id: str
    display_name: str | None
    text: str | None = None
    content: Content | None = None
    callback_id: str | None = None
    callback_data: str | None = None

    @property
    def is_callback(self) -> bool:
        return self.callback_id is not None

    @property
    def command(self) -> str | None:
        """`/start payload` -> "start"; `/panel@my_bot` -> "panel"."""
        if not self.text or not self.text.startswith("/"):
            return None
        head = self.text.split()[0][1:]
        return head.split("@", 1)[0].lower() or None

    @property
    def argument(self) -> str | None:
        """Second whitespace-separated word of the text (`/start ref_7` -> "ref_7")."""
        parts = (self.text or "").split()
        return parts[1] if len(parts) > 1 else None


def _display_name(sender: dict[str, Any]) -> str | None:
    if sender.get("username"):
        return f"@{sender['username']}"
    return sender.get("first_name")


def parse_update(update: dict[str, Any]) -> InboundEvent:
    """Extract chat target, sender and payload; raise MalformedEvent if either id is missing."""
    if not isinstance(update, dict):
        raise MalformedEvent("update is not an object")
    message = update.get("message")
    callback = update.get("callback_query")
    if isinstance(message, dict):
        chat_id = (message.get("chat") or {}).get("id")
        sender = message.get("from") or {}
    elif isinstance(callback, dict):
        chat_id = ((callback.get("message") or {}).get("chat") or {}).get("id")
        sender = callback.get("from") or {}
    else:
        raise MalformedEvent("no message or callback_query")
    sender_id = sender.get("id")
    if not chat_id or not sender_id:
        raise MalformedEvent("missing chat id or sender id")

    event = InboundEvent(
        chat_id=chat_id,
        sender_id=str(sender_id),
        display_name=_display_name(sender),
    )
    if isinstance(message, dict):
        text = message.get("text")
        event.text = text if isinstance(text, str) else None
        event.content = Content.from_message(message)
    else:
        event.callback_id = str(callback.get("id") or "")
        event.callback_data = callback.get("data")
    return event
