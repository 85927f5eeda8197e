"""Message content kinds and delivery by kind."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

from apps.backend.clients.telegram import TelegramBot

MSG_UNSUPPORTED = "Unsupported message type"


class ContentKind(str, Enum):
    TEXT = "text"
    PHOTO = "photo"
    DOCUMENT = "document"
    VIDEO = "video"
    AUDIO = "audio"
    VOICE = "voice"
    STICKER = "sticker"
    UNSUPPORTED = "unsupported"


# Telegram message keys carrying a file, in the order they are checked.
_FILE_KINDS = (
    ContentKind.DOCUMENT,
    ContentKind.VIDEO,
    ContentKind.AUDIO,
    ContentKind.VOICE,
    ContentKind.STICKER,
)


@dataclass(frozen=True)
class Content:
    kind: ContentKind
    text: str | None = None
    file_id: str | None = None
    caption: str | None = None

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> "Content":
        text = message.get("text")
        if isinstance(text, str):
            return cls(ContentKind.TEXT, text=text)
        caption = message.get("caption") or ""
        photos = message.get("photo")
        if isinstance(photos, list) and photos:
            # sizes come smallest first
            return cls(ContentKind.PHOTO, file_id=(photos[-1] or {}).get("file_id"), caption=caption)
        for kind in _FILE_KINDS:
            item = message.get(kind.value)
            if isinstance(item, dict) and item.get("file_id"):
                return cls(kind, file_id=item["file_id"], caption=caption)
        return cls(ContentKind.UNSUPPORTED)

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["kind"] = self.kind.value
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Content":
        return cls(
            kind=ContentKind(data.get("kind") or ContentKind.UNSUPPORTED.value),
            text=data.get("text"),
            file_id=data.get("file_id"),
            caption=data.get("caption"),
        )


def deliver(bot: TelegramBot, chat_id: str | int, content: Content) -> None:
    """Send `content` to `chat_id` with the method matching its kind.

    Raises `TelegramError`; callers decide whether that is fatal.
    """
    kind = content.kind
    if kind == ContentKind.TEXT:
        bot.send_message(chat_id, content.text or "")
    elif kind == ContentKind.PHOTO:
        bot.send_photo(chat_id, content.file_id, caption=content.caption or "")
    elif kind == ContentKind.DOCUMENT:
        bot.send_document(chat_id, content.file_id, caption=content.caption or "")
    elif kind == ContentKind.VIDEO:
        bot.send_video(chat_id, content.file_id, caption=content.caption or "")
    elif kind == ContentKind.AUDIO:
        bot.send_audio(chat_id, content.file_id, caption=content.caption or "")
    elif kind == ContentKind.VOICE:
        bot.send_voice(chat_id, content.file_id)
    elif kind == ContentKind.STICKER:
        bot.send_sticker(chat_id, content.file_id)
    else:
        bot.send_message(chat_id, MSG_UNSUPPORTED)
