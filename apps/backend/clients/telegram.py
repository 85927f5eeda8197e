"""Telegram Bot API client, one instance per bot token."""
from __future__ import annotations

from typing import Any

import httpx

from apps.backend.config import get_settings


def _api_url(token: str, method: str) -> str:
    return f"https://api.telegram.org/bot{token}/{method}"


class TelegramError(Exception):
    def __init__(self, method: str, reason: str) -> None:
        super().__init__(f"{method}: {reason}")
        self.method = method
        self.reason = reason


class TelegramBot:
    """Thin wrapper over the Bot API methods this service needs.

    Every call returns the decoded `result` field or raises `TelegramError`
    (network failure, non-JSON body, or `ok: false`).
    """

    def __init__(self, token: str, timeout: float | None = None):
        self.token = token
        self.timeout = timeout if timeout is not None else get_settings().telegram_timeout_seconds

    def _call(self, method: str, payload: dict[str, Any] | None = None, timeout: float | None = None) -> Any:
        try:
            r = httpx.post(_api_url(self.token, method), json=payload or {}, timeout=timeout or self.timeout)
            data = r.json()
        except Exception as e:
            raise TelegramError(method, str(e)[:200]) from e
        if not isinstance(data, dict):
            raise TelegramError(method, f"http_{r.status_code}")
        if not data.get("ok"):
            raise TelegramError(method, data.get("description") or f"http_{r.status_code}")
        return data.get("result")

    def get_me(self) -> dict:
        return self._call("getMe")

    def set_webhook(self, url: str, secret_token: str | None = None) -> bool:
        payload: dict[str, Any] = {"url": url}
        if secret_token:
            payload["secret_token"] = secret_token
        return bool(self._call("setWebhook", payload, timeout=get_settings().telegram_webhook_timeout_seconds))

    def delete_webhook(self) -> bool:
        return bool(self._call("deleteWebhook", timeout=get_settings().telegram_webhook_timeout_seconds))

    def send_message(self, chat_id: str | int, text: str, reply_markup: dict | None = None) -> dict:
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if reply_markup:
            payload["reply_markup"] = reply_markup
        return self._call("sendMessage", payload)

    def _send_file(self, method: str, field: str, chat_id: str | int, file_id: str, caption: str | None) -> dict:
        payload: dict[str, Any] = {"chat_id": chat_id, field: file_id}
        if caption is not None:
            payload["caption"] = caption
        return self._call(method, payload)

    def send_photo(self, chat_id: str | int, file_id: str, caption: str | None = None) -> dict:
        return self._send_file("sendPhoto", "photo", chat_id, file_id, caption)

    def send_document(self, chat_id: str | int, file_id: str, caption: str | None = None) -> dict:
        return self._send_file("sendDocument", "document", chat_id, file_id, caption)

    def send_video(self, chat_id: str | int, file_id: str, caption: str | None = None) -> dict:
        return self._send_file("sendVideo", "video", chat_id, file_id, caption)

    def send_audio(self, chat_id: str | int, file_id: str, caption: str | None = None) -> dict:
        return self._send_file("sendAudio", "audio", chat_id, file_id, caption)

    def send_voice(self, chat_id: str | int, file_id: str, caption: str | None = None) -> dict:
        return self._send_file("sendVoice", "voice", chat_id, file_id, caption)

    def send_sticker(self, chat_id: str | int, file_id: str) -> dict:
        return self._send_file("sendSticker", "sticker", chat_id, file_id, None)

    def answer_callback_query(self, callback_query_id: str, text: str | None = None) -> bool:
        payload: dict[str, Any] = {"callback_query_id": callback_query_id}
        if text:
            payload["text"] = text
        return bool(self._call("answerCallbackQuery", payload))
