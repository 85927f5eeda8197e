"""Direct chat replies: failures are logged, never raised."""
from __future__ import annotations

import logging

from apps.backend.clients.telegram import TelegramBot, TelegramError

logger = logging.getLogger(__name__)


def safe_send(bot: TelegramBot, chat_id: str | int, text: str, reply_markup: dict | None = None) -> bool:
    try:
        bot.send_message(chat_id, text, reply_markup=reply_markup)
        return True
    except TelegramError as e:
        logger.warning("reply failed chat_id=%s method=%s reason=%s", chat_id, e.method, e.reason)
        return False


def safe_answer(bot: TelegramBot, callback_id: str, text: str | None = None) -> bool:
    try:
        return bot.answer_callback_query(callback_id, text=text)
    except TelegramError as e:
        logger.warning("answerCallbackQuery failed reason=%s", e.reason)
        return False
