"""Button labels and reply markups for the tenant and maker bots."""
from __future__ import annotations

from datetime import datetime
import time

# tenant owner panel
BTN_STATISTICS = "📊 Statistics"
BTN_BROADCAST = "📍 Broadcast"
BTN_SET_CHANNEL = "🔗 Set Channel URL"
BTN_BLOCK = "🚫 Block"
BTN_UNLOCK = "🔓 Unlock"
BTN_PANEL_BACK = "↩️ Back"
BTN_CANCEL = "Cancel"

# maker main menu
BTN_CREATE_BOT = "🛠 Create Bot"
BTN_DELETE_BOT = "🗑️ Delete Bot"
BTN_MY_BOTS = "📋 My Bots"
BTN_BACK = "Back"

# platform owner panel
BTN_BROADCAST_USER = "📢 Broadcast User"
BTN_BROADCAST_SUB = "📣 Broadcast Sub"
BTN_REMOVE_BOT = "🗑️ Remove Bot"

JOINED_CALLBACK = "joined"


def _reply_keyboard(*labels: str) -> dict:
    return {"keyboard": [[{"text": label}] for label in labels], "resize_keyboard": True}


TENANT_PANEL = _reply_keyboard(
    BTN_STATISTICS, BTN_BROADCAST, BTN_SET_CHANNEL, BTN_BLOCK, BTN_UNLOCK, BTN_PANEL_BACK,
)
CANCEL_KEYBOARD = _reply_keyboard(BTN_CANCEL)
MAIN_MENU = _reply_keyboard(BTN_CREATE_BOT, BTN_DELETE_BOT, BTN_MY_BOTS)
BACK_KEYBOARD = _reply_keyboard(BTN_BACK)
OWNER_PANEL = _reply_keyboard(
    BTN_STATISTICS, BTN_BROADCAST_USER, BTN_BROADCAST_SUB, BTN_BLOCK, BTN_UNLOCK,
    BTN_REMOVE_BOT, BTN_PANEL_BACK,
)
REMOVE_KEYBOARD = {"remove_keyboard": True}

MAIN_MENU_LABELS = frozenset({BTN_CREATE_BOT, BTN_DELETE_BOT, BTN_MY_BOTS})


def join_gate_keyboard(channel_url: str) -> dict:
    return {
        "inline_keyboard": [[
            {"text": "Join Channel", "url": channel_url},
            {"text": "Joined", "callback_data": JOINED_CALLBACK},
        ]]
    }


def relative_time(ts: int, now: int | None = None) -> str:
    """`M/D, N <unit> ago` for a unix timestamp, in server local time."""
    now = int(time.time()) if now is None else now
    diff = max(0, now - int(ts))
    dt = datetime.fromtimestamp(int(ts))
    date_str = f"{dt.month}/{dt.day}"
    if diff < 60:
        return f"{date_str}, {diff} seconds ago"
    if diff < 3600:
        return f"{date_str}, {diff // 60} minutes ago"
    if diff < 86400:
        return f"{date_str}, {diff // 3600} hours ago"
    return f"{date_str}, {diff // 86400} days ago"
