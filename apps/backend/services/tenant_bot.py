"""Conversation handling on a tenant bot: join gate, echo, and the owner panel."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.orm import Session

from apps.backend.clients.telegram import TelegramBot, TelegramError
from apps.backend.models.membership import TenantMembership
from apps.backend.models.tenant import Tenant
from apps.backend.repository import memberships
from apps.backend.services.broadcast import eligible_member_ids, schedule_broadcast
from apps.backend.services.channel_gate import set_channel_url
from apps.backend.services.content import deliver
from apps.backend.services.errors import BroadcastScheduleError, ValidationError
from apps.backend.services.flow_states import MemberStep, TenantAdminState, parse_state
from apps.backend.services.inbound import InboundEvent
from apps.backend.services import keyboards as kb
from apps.backend.services.replies import safe_answer, safe_send

logger = logging.getLogger(__name__)

MSG_GREETING = "Hi, how are you?"
MSG_JOIN_GATE = "Please join our channel and click on Joined button to proceed."
MSG_THANKS_FOR_JOINING = "Thank you for joining!"
MSG_ADMIN_PANEL = "🔧 Admin Panel"
MSG_LEFT_PANEL = "↩️ Returned to normal mode."
MSG_NO_MEMBERS = "❌ No users have joined this bot yet."
MSG_BROADCAST_PROMPT = "📢 Send your message or content to broadcast to {count} users:"
MSG_BROADCAST_STARTED = "📢 Broadcast to {count} users started. You will get a report when it finishes."
MSG_BROADCAST_BUSY = "⏳ A broadcast for this bot is already running. Wait for its report."
MSG_BROADCAST_SCHEDULE_FAILED = "❌ Failed to start the broadcast. Please try again."
MSG_BROADCAST_DONE = "📢 Broadcast completed!\n✅ Sent to {success} users\n❌ Failed for {failed} users"
MSG_CHANNEL_PROMPT = (
    "🔗 Current Channel URL:\n{url}\n\n"
    "Enter the new channel URL (e.g., https://t.me/your_channel):"
)
MSG_CHANNEL_INVALID = (
    "❌ Invalid URL. Please provide a valid Telegram channel URL (e.g., https://t.me/your_channel)."
)
MSG_CHANNEL_SET = "✅ Channel URL has been set to:\n{url}"
MSG_BLOCK_PROMPT = "🚫 Enter the user ID of the account you want to block from this bot:"
MSG_UNLOCK_PROMPT = "🔓 Enter the user ID of the account you want to unblock from this bot:"
MSG_INVALID_USER_ID = "❌ Invalid user ID. Please provide a numeric user ID (only numbers)."
MSG_CANNOT_BLOCK_SELF = "❌ You cannot block yourself."
MSG_USER_NOT_FOUND = "❌ User not found in this bot."
MSG_BLOCKED = "✅ User {user_id} has been blocked from this bot."
MSG_UNBLOCKED = "✅ User {user_id} has been unblocked from this bot."
MSG_STATISTICS = (
    "📊 Statistics for @{username}\n\n"
    "👥 Total Users: {users}\n"
    "📅 Bot Created: {created}\n"
    "🔗 Channel URL: {url}"
)

_CANCELLED = {
    TenantAdminState.AWAITING_BROADCAST: "↩️ Broadcast cancelled.",
    TenantAdminState.AWAITING_CHANNEL: "↩️ Channel URL setting cancelled.",
    TenantAdminState.AWAITING_BLOCK: "↩️ Block action cancelled.",
    TenantAdminState.AWAITING_UNLOCK: "↩️ Unlock action cancelled.",
}

_NUMERIC_ID_RE = re.compile(r"^\d+$")


def broadcast_scope(tenant: Tenant) -> str:
    return f"tenant:{tenant.id}"


@dataclass
class TenantTurn:
    db: Session
    bot: TelegramBot
    tenant: Tenant
    member: TenantMembership
    event: InboundEvent
    channel_url: str

    @property
    def is_owner(self) -> bool:
        return self.event.sender_id == str(self.tenant.creator_id)

    @property
    def text(self) -> str | None:
        return self.event.text

    def reply(self, text: str, reply_markup: dict | None = None) -> None:
        safe_send(self.bot, self.event.chat_id, text, reply_markup=reply_markup)

    def set_admin_state(self, state: TenantAdminState) -> None:
        self.member.admin_state = state.value
        self.db.commit()


def handle_tenant_event(
    db: Session,
    bot: TelegramBot,
    tenant: Tenant,
    member: TenantMembership,
    event: InboundEvent,
    channel_url: str,
) -> None:
    turn = TenantTurn(db, bot, tenant, member, event, channel_url)
    if event.is_callback:
        _on_callback(turn)
        return
    if event.command == "start":
        _on_start(turn)
        return
    if event.command == "panel" and turn.is_owner:
        turn.set_admin_state(TenantAdminState.ADMIN_PANEL)
        turn.reply(MSG_ADMIN_PANEL, kb.TENANT_PANEL)
        return
    state = parse_state(TenantAdminState, member.admin_state) if turn.is_owner else TenantAdminState.NONE
    _ADMIN_HANDLERS[state](turn)


def _on_callback(turn: TenantTurn) -> None:
    if turn.event.callback_data != kb.JOINED_CALLBACK:
        return
    turn.member.has_joined = True
    turn.db.commit()
    safe_answer(turn.bot, turn.event.callback_id, MSG_THANKS_FOR_JOINING)
    turn.reply(MSG_GREETING)


def _on_start(turn: TenantTurn) -> None:
    turn.member.user_step = MemberStep.NONE.value
    turn.member.admin_state = TenantAdminState.NONE.value
    turn.db.commit()
    if turn.member.has_joined:
        turn.reply(MSG_GREETING)
    else:
        turn.reply(MSG_JOIN_GATE, kb.join_gate_keyboard(turn.channel_url))


def _on_idle(turn: TenantTurn) -> None:
    """Joined members get their message echoed back."""
    if not turn.member.has_joined or turn.event.content is None:
        return
    if turn.event.command == "panel":
        return
    try:
        deliver(turn.bot, turn.event.chat_id, turn.event.content)
    except TelegramError as e:
        logger.warning("echo failed bot=@%s reason=%s", turn.tenant.username, e.reason)


# admin panel


def _panel_statistics(turn: TenantTurn) -> None:
    users = memberships(turn.db).count(bot_token=turn.tenant.token, has_joined=True)
    turn.reply(
        MSG_STATISTICS.format(
            username=turn.tenant.username,
            users=users,
            created=kb.relative_time(turn.tenant.created_at),
            url=turn.channel_url,
        ),
        kb.TENANT_PANEL,
    )


def _panel_broadcast(turn: TenantTurn) -> None:
    count = len(eligible_member_ids(turn.db, turn.tenant.token, exclude_id=turn.event.sender_id))
    if count == 0:
        turn.reply(MSG_NO_MEMBERS, kb.TENANT_PANEL)
        return
    turn.set_admin_state(TenantAdminState.AWAITING_BROADCAST)
    turn.reply(MSG_BROADCAST_PROMPT.format(count=count), kb.CANCEL_KEYBOARD)


def _panel_set_channel(turn: TenantTurn) -> None:
    turn.set_admin_state(TenantAdminState.AWAITING_CHANNEL)
    turn.reply(MSG_CHANNEL_PROMPT.format(url=turn.channel_url), kb.CANCEL_KEYBOARD)


def _panel_block(turn: TenantTurn) -> None:
    turn.set_admin_state(TenantAdminState.AWAITING_BLOCK)
    turn.reply(MSG_BLOCK_PROMPT, kb.CANCEL_KEYBOARD)


def _panel_unlock(turn: TenantTurn) -> None:
    turn.set_admin_state(TenantAdminState.AWAITING_UNLOCK)
    turn.reply(MSG_UNLOCK_PROMPT, kb.CANCEL_KEYBOARD)


def _panel_back(turn: TenantTurn) -> None:
    turn.set_admin_state(TenantAdminState.NONE)
    turn.reply(MSG_LEFT_PANEL, kb.REMOVE_KEYBOARD)


_PANEL_ACTIONS: dict[str, Callable[[TenantTurn], None]] = {
    kb.BTN_STATISTICS: _panel_statistics,
    kb.BTN_BROADCAST: _panel_broadcast,
    kb.BTN_SET_CHANNEL: _panel_set_channel,
    kb.BTN_BLOCK: _panel_block,
    kb.BTN_UNLOCK: _panel_unlock,
    kb.BTN_PANEL_BACK: _panel_back,
}


def _on_admin_panel(turn: TenantTurn) -> None:
    action = _PANEL_ACTIONS.get(turn.text or "")
    if action:
        action(turn)


def _cancelled(turn: TenantTurn, state: TenantAdminState) -> bool:
    if turn.text != kb.BTN_CANCEL:
        return False
    turn.set_admin_state(TenantAdminState.ADMIN_PANEL)
    turn.reply(_CANCELLED[state], kb.TENANT_PANEL)
    return True


def _on_broadcast_input(turn: TenantTurn) -> None:
    if _cancelled(turn, TenantAdminState.AWAITING_BROADCAST) or turn.event.content is None:
        return
    recipients = eligible_member_ids(turn.db, turn.tenant.token, exclude_id=turn.event.sender_id)
    turn.set_admin_state(TenantAdminState.ADMIN_PANEL)
    try:
        started = schedule_broadcast(
            broadcast_scope(turn.tenant),
            "run_tenant_broadcast",
            turn.tenant.token,
            turn.event.content.to_dict(),
            str(turn.event.chat_id),
            turn.event.sender_id,
        )
    except BroadcastScheduleError:
        turn.reply(MSG_BROADCAST_SCHEDULE_FAILED, kb.TENANT_PANEL)
        return
    if not started:
        turn.reply(MSG_BROADCAST_BUSY, kb.TENANT_PANEL)
        return
    turn.reply(MSG_BROADCAST_STARTED.format(count=len(recipients)), kb.TENANT_PANEL)


def _on_channel_input(turn: TenantTurn) -> None:
    if _cancelled(turn, TenantAdminState.AWAITING_CHANNEL):
        return
    try:
        url = set_channel_url(turn.db, turn.tenant.token, turn.text or "")
    except ValidationError:
        turn.reply(MSG_CHANNEL_INVALID, kb.CANCEL_KEYBOARD)
        return
    turn.set_admin_state(TenantAdminState.ADMIN_PANEL)
    turn.reply(MSG_CHANNEL_SET.format(url=url), kb.TENANT_PANEL)


def _target_member(turn: TenantTurn, *, blocking: bool) -> TenantMembership | None:
    """Validate the typed user id; replies and returns None on rejection."""
    target_id = (turn.text or "").strip()
    if not _NUMERIC_ID_RE.match(target_id):
        turn.reply(MSG_INVALID_USER_ID, kb.CANCEL_KEYBOARD)
        return None
    if blocking and target_id == turn.event.sender_id:
        turn.reply(MSG_CANNOT_BLOCK_SELF, kb.CANCEL_KEYBOARD)
        return None
    target = memberships(turn.db).find_one(bot_token=turn.tenant.token, user_id=target_id)
    if target is None:
        turn.set_admin_state(TenantAdminState.ADMIN_PANEL)
        turn.reply(MSG_USER_NOT_FOUND, kb.TENANT_PANEL)
    return target


def _on_block_input(turn: TenantTurn) -> None:
    if _cancelled(turn, TenantAdminState.AWAITING_BLOCK):
        return
    target = _target_member(turn, blocking=True)
    if target is None:
        return
    target.is_blocked = True
    turn.set_admin_state(TenantAdminState.ADMIN_PANEL)
    logger.info("member blocked bot=@%s user_id=%s", turn.tenant.username, target.user_id)
    turn.reply(MSG_BLOCKED.format(user_id=target.user_id), kb.TENANT_PANEL)


def _on_unlock_input(turn: TenantTurn) -> None:
    if _cancelled(turn, TenantAdminState.AWAITING_UNLOCK):
        return
    target = _target_member(turn, blocking=False)
    if target is None:
        return
    target.is_blocked = False
    turn.set_admin_state(TenantAdminState.ADMIN_PANEL)
    logger.info("member unblocked bot=@%s user_id=%s", turn.tenant.username, target.user_id)
    turn.reply(MSG_UNBLOCKED.format(user_id=target.user_id), kb.TENANT_PANEL)


_ADMIN_HANDLERS: dict[TenantAdminState, Callable[[TenantTurn], None]] = {
    TenantAdminState.NONE: _on_idle,
    TenantAdminState.ADMIN_PANEL: _on_admin_panel,
    TenantAdminState.AWAITING_BROADCAST: _on_broadcast_input,
    TenantAdminState.AWAITING_CHANNEL: _on_channel_input,
    TenantAdminState.AWAITING_BLOCK: _on_block_input,
    TenantAdminState.AWAITING_UNLOCK: _on_unlock_input,
}
