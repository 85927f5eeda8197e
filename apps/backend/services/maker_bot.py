"""Conversation handling on the maker bot: bot creation menu and the platform owner panel."""
from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.orm import Session

from apps.backend.clients.telegram import TelegramBot
from apps.backend.config import get_settings
from apps.backend.models.platform_user import PlatformUser
from apps.backend.repository import platform_users, tenants, tenants_by_member_count
from apps.backend.services.broadcast import (
    count_distinct_subscribers,
    eligible_platform_user_ids,
    schedule_broadcast,
)
from apps.backend.services.errors import (
    BroadcastScheduleError,
    DuplicateCredential,
    InvalidCredential,
    TenantNotFound,
    WebhookRegistrationFailed,
)
from apps.backend.services.flow_states import MakerStep, PlatformAdminState, parse_state
from apps.backend.services.inbound import InboundEvent
from apps.backend.services import keyboards as kb
from apps.backend.services.replies import safe_send
from apps.backend.services.tenants import (
    clear_all_state,
    create_tenant,
    delete_tenant,
    list_tenants_by_owner,
)

logger = logging.getLogger(__name__)

TOP_TENANTS_LIMIT = 20
USER_BROADCAST_SCOPE = "platform:users"
SUBSCRIBER_BROADCAST_SCOPE = "platform:subscribers"

MSG_WELCOME = "Welcome to Bot Maker! Use the buttons below to create and manage your Telegram bots."
MSG_NOT_AUTHORIZED = "❌ You are not authorized to use this command."
MSG_CLEARED = "✅ All data has been cleared. Bot Maker is reset."
MSG_OWNER_PANEL = "🔧 Owner Admin Panel"
MSG_BACK_TO_MENU = "↩️ Back to main menu."
MSG_SEND_TOKEN_CREATE = "Send your bot token from @BotFather to make your bot:"
MSG_SEND_TOKEN_DELETE = "Send your created bot token you want to delete:"
MSG_INVALID_TOKEN = "❌ Invalid bot token. Please try again:"
MSG_TOKEN_IN_USE = "❌ This bot token is already in use."
MSG_SETUP_FAILED = "❌ Failed to set up the bot. Please try again."
MSG_BOT_CREATED = "✅ Your bot @{username} made successfully! Send /panel to manage it."
MSG_TOKEN_NOT_FOUND = "❌ Bot token not found."
MSG_BOT_DELETED = "✅ Bot has been deleted and disconnected from Bot Maker."
MSG_MY_BOTS_EMPTY = "You have not created any bots yet."
MSG_NEW_BOT_NOTIFICATION = (
    "🤖 New Bot Created Notification 🤖\n"
    "👤 Creator: {creator}\n"
    "🆔 Creator ID: {creator_id}\n"
    "🤖 Bot: @{username}\n"
    "📅 Created: {created}\n"
    "📊 Total Bots Created: {total}"
)
MSG_NO_PLATFORM_USERS = "❌ No users have joined Bot Maker yet."
MSG_NO_SUBSCRIBERS = "❌ No users have joined any created bots yet."
MSG_BROADCAST_USER_PROMPT = "📢 Send your message or content to broadcast to {count} Bot Maker users:"
MSG_BROADCAST_SUB_PROMPT = "📣 Send your message or content to broadcast to {count} users of created bots:"
MSG_BROADCAST_STARTED = "📢 Broadcast started. You will get a report when it finishes."
MSG_BROADCAST_BUSY = "⏳ This broadcast is already running. Wait for its report."
MSG_BROADCAST_SCHEDULE_FAILED = "❌ Failed to start the broadcast. Please try again."
MSG_USER_BROADCAST_DONE = (
    "📢 Broadcast to Bot Maker Users completed!\n✅ Sent to {success} users\n❌ Failed for {failed} users"
)
MSG_SUB_BROADCAST_DONE = (
    "📣 Broadcast to Created Bot Users completed!\n✅ Sent to {success} users\n❌ Failed for {failed} users"
)
MSG_BLOCK_PROMPT = "🚫 Enter the user ID of the account you want to block from Bot Maker:"
MSG_UNLOCK_PROMPT = "🔓 Enter the user ID of the account you want to unblock from Bot Maker:"
MSG_REMOVE_BOT_PROMPT = "🗑️ Enter the bot token of the bot you want to remove from Bot Maker:"
MSG_INVALID_USER_ID = "❌ Invalid user ID. Please provide a numeric user ID (only numbers)."
MSG_CANNOT_BLOCK_SELF = "❌ You cannot block yourself."
MSG_USER_NOT_FOUND = "❌ User not found."
MSG_BLOCKED = "✅ User {user_id} has been blocked from Bot Maker."
MSG_UNBLOCKED = "✅ User {user_id} has been unblocked from Bot Maker."
MSG_BOT_REMOVED = "✅ Bot @{username} has been removed from Bot Maker."

_CANCELLED = {
    PlatformAdminState.AWAITING_BROADCAST_USER: "↩️ Broadcast cancelled.",
    PlatformAdminState.AWAITING_BROADCAST_SUB: "↩️ Broadcast cancelled.",
    PlatformAdminState.AWAITING_BLOCK: "↩️ Block action cancelled.",
    PlatformAdminState.AWAITING_UNLOCK: "↩️ Unlock action cancelled.",
    PlatformAdminState.AWAITING_REMOVE_BOT: "↩️ Remove bot action cancelled.",
}

_NUMERIC_ID_RE = re.compile(r"^\d+$")


def is_platform_owner(user_id: str) -> bool:
    owner_id = (get_settings().owner_id or "").strip()
    return bool(owner_id) and str(user_id) == owner_id


@dataclass
class MakerTurn:
    db: Session
    bot: TelegramBot
    user: PlatformUser
    event: InboundEvent

    @property
    def is_owner(self) -> bool:
        return is_platform_owner(self.event.sender_id)

    @property
    def text(self) -> str | None:
        return self.event.text

    def reply(self, text: str, reply_markup: dict | None = None) -> None:
        safe_send(self.bot, self.event.chat_id, text, reply_markup=reply_markup)

    def set_state(
        self,
        step: MakerStep | None = None,
        admin_state: PlatformAdminState | None = None,
    ) -> None:
        if step is not None:
            self.user.step = step.value
        if admin_state is not None:
            self.user.admin_state = admin_state.value
        self.db.commit()


def handle_maker_event(db: Session, bot: TelegramBot, user: PlatformUser, event: InboundEvent) -> None:
    if event.is_callback:
        return
    turn = MakerTurn(db, bot, user, event)
    command = event.command
    if command in _COMMANDS:
        _COMMANDS[command](turn)
        return
    menu_action = _MENU_ACTIONS.get(turn.text or "")
    if menu_action:
        menu_action(turn)
        return
    if turn.is_owner:
        admin_state = parse_state(PlatformAdminState, user.admin_state)
        if admin_state != PlatformAdminState.NONE:
            _ADMIN_HANDLERS[admin_state](turn)
            return
    _STEP_HANDLERS[parse_state(MakerStep, user.step)](turn)


# commands


def _cmd_start(turn: MakerTurn) -> None:
    turn.set_state(step=MakerStep.NONE, admin_state=PlatformAdminState.NONE)
    turn.reply(MSG_WELCOME, kb.MAIN_MENU)


def _cmd_panel(turn: MakerTurn) -> None:
    if not turn.is_owner:
        turn.reply(MSG_NOT_AUTHORIZED)
        return
    turn.set_state(step=MakerStep.NONE, admin_state=PlatformAdminState.ADMIN_PANEL)
    turn.reply(MSG_OWNER_PANEL, kb.OWNER_PANEL)


def _cmd_clear(turn: MakerTurn) -> None:
    if not turn.is_owner:
        logger.warning("unauthorized /clear from user_id=%s", turn.event.sender_id)
        turn.reply(MSG_NOT_AUTHORIZED)
        return
    clear_all_state(turn.db)
    turn.reply(MSG_CLEARED)


_COMMANDS: dict[str, Callable[[MakerTurn], None]] = {
    "start": _cmd_start,
    "panel": _cmd_panel,
    "clear": _cmd_clear,
}


# main menu


def _menu_create(turn: MakerTurn) -> None:
    turn.set_state(step=MakerStep.CREATE_BOT)
    turn.reply(MSG_SEND_TOKEN_CREATE, kb.BACK_KEYBOARD)


def _menu_delete(turn: MakerTurn) -> None:
    turn.set_state(step=MakerStep.DELETE_BOT)
    turn.reply(MSG_SEND_TOKEN_DELETE, kb.BACK_KEYBOARD)


def _menu_my_bots(turn: MakerTurn) -> None:
    owned = list_tenants_by_owner(turn.db, turn.event.sender_id)
    lines = ["📋 Your Bots:\n"]
    if not owned:
        lines.append(MSG_MY_BOTS_EMPTY)
    for tenant in owned:
        lines.append(f"🤖 @{tenant.username}\nCreated: {kb.relative_time(tenant.created_at)}\n")
    turn.reply("\n".join(lines).strip(), kb.MAIN_MENU)


_MENU_ACTIONS: dict[str, Callable[[MakerTurn], None]] = {
    kb.BTN_CREATE_BOT: _menu_create,
    kb.BTN_DELETE_BOT: _menu_delete,
    kb.BTN_MY_BOTS: _menu_my_bots,
}


def _back_to_menu(turn: MakerTurn) -> None:
    turn.set_state(step=MakerStep.NONE, admin_state=PlatformAdminState.NONE)
    turn.reply(MSG_BACK_TO_MENU, kb.MAIN_MENU)


# linear steps


def _on_idle(turn: MakerTurn) -> None:
    if turn.text == kb.BTN_BACK:
        _back_to_menu(turn)


def _on_create_token(turn: MakerTurn) -> None:
    if turn.text is None:
        return
    if turn.text == kb.BTN_BACK:
        _back_to_menu(turn)
        return
    creator_id = turn.event.sender_id
    try:
        tenant = create_tenant(
            turn.db,
            turn.text,
            creator_id,
            creator_username=(turn.event.display_name or "").lstrip("@") or None,
        )
    except InvalidCredential:
        turn.reply(MSG_INVALID_TOKEN, kb.BACK_KEYBOARD)
        return
    except DuplicateCredential:
        turn.set_state(step=MakerStep.NONE)
        turn.reply(MSG_TOKEN_IN_USE, kb.MAIN_MENU)
        return
    except WebhookRegistrationFailed:
        turn.set_state(step=MakerStep.NONE)
        turn.reply(MSG_SETUP_FAILED, kb.MAIN_MENU)
        return
    turn.set_state(step=MakerStep.NONE)
    owner_id = (get_settings().owner_id or "").strip()
    if owner_id:
        safe_send(
            turn.bot,
            owner_id,
            MSG_NEW_BOT_NOTIFICATION.format(
                creator=turn.event.display_name,
                creator_id=creator_id,
                username=tenant.username,
                created=kb.relative_time(tenant.created_at or int(time.time())),
                total=tenants(turn.db).count(),
            ),
        )
    turn.reply(MSG_BOT_CREATED.format(username=tenant.username), kb.MAIN_MENU)


def _on_delete_token(turn: MakerTurn) -> None:
    if turn.text is None:
        return
    if turn.text == kb.BTN_BACK:
        _back_to_menu(turn)
        return
    try:
        delete_tenant(turn.db, turn.text)
    except TenantNotFound:
        turn.set_state(step=MakerStep.NONE)
        turn.reply(MSG_TOKEN_NOT_FOUND, kb.MAIN_MENU)
        return
    turn.set_state(step=MakerStep.NONE)
    turn.reply(MSG_BOT_DELETED, kb.MAIN_MENU)


_STEP_HANDLERS: dict[MakerStep, Callable[[MakerTurn], None]] = {
    MakerStep.NONE: _on_idle,
    MakerStep.CREATE_BOT: _on_create_token,
    MakerStep.DELETE_BOT: _on_delete_token,
}


# owner panel


def _panel_statistics(turn: MakerTurn) -> None:
    total_users = platform_users(turn.db).count(is_blocked=False)
    total_bots = tenants(turn.db).count()
    parts = [
        "📊 Bot Maker Statistics\n\n"
        f"👥 Total Users: {total_users}\n"
        f"🤖 Total Bots Created: {total_bots}\n\n"
        f"🏆 Top {TOP_TENANTS_LIMIT} Bots by User Count:\n\n"
    ]
    top = tenants_by_member_count(turn.db, joined_only=False, limit=TOP_TENANTS_LIMIT)
    if not top:
        parts.append("No bots created yet.")
    for index, (tenant, users) in enumerate(top, start=1):
        parts.append(
            f"🔹 #{index}\n"
            f"Bot: @{tenant.username}\n"
            f"Creator: @{tenant.creator_username or 'Unknown'}\n"
            f"Token: {tenant.token}\n"
            f"Users: {users}\n"
            f"Created: {kb.relative_time(tenant.created_at)}\n\n"
        )
    turn.reply("".join(parts).strip(), kb.OWNER_PANEL)


def _panel_broadcast_user(turn: MakerTurn) -> None:
    count = len(eligible_platform_user_ids(turn.db, exclude_id=turn.event.sender_id))
    if count == 0:
        turn.reply(MSG_NO_PLATFORM_USERS, kb.OWNER_PANEL)
        return
    turn.set_state(admin_state=PlatformAdminState.AWAITING_BROADCAST_USER)
    turn.reply(MSG_BROADCAST_USER_PROMPT.format(count=count), kb.CANCEL_KEYBOARD)


def _panel_broadcast_sub(turn: MakerTurn) -> None:
    count = count_distinct_subscribers(turn.db, exclude_id=turn.event.sender_id)
    if count == 0:
        turn.reply(MSG_NO_SUBSCRIBERS, kb.OWNER_PANEL)
        return
    turn.set_state(admin_state=PlatformAdminState.AWAITING_BROADCAST_SUB)
    turn.reply(MSG_BROADCAST_SUB_PROMPT.format(count=count), kb.CANCEL_KEYBOARD)


def _panel_prompt(state: PlatformAdminState, prompt: str) -> Callable[[MakerTurn], None]:
    def action(turn: MakerTurn) -> None:
        turn.set_state(admin_state=state)
        turn.reply(prompt, kb.CANCEL_KEYBOARD)

    return action


_PANEL_ACTIONS: dict[str, Callable[[MakerTurn], None]] = {
    kb.BTN_STATISTICS: _panel_statistics,
    kb.BTN_BROADCAST_USER: _panel_broadcast_user,
    kb.BTN_BROADCAST_SUB: _panel_broadcast_sub,
    kb.BTN_BLOCK: _panel_prompt(PlatformAdminState.AWAITING_BLOCK, MSG_BLOCK_PROMPT),
    kb.BTN_UNLOCK: _panel_prompt(PlatformAdminState.AWAITING_UNLOCK, MSG_UNLOCK_PROMPT),
    kb.BTN_REMOVE_BOT: _panel_prompt(PlatformAdminState.AWAITING_REMOVE_BOT, MSG_REMOVE_BOT_PROMPT),
    kb.BTN_PANEL_BACK: _back_to_menu,
}


def _on_admin_panel(turn: MakerTurn) -> None:
    action = _PANEL_ACTIONS.get(turn.text or "")
    if action:
        action(turn)


def _cancelled(turn: MakerTurn, state: PlatformAdminState) -> bool:
    if turn.text != kb.BTN_CANCEL:
        return False
    turn.set_state(admin_state=PlatformAdminState.ADMIN_PANEL)
    turn.reply(_CANCELLED[state], kb.OWNER_PANEL)
    return True


def _schedule(turn: MakerTurn, scope: str, job: str) -> None:
    turn.set_state(admin_state=PlatformAdminState.ADMIN_PANEL)
    try:
        started = schedule_broadcast(
            scope, job, turn.event.content.to_dict(), str(turn.event.chat_id), turn.event.sender_id,
        )
    except BroadcastScheduleError:
        turn.reply(MSG_BROADCAST_SCHEDULE_FAILED, kb.OWNER_PANEL)
        return
    turn.reply(MSG_BROADCAST_STARTED if started else MSG_BROADCAST_BUSY, kb.OWNER_PANEL)


def _on_broadcast_user_input(turn: MakerTurn) -> None:
    if _cancelled(turn, PlatformAdminState.AWAITING_BROADCAST_USER) or turn.event.content is None:
        return
    _schedule(turn, USER_BROADCAST_SCOPE, "run_user_broadcast")


def _on_broadcast_sub_input(turn: MakerTurn) -> None:
    if _cancelled(turn, PlatformAdminState.AWAITING_BROADCAST_SUB) or turn.event.content is None:
        return
    _schedule(turn, SUBSCRIBER_BROADCAST_SCOPE, "run_subscriber_broadcast")


def _target_user(turn: MakerTurn, *, blocking: bool) -> PlatformUser | None:
    target_id = (turn.text or "").strip()
    if not _NUMERIC_ID_RE.match(target_id):
        turn.reply(MSG_INVALID_USER_ID, kb.CANCEL_KEYBOARD)
        return None
    if blocking and is_platform_owner(target_id):
        turn.reply(MSG_CANNOT_BLOCK_SELF, kb.CANCEL_KEYBOARD)
        return None
    target = platform_users(turn.db).find_one(user_id=target_id)
    if target is None:
        turn.set_state(admin_state=PlatformAdminState.ADMIN_PANEL)
        turn.reply(MSG_USER_NOT_FOUND, kb.OWNER_PANEL)
    return target


def _on_block_input(turn: MakerTurn) -> None:
    if _cancelled(turn, PlatformAdminState.AWAITING_BLOCK):
        return
    target = _target_user(turn, blocking=True)
    if target is None:
        return
    target.is_blocked = True
    turn.set_state(admin_state=PlatformAdminState.ADMIN_PANEL)
    logger.info("platform user blocked user_id=%s", target.user_id)
    turn.reply(MSG_BLOCKED.format(user_id=target.user_id), kb.OWNER_PANEL)


def _on_unlock_input(turn: MakerTurn) -> None:
    if _cancelled(turn, PlatformAdminState.AWAITING_UNLOCK):
        return
    target = _target_user(turn, blocking=False)
    if target is None:
        return
    target.is_blocked = False
    turn.set_state(admin_state=PlatformAdminState.ADMIN_PANEL)
    logger.info("platform user unblocked user_id=%s", target.user_id)
    turn.reply(MSG_UNBLOCKED.format(user_id=target.user_id), kb.OWNER_PANEL)


def _on_remove_bot_input(turn: MakerTurn) -> None:
    if _cancelled(turn, PlatformAdminState.AWAITING_REMOVE_BOT) or turn.text is None:
        return
    try:
        removed = delete_tenant(turn.db, turn.text)
    except TenantNotFound:
        turn.set_state(admin_state=PlatformAdminState.ADMIN_PANEL)
        turn.reply(MSG_TOKEN_NOT_FOUND, kb.OWNER_PANEL)
        return
    turn.set_state(admin_state=PlatformAdminState.ADMIN_PANEL)
    turn.reply(MSG_BOT_REMOVED.format(username=removed.username), kb.OWNER_PANEL)


_ADMIN_HANDLERS: dict[PlatformAdminState, Callable[[MakerTurn], None]] = {
    PlatformAdminState.NONE: _on_idle,
    PlatformAdminState.ADMIN_PANEL: _on_admin_panel,
    PlatformAdminState.AWAITING_BROADCAST_USER: _on_broadcast_user_input,
    PlatformAdminState.AWAITING_BROADCAST_SUB: _on_broadcast_sub_input,
    PlatformAdminState.AWAITING_BLOCK: _on_block_input,
    PlatformAdminState.AWAITING_UNLOCK: _on_unlock_input,
    PlatformAdminState.AWAITING_REMOVE_BOT: _on_remove_bot_input,
}
