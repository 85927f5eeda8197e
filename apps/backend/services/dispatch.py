"""Resolve an inbound update to (tenant, identity), apply gates, hand off to a state machine."""
from __future__ import annotations

import logging
import time
from typing import Any

from sqlalchemy import update
from sqlalchemy.orm import Session

from apps.backend.clients.telegram import TelegramBot
from apps.backend.config import get_settings
from apps.backend.models.membership import TenantMembership
from apps.backend.models.platform_user import PlatformUser
from apps.backend.models.tenant import Tenant
from apps.backend.repository import DuplicateKey, memberships, platform_users, tenants
from apps.backend.services.channel_gate import get_channel_url
from apps.backend.services.errors import UnknownTenant
from apps.backend.services.inbound import InboundEvent, parse_update
from apps.backend.services.maker_bot import handle_maker_event, is_platform_owner
from apps.backend.services.replies import safe_send
from apps.backend.services.tenant_bot import handle_tenant_event

logger = logging.getLogger(__name__)

MSG_BANNED = "🚫 You have been banned by the admin."
NO_REFERRER = "None"


def _new_user_notification(display_name: str | None, user_id: str, referred_by: str, total: int, scope: str) -> str:
    return (
        "➕ New User Notification ➕\n"
        f"👤 User: {display_name}\n"
        f"🆔 User ID: {user_id}\n"
        f"⭐ Referred By: {referred_by}\n"
        f"📊 Total Users of {scope}: {total}"
    )


def _referrer(event: InboundEvent) -> str:
    return event.argument or NO_REFERRER


def _claim_first_contact(db: Session, model, row_id: int) -> bool:
    """Flip is_first_start true->false; only the caller that flips it notifies."""
    res = db.execute(
        update(model)
        .where(model.id == row_id, model.is_first_start.is_(True))
        .values(is_first_start=False)
    )
    db.commit()
    return int(res.rowcount or 0) == 1


def load_or_create_membership(db: Session, bot_token: str, event: InboundEvent) -> TenantMembership:
    repo = memberships(db)
    member = repo.find_one(bot_token=bot_token, user_id=event.sender_id)
    if member:
        return member
    try:
        return repo.create(
            bot_token=bot_token,
            user_id=event.sender_id,
            username=event.display_name,
            referred_by=_referrer(event),
            last_interaction=int(time.time()),
        )
    except DuplicateKey:
        # concurrent first event from the same user won the insert
        return repo.find_one(bot_token=bot_token, user_id=event.sender_id)


def load_or_create_platform_user(db: Session, event: InboundEvent) -> PlatformUser:
    repo = platform_users(db)
    user = repo.find_one(user_id=event.sender_id)
    if user:
        return user
    try:
        return repo.create(
            user_id=event.sender_id,
            username=event.display_name,
            referred_by=_referrer(event),
        )
    except DuplicateKey:
        return repo.find_one(user_id=event.sender_id)


def dispatch_tenant_update(db: Session, token: str, update_body: dict[str, Any]) -> None:
    tenant: Tenant | None = tenants(db).find_one(token=token)
    if tenant is None:
        raise UnknownTenant("bot not found")
    event = parse_update(update_body)
    bot = TelegramBot(token)
    member = load_or_create_membership(db, token, event)

    if member.is_first_start and _claim_first_contact(db, TenantMembership, member.id):
        total = memberships(db).count(bot_token=token, has_joined=True)
        safe_send(
            bot,
            tenant.creator_id,
            _new_user_notification(member.username, member.user_id, member.referred_by, total, "Bot"),
        )

    member.last_interaction = int(time.time())
    db.commit()

    if member.is_blocked and event.sender_id != str(tenant.creator_id):
        safe_send(bot, event.chat_id, MSG_BANNED)
        return

    handle_tenant_event(db, bot, tenant, member, event, get_channel_url(db, token))


def dispatch_maker_update(db: Session, update_body: dict[str, Any]) -> None:
    event = parse_update(update_body)
    settings = get_settings()
    bot = TelegramBot(settings.maker_bot_token)
    user = load_or_create_platform_user(db, event)

    owner_id = (settings.owner_id or "").strip()
    if user.is_first_start and _claim_first_contact(db, PlatformUser, user.id) and owner_id:
        total = platform_users(db).count(is_blocked=False)
        safe_send(
            bot,
            owner_id,
            _new_user_notification(user.username, user.user_id, user.referred_by, total, "Bot Maker"),
        )

    if user.is_blocked and not is_platform_owner(event.sender_id):
        safe_send(bot, event.chat_id, MSG_BANNED)
        return

    handle_maker_event(db, bot, user, event)
