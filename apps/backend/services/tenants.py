"""Tenant lifecycle: validate token, register webhook, persist; teardown with cascade."""
from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from urllib.parse import quote

from sqlalchemy import delete
from sqlalchemy.orm import Session

from apps.backend.clients.telegram import TelegramBot, TelegramError
from apps.backend.config import get_settings
from apps.backend.models.membership import TenantMembership
from apps.backend.models.platform_user import PlatformUser
from apps.backend.models.tenant import ChannelGate, Tenant
from apps.backend.repository import DuplicateKey, tenants
from apps.backend.services.errors import (
    DuplicateCredential,
    InvalidCredential,
    TenantNotFound,
    WebhookRegistrationFailed,
)

logger = logging.getLogger(__name__)

TENANT_WEBHOOK_PATH = "/v1/telegram/tenant"


@dataclass(frozen=True)
class RemovedTenant:
    token: str
    username: str
    creator_id: str
    members_deleted: int
    webhook_removed: bool


def webhook_url_for(token: str) -> str:
    base = (get_settings().public_base_url or "").strip().rstrip("/")
    if not base:
        raise WebhookRegistrationFailed("PUBLIC_BASE_URL not set")
    return f"{base}{TENANT_WEBHOOK_PATH}?token={quote(token, safe='')}"


def webhook_secret_for(token: str) -> str:
    """Value Telegram echoes back in X-Telegram-Bot-Api-Secret-Token."""
    key = get_settings().secret_key.encode()
    return hmac.new(key, token.encode(), hashlib.sha256).hexdigest()[:32]


def create_tenant(
    db: Session,
    token: str,
    creator_id: str,
    creator_username: str | None = None,
) -> Tenant:
    token = (token or "").strip()
    if not token:
        raise InvalidCredential("empty token")
    bot = TelegramBot(token)
    try:
        me = bot.get_me()
    except TelegramError as e:
        raise InvalidCredential(e.reason) from e
    if not isinstance(me, dict) or not me.get("username"):
        raise InvalidCredential("getMe returned no username")

    repo = tenants(db)
    if repo.find_one(token=token):
        raise DuplicateCredential(me["username"])

    try:
        bot.set_webhook(webhook_url_for(token), secret_token=webhook_secret_for(token))
    except TelegramError as e:
        logger.warning("setWebhook failed bot=@%s reason=%s", me["username"], e.reason)
        raise WebhookRegistrationFailed(e.reason) from e

    try:
        tenant = repo.create(
            token=token,
            username=me["username"],
            creator_id=str(creator_id),
            creator_username=creator_username,
        )
    except DuplicateKey as e:
        raise DuplicateCredential(me["username"]) from e
    logger.info("tenant created bot=@%s creator=%s", tenant.username, tenant.creator_id)
    return tenant


def delete_tenant(db: Session, token: str) -> RemovedTenant:
    token = (token or "").strip()
    tenant = tenants(db).find_one(token=token)
    if not tenant:
        raise TenantNotFound()

    webhook_removed = False
    try:
        webhook_removed = TelegramBot(token).delete_webhook()
    except TelegramError as e:
        logger.warning("deleteWebhook failed bot=@%s reason=%s", tenant.username, e.reason)

    username, creator_id = tenant.username, tenant.creator_id
    # dependents first, parent last, single commit
    try:
        res = db.execute(delete(TenantMembership).where(TenantMembership.bot_token == token))
        db.execute(delete(ChannelGate).where(ChannelGate.bot_token == token))
        db.execute(delete(Tenant).where(Tenant.token == token))
        db.commit()
    except Exception:
        db.rollback()
        raise
    members_deleted = int(res.rowcount or 0)
    logger.info("tenant deleted bot=@%s members=%s", username, members_deleted)
    return RemovedTenant(
        token=token,
        username=username,
        creator_id=creator_id,
        members_deleted=members_deleted,
        webhook_removed=webhook_removed,
    )


def list_tenants_by_owner(db: Session, owner_id: str) -> list[Tenant]:
    return tenants(db).find_many(order_by=Tenant.created_at, creator_id=str(owner_id))


def clear_all_state(db: Session) -> dict[str, int]:
    """Empty every table. Maintenance reset for the platform owner only."""
    counts: dict[str, int] = {}
    try:
        for model in (TenantMembership, ChannelGate, Tenant, PlatformUser):
            counts[model.__tablename__] = int(db.execute(delete(model)).rowcount or 0)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.warning("all state cleared %s", counts)
    return counts
