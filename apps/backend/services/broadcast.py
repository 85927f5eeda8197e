"""Broadcast fan-out.

Delivery is sequential and paced: the pause after each successful send keeps a
bot under Telegram's outbound ceiling, and the longer pause between tenants
spaces out independent bursts. Per-recipient failures only bump the failure
tally. Broadcasts run in the RQ worker; `schedule_broadcast` guards each scope
with a Redis lock so one admin cannot start two overlapping runs.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import distinct, func, select
from sqlalchemy.orm import Session

from apps.backend.clients.telegram import TelegramBot, TelegramError
from apps.backend.config import get_settings
from apps.backend.models.membership import TenantMembership
from apps.backend.models.platform_user import PlatformUser
from apps.backend.repository import tenants_by_member_count
from apps.backend.services.content import Content, deliver
from apps.backend.services.errors import BroadcastScheduleError

logger = logging.getLogger(__name__)

_LOCK_PREFIX = "broadcast-lock:"


@dataclass
class BroadcastResult:
    success: int = 0
    failed: int = 0

    def __iadd__(self, other: "BroadcastResult") -> "BroadcastResult":
        self.success += other.success
        self.failed += other.failed
        return self


def _default_pause() -> float:
    return max(0, get_settings().broadcast_pause_ms) / 1000.0


def broadcast_to_set(
    bot: TelegramBot,
    content: Content,
    recipients: Iterable[str],
    exclude_id: str | None = None,
    pause_seconds: float | None = None,
) -> BroadcastResult:
    pause = _default_pause() if pause_seconds is None else pause_seconds
    exclude = str(exclude_id) if exclude_id is not None else None
    result = BroadcastResult()
    for user_id in recipients:
        if str(user_id) == exclude:
            continue
        try:
            deliver(bot, user_id, content)
        except TelegramError as e:
            logger.info("broadcast failed user_id=%s reason=%s", user_id, e.reason)
            result.failed += 1
            continue
        result.success += 1
        if pause > 0:
            time.sleep(pause)
    return result


def eligible_member_ids(db: Session, bot_token: str, exclude_id: str | None = None) -> list[str]:
    """Joined, unblocked members of one tenant, oldest first."""
    q = (
        select(TenantMembership.user_id)
        .where(
            TenantMembership.bot_token == bot_token,
            TenantMembership.has_joined.is_(True),
            TenantMembership.is_blocked.is_(False),
        )
        .order_by(TenantMembership.id.asc())
    )
    if exclude_id is not None:
        q = q.where(TenantMembership.user_id != str(exclude_id))
    return list(db.execute(q).scalars().all())


def eligible_platform_user_ids(db: Session, exclude_id: str | None = None) -> list[str]:
    q = select(PlatformUser.user_id).where(PlatformUser.is_blocked.is_(False)).order_by(PlatformUser.id.asc())
    if exclude_id is not None:
        q = q.where(PlatformUser.user_id != str(exclude_id))
    return list(db.execute(q).scalars().all())


def count_distinct_subscribers(db: Session, exclude_id: str | None = None) -> int:
    q = select(func.count(distinct(TenantMembership.user_id))).where(
        TenantMembership.has_joined.is_(True),
        TenantMembership.is_blocked.is_(False),
    )
    if exclude_id is not None:
        q = q.where(TenantMembership.user_id != str(exclude_id))
    return int(db.execute(q).scalar_one())


def broadcast_across_tenants(
    db: Session,
    content: Content,
    exclude_id: str | None = None,
    pause_seconds: float | None = None,
    tenant_pause_seconds: float | None = None,
) -> BroadcastResult:
    """Each tenant's joined members via that tenant's own bot, busiest tenant first.

    A person subscribed to several tenants receives one copy per tenant.
    """
    if tenant_pause_seconds is None:
        tenant_pause_seconds = get_settings().broadcast_tenant_pause_seconds
    total = BroadcastResult()
    for tenant, _count in tenants_by_member_count(db, joined_only=True):
        recipients = eligible_member_ids(db, tenant.token, exclude_id=exclude_id)
        if not recipients:
            continue
        part = broadcast_to_set(
            TelegramBot(tenant.token), content, recipients,
            exclude_id=exclude_id, pause_seconds=pause_seconds,
        )
        logger.info(
            "tenant broadcast done bot=@%s success=%s failed=%s",
            tenant.username, part.success, part.failed,
        )
        total += part
        if tenant_pause_seconds > 0:
            time.sleep(tenant_pause_seconds)
    return total


def _redis():
    from redis import Redis

    s = get_settings()
    return Redis(host=s.redis_host, port=s.redis_port)


def _enqueue(conn, func_path: str, *args) -> None:
    from rq import Queue

    s = get_settings()
    q = Queue(s.rq_broadcast_queue_name or "broadcast", connection=conn)
    q.enqueue(func_path, *args, job_timeout=s.broadcast_job_timeout_seconds)


def lock_key(scope: str) -> str:
    return f"{_LOCK_PREFIX}{scope}"


def schedule_broadcast(scope: str, job: str, *args) -> bool:
    """Take the scope lock and enqueue `apps.worker.jobs.<job>(*args, scope)`.

    Returns False if a broadcast for `scope` is already running.
    """
    s = get_settings()
    try:
        conn = _redis()
        acquired = conn.set(lock_key(scope), "1", nx=True, ex=s.broadcast_lock_ttl_seconds)
    except Exception as e:
        logger.exception("broadcast_lock_unavailable scope=%s", scope)
        raise BroadcastScheduleError("redis unavailable") from e
    if not acquired:
        logger.info("broadcast already running scope=%s", scope)
        return False
    try:
        _enqueue(conn, f"apps.worker.jobs.{job}", *args, scope)
    except Exception as e:
        logger.exception("broadcast_enqueue_failed scope=%s job=%s", scope, job)
        release_lock(scope, conn=conn)
        raise BroadcastScheduleError(str(e)[:200]) from e
    logger.info("broadcast scheduled scope=%s job=%s", scope, job)
    return True


def release_lock(scope: str, conn=None) -> None:
    try:
        (conn or _redis()).delete(lock_key(scope))
    except Exception:
        logger.exception("broadcast_lock_release_failed scope=%s", scope)
