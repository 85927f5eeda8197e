"""Conversation states stored on memberships and platform users."""
from __future__ import annotations

import logging
from enum import Enum
from typing import TypeVar

logger = logging.getLogger(__name__)


class MemberStep(str, Enum):
    NONE = "none"


class TenantAdminState(str, Enum):
    NONE = "none"
    ADMIN_PANEL = "admin_panel"
    AWAITING_BROADCAST = "awaiting_broadcast"
    AWAITING_CHANNEL = "awaiting_channel"
    AWAITING_BLOCK = "awaiting_block"
    AWAITING_UNLOCK = "awaiting_unlock"


class MakerStep(str, Enum):
    NONE = "none"
    CREATE_BOT = "create_bot"
    DELETE_BOT = "delete_bot"


class PlatformAdminState(str, Enum):
    NONE = "none"
    ADMIN_PANEL = "admin_panel"
    AWAITING_BROADCAST_USER = "awaiting_broadcast_user"
    AWAITING_BROADCAST_SUB = "awaiting_broadcast_sub"
    AWAITING_BLOCK = "awaiting_block"
    AWAITING_UNLOCK = "awaiting_unlock"
    AWAITING_REMOVE_BOT = "awaiting_remove_bot"


S = TypeVar("S", MemberStep, TenantAdminState, MakerStep, PlatformAdminState)


def parse_state(enum_cls: type[S], raw: str | None) -> S:
    """Stored value -> enum member; anything unrecognised reads as NONE."""
    try:
        return enum_cls(raw or "none")
    except ValueError:
        logger.warning("unknown %s value %r, treating as none", enum_cls.__name__, raw)
        return enum_cls("none")
