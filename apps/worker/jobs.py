"""RQ jobs."""
import logging

logger = logging.getLogger(__name__)


def _report(bot, chat_id: str, text: str, reply_markup: dict) -> None:
    from apps.backend.services.replies import safe_send

    safe_send(bot, chat_id, text, reply_markup=reply_markup)


def run_tenant_broadcast(bot_token: str, content: dict, chat_id: str, exclude_id: str, scope: str) -> dict:
    """Tenant owner broadcast to the tenant's joined, unblocked members."""
    from apps.backend.database import get_session_factory
    from apps.backend.clients.telegram import TelegramBot
    from apps.backend.services.broadcast import broadcast_to_set, eligible_member_ids, release_lock
    from apps.backend.services.content import Content
    from apps.backend.services.keyboards import TENANT_PANEL
    from apps.backend.services.tenant_bot import MSG_BROADCAST_DONE

    bot = TelegramBot(bot_token)
    try:
        factory = get_session_factory()
        with factory() as db:
            recipients = eligible_member_ids(db, bot_token, exclude_id=exclude_id)
        result = broadcast_to_set(bot, Content.from_dict(content), recipients, exclude_id=exclude_id)
    finally:
        release_lock(scope)
    logger.info("tenant_broadcast_done scope=%s success=%s failed=%s", scope, result.success, result.failed)
    _report(bot, chat_id, MSG_BROADCAST_DONE.format(success=result.success, failed=result.failed), TENANT_PANEL)
    return {"success": result.success, "failed": result.failed}


def run_user_broadcast(content: dict, chat_id: str, exclude_id: str, scope: str) -> dict:
    """Platform owner broadcast to every unblocked maker bot user."""
    from apps.backend.database import get_session_factory
    from apps.backend.clients.telegram import TelegramBot
    from apps.backend.config import get_settings
    from apps.backend.services.broadcast import broadcast_to_set, eligible_platform_user_ids, release_lock
    from apps.backend.services.content import Content
    from apps.backend.services.keyboards import OWNER_PANEL
    from apps.backend.services.maker_bot import MSG_USER_BROADCAST_DONE

    bot = TelegramBot(get_settings().maker_bot_token)
    try:
        factory = get_session_factory()
        with factory() as db:
            recipients = eligible_platform_user_ids(db, exclude_id=exclude_id)
        result = broadcast_to_set(bot, Content.from_dict(content), recipients, exclude_id=exclude_id)
    finally:
        release_lock(scope)
    logger.info("user_broadcast_done success=%s failed=%s", result.success, result.failed)
    _report(bot, chat_id, MSG_USER_BROADCAST_DONE.format(success=result.success, failed=result.failed), OWNER_PANEL)
    return {"success": result.success, "failed": result.failed}


def run_subscriber_broadcast(content: dict, chat_id: str, exclude_id: str, scope: str) -> dict:
    """Platform owner broadcast to every tenant's joined members, via each tenant's bot."""
    from apps.backend.database import get_session_factory
    from apps.backend.clients.telegram import TelegramBot
    from apps.backend.config import get_settings
    from apps.backend.services.broadcast import broadcast_across_tenants, release_lock
    from apps.backend.services.content import Content
    from apps.backend.services.keyboards import OWNER_PANEL
    from apps.backend.services.maker_bot import MSG_SUB_BROADCAST_DONE

    try:
        factory = get_session_factory()
        with factory() as db:
            result = broadcast_across_tenants(db, Content.from_dict(content), exclude_id=exclude_id)
    finally:
        release_lock(scope)
    logger.info("subscriber_broadcast_done success=%s failed=%s", result.success, result.failed)
    bot = TelegramBot(get_settings().maker_bot_token)
    _report(bot, chat_id, MSG_SUB_BROADCAST_DONE.format(success=result.success, failed=result.failed), OWNER_PANEL)
    return {"success": result.success, "failed": result.failed}
