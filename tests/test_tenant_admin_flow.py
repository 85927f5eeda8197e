"""Tenant owner panel: statistics, channel URL, block/unlock, broadcast scheduling."""
import pytest

from apps.backend.repository import channel_gates, memberships, tenants
from apps.backend.services import keyboards as kb
from apps.backend.services import tenant_bot
from apps.backend.services.dispatch import dispatch_tenant_update

from conftest import message_update

TOKEN = "222:tenant"
OWNER = "77"


@pytest.fixture
def tenant(db):
    t = tenants(db).create(token=TOKEN, username="shop_bot", creator_id=OWNER)
    memberships(db).create(bot_token=TOKEN, user_id=OWNER, is_first_start=False)
    return t


def _send(db, text, user=OWNER):
    dispatch_tenant_update(db, TOKEN, message_update(user, text))


def _state(db, user=OWNER):
    return memberships(db).find_one(bot_token=TOKEN, user_id=user).admin_state


def _add_members(db, *user_ids, joined=True):
    for uid in user_ids:
        memberships(db).create(bot_token=TOKEN, user_id=uid, has_joined=joined, is_first_start=False)


@pytest.mark.timeout(10)
def test_panel_only_for_owner(db, tenant, telegram):
    _add_members(db, "5")
    _send(db, "/panel", user="5")
    assert _state(db, "5") == "none"
    assert tenant_bot.MSG_ADMIN_PANEL not in telegram.texts(chat_id=5)

    _send(db, "/panel")
    assert _state(db) == "admin_panel"
    last = telegram.sent(chat_id=OWNER)[-1]
    assert last["text"] == tenant_bot.MSG_ADMIN_PANEL
    assert last["reply_markup"] == kb.TENANT_PANEL


@pytest.mark.timeout(10)
def test_set_channel_url_scenario(db, tenant, telegram):
    _send(db, "/panel")
    _send(db, kb.BTN_SET_CHANNEL)
    assert _state(db) == "awaiting_channel"
    assert "https://t.me/Kali_Linux_BOTS" in telegram.texts(chat_id=OWNER)[-1]

    _send(db, "telegram.me/test_channel")
    assert channel_gates(db).find_one(bot_token=TOKEN).url == "https://t.me/test_channel"
    assert _state(db) == "admin_panel"
    assert telegram.texts(chat_id=OWNER)[-1] == "✅ Channel URL has been set to:\nhttps://t.me/test_channel"


@pytest.mark.timeout(10)
def test_invalid_channel_url_stays_in_step(db, tenant, telegram):
    _send(db, "/panel")
    _send(db, kb.BTN_SET_CHANNEL)
    _send(db, "not a url")
    assert _state(db) == "awaiting_channel"
    assert telegram.texts(chat_id=OWNER)[-1] == tenant_bot.MSG_CHANNEL_INVALID
    assert channel_gates(db).count() == 0

    _send(db, kb.BTN_CANCEL)
    assert _state(db) == "admin_panel"
    assert telegram.texts(chat_id=OWNER)[-1] == "↩️ Channel URL setting cancelled."


@pytest.mark.timeout(10)
def test_statistics(db, tenant, telegram):
    _add_members(db, "5", "6")
    _add_members(db, "7", joined=False)
    _send(db, "/panel")
    _send(db, kb.BTN_STATISTICS)
    text = telegram.texts(chat_id=OWNER)[-1]
    assert text.startswith("📊 Statistics for @shop_bot\n\n👥 Total Users: 2\n📅 Bot Created: ")
    assert "seconds ago" in text
    assert text.endswith("🔗 Channel URL: https://t.me/Kali_Linux_BOTS")
    assert _state(db) == "admin_panel"


@pytest.mark.timeout(10)
def test_block_validation_and_unlock(db, tenant, telegram):
    _add_members(db, "5")
    _send(db, "/panel")
    _send(db, kb.BTN_BLOCK)
    assert _state(db) == "awaiting_block"

    _send(db, "abc")
    assert telegram.texts(chat_id=OWNER)[-1] == tenant_bot.MSG_INVALID_USER_ID
    assert _state(db) == "awaiting_block"

    _send(db, OWNER)
    assert telegram.texts(chat_id=OWNER)[-1] == tenant_bot.MSG_CANNOT_BLOCK_SELF
    assert _state(db) == "awaiting_block"

    _send(db, "5")
    assert memberships(db).find_one(bot_token=TOKEN, user_id="5").is_blocked is True
    assert _state(db) == "admin_panel"
    assert telegram.texts(chat_id=OWNER)[-1] == "✅ User 5 has been blocked from this bot."

    _send(db, "hello", user="5")
    assert telegram.texts(chat_id=5) == ["🚫 You have been banned by the admin."]

    _send(db, kb.BTN_UNLOCK)
    _send(db, "5")
    assert memberships(db).find_one(bot_token=TOKEN, user_id="5").is_blocked is False
    assert _state(db) == "admin_panel"


@pytest.mark.timeout(10)
def test_block_unknown_user_returns_to_panel(db, tenant, telegram):
    _send(db, "/panel")
    _send(db, kb.BTN_BLOCK)
    _send(db, "999")
    assert telegram.texts(chat_id=OWNER)[-1] == tenant_bot.MSG_USER_NOT_FOUND
    assert _state(db) == "admin_panel"


@pytest.mark.timeout(10)
def test_broadcast_with_no_members_stays_in_panel(db, tenant, telegram, broadcast_queue):
    _send(db, "/panel")
    _send(db, kb.BTN_BROADCAST)
    assert telegram.texts(chat_id=OWNER)[-1] == tenant_bot.MSG_NO_MEMBERS
    assert _state(db) == "admin_panel"


@pytest.mark.timeout(10)
def test_broadcast_schedules_job_and_returns_to_panel(db, tenant, telegram, broadcast_queue):
    _add_members(db, "5", "6")
    _send(db, "/panel")
    _send(db, kb.BTN_BROADCAST)
    assert _state(db) == "awaiting_broadcast"
    assert telegram.texts(chat_id=OWNER)[-1] == "📢 Send your message or content to broadcast to 2 users:"

    _send(db, "big news")
    assert _state(db) == "admin_panel"
    assert broadcast_queue.jobs == [(
        "apps.worker.jobs.run_tenant_broadcast",
        (TOKEN, {"kind": "text", "text": "big news", "file_id": None, "caption": None}, OWNER, OWNER,
         tenant_bot.broadcast_scope(tenant)),
    )]
    assert telegram.texts(chat_id=OWNER)[-1] == tenant_bot.MSG_BROADCAST_STARTED.format(count=2)


@pytest.mark.timeout(10)
def test_overlapping_broadcast_is_refused(db, tenant, telegram, broadcast_queue):
    _add_members(db, "5")
    broadcast_queue.store.set(f"broadcast-lock:{tenant_bot.broadcast_scope(tenant)}", "1")
    _send(db, "/panel")
    _send(db, kb.BTN_BROADCAST)
    _send(db, "again")
    assert broadcast_queue.jobs == []
    assert telegram.texts(chat_id=OWNER)[-1] == tenant_bot.MSG_BROADCAST_BUSY
    assert _state(db) == "admin_panel"


@pytest.mark.timeout(10)
def test_back_leaves_panel_and_unknown_labels_are_ignored(db, tenant, telegram):
    _send(db, "/panel")
    calls = len(telegram.calls)
    _send(db, "some random label")
    assert len(telegram.calls) == calls
    assert _state(db) == "admin_panel"

    _send(db, kb.BTN_PANEL_BACK)
    assert _state(db) == "none"
    last = telegram.sent(chat_id=OWNER)[-1]
    assert last["reply_markup"] == {"remove_keyboard": True}


@pytest.mark.timeout(10)
def test_unknown_stored_state_reads_as_idle(db, tenant, telegram):
    owner = memberships(db).find_one(bot_token=TOKEN, user_id=OWNER)
    owner.admin_state = "awaiting_typo"
    owner.has_joined = True
    db.commit()
    _send(db, "ping")
    assert telegram.texts(chat_id=OWNER)[-1] == "ping"
