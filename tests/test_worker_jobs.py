"""RQ broadcast jobs: run the engine, report tallies, always release the lock."""
import pytest
from sqlalchemy.orm import sessionmaker

from apps.backend import database
from apps.backend.repository import memberships, platform_users, tenants
from apps.backend.services.content import Content, ContentKind
from apps.backend.services.broadcast import lock_key
from apps.worker import jobs

from conftest import MAKER_TOKEN, OWNER_ID

TEXT = Content(ContentKind.TEXT, text="news").to_dict()


@pytest.fixture
def job_db(engine, db, monkeypatch):
    monkeypatch.setattr(database, "get_session_factory", lambda engine_=None: sessionmaker(bind=engine))
    return db


@pytest.mark.timeout(10)
def test_tenant_broadcast_reports_to_owner(job_db, telegram, broadcast_queue):
    tenants(job_db).create(token="J:1", username="j", creator_id="77")
    for uid in ("1", "2", "3", "77"):
        memberships(job_db).create(bot_token="J:1", user_id=uid, has_joined=True)
    memberships(job_db).create(bot_token="J:1", user_id="4", has_joined=True, is_blocked=True)
    telegram.fail_chat_ids.add("2")
    broadcast_queue.store.set(lock_key("tenant:1"), "1")

    out = jobs.run_tenant_broadcast("J:1", TEXT, "77", "77", "tenant:1")

    assert out == {"success": 2, "failed": 1}
    assert telegram.texts(chat_id="77", token="J:1") == [
        "📢 Broadcast completed!\n✅ Sent to 2 users\n❌ Failed for 1 users"
    ]
    assert broadcast_queue.store.keys == {}


@pytest.mark.timeout(10)
def test_lock_released_when_job_fails(job_db, telegram, broadcast_queue, monkeypatch):
    from apps.backend.services import broadcast

    def boom(*args, **kwargs):
        raise RuntimeError("db gone")

    monkeypatch.setattr(broadcast, "eligible_platform_user_ids", boom)
    broadcast_queue.store.set(lock_key("platform:users"), "1")
    with pytest.raises(RuntimeError):
        jobs.run_user_broadcast(TEXT, OWNER_ID, OWNER_ID, "platform:users")
    assert broadcast_queue.store.keys == {}


@pytest.mark.timeout(10)
def test_user_broadcast_via_maker_bot(job_db, telegram, broadcast_queue):
    for uid in (OWNER_ID, "5", "6"):
        platform_users(job_db).create(user_id=uid)
    platform_users(job_db).create(user_id="7", is_blocked=True)

    out = jobs.run_user_broadcast(TEXT, OWNER_ID, OWNER_ID, "platform:users")

    assert out == {"success": 2, "failed": 0}
    assert {t for t, _m, _p in telegram.calls} == {MAKER_TOKEN}
    assert telegram.texts(chat_id=OWNER_ID)[-1].startswith("📢 Broadcast to Bot Maker Users completed!")


@pytest.mark.timeout(10)
def test_subscriber_broadcast_uses_each_tenant_bot(job_db, telegram, broadcast_queue):
    tenants(job_db).create(token="A:1", username="a", creator_id="9")
    tenants(job_db).create(token="B:2", username="b", creator_id="9")
    memberships(job_db).create(bot_token="A:1", user_id="1", has_joined=True)
    memberships(job_db).create(bot_token="B:2", user_id="1", has_joined=True)
    memberships(job_db).create(bot_token="B:2", user_id="2", has_joined=True)

    out = jobs.run_subscriber_broadcast(TEXT, OWNER_ID, OWNER_ID, "platform:subscribers")

    assert out == {"success": 3, "failed": 0}
    assert len(telegram.sent(token="A:1")) == 1
    assert len(telegram.sent(token="B:2")) == 2
    report = telegram.texts(chat_id=OWNER_ID, token=MAKER_TOKEN)[-1]
    assert report == "📣 Broadcast to Created Bot Users completed!\n✅ Sent to 3 users\n❌ Failed for 0 users"
