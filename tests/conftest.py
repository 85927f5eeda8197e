"""Shared fixtures: in-memory DB, recorded Telegram calls, recorded broadcast queue."""
from types import SimpleNamespace

import pytest
from sqlalchemy.orm import sessionmaker

from apps.backend.clients.telegram import TelegramBot, TelegramError
from apps.backend.config import get_settings
from apps.backend.database import Base, get_test_engine

OWNER_ID = "1000"
MAKER_TOKEN = "999000:maker-token-for-tests-aaaaaaaaaaaa"


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    monkeypatch.setenv("OWNER_ID", OWNER_ID)
    monkeypatch.setenv("MAKER_BOT_TOKEN", MAKER_TOKEN)
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://bots.example")
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("BROADCAST_PAUSE_MS", "0")
    monkeypatch.setenv("BROADCAST_TENANT_PAUSE_SECONDS", "0")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def engine():
    eng = get_test_engine()
    Base.metadata.create_all(eng)
    return eng


@pytest.fixture
def db(engine):
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


class FakeTelegram:
    """Records every Bot API call; fails on demand by method or chat id."""

    def __init__(self):
        self.calls: list[tuple[str, str, dict]] = []
        self.fail_methods: set[str] = set()
        self.fail_chat_ids: set[str] = set()
        self.me = {"id": 4242, "is_bot": True, "username": "test_bot"}

    def handle(self, token: str, method: str, payload: dict):
        self.calls.append((token, method, payload))
        if method in self.fail_methods:
            raise TelegramError(method, "Bad Request: forced failure")
        if str(payload.get("chat_id")) in self.fail_chat_ids:
            raise TelegramError(method, "Forbidden: bot was blocked by the user")
        if method == "getMe":
            return self.me
        if method in ("setWebhook", "deleteWebhook", "answerCallbackQuery"):
            return True
        return {"message_id": len(self.calls)}

    def sent(self, method: str = "sendMessage", chat_id=None, token=None) -> list[dict]:
        return [
            p for (t, m, p) in self.calls
            if m == method
            and (chat_id is None or str(p.get("chat_id")) == str(chat_id))
            and (token is None or t == token)
        ]

    def texts(self, chat_id=None, token=None) -> list[str]:
        return [p.get("text") for p in self.sent("sendMessage", chat_id=chat_id, token=token)]

    def methods(self) -> list[str]:
        return [m for (_t, m, _p) in self.calls]


@pytest.fixture
def telegram(monkeypatch):
    fake = FakeTelegram()

    def _call(bot, method, payload=None, timeout=None):
        return fake.handle(bot.token, method, payload or {})

    monkeypatch.setattr(TelegramBot, "_call", _call)
    return fake


class FakeLockStore:
    def __init__(self):
        self.keys: dict[str, str] = {}

    def set(self, key, value, nx=False, ex=None):
        if nx and key in self.keys:
            return None
        self.keys[key] = value
        return True

    def delete(self, key):
        return 1 if self.keys.pop(key, None) is not None else 0


@pytest.fixture
def broadcast_queue(monkeypatch):
    """Replaces Redis + RQ for schedule_broadcast; `.jobs` lists what was enqueued."""
    from apps.backend.services import broadcast

    queue = SimpleNamespace(store=FakeLockStore(), jobs=[])

    def _enqueue(conn, func_path, *args):
        queue.jobs.append((func_path, args))

    monkeypatch.setattr(broadcast, "_redis", lambda: queue.store)
    monkeypatch.setattr(broadcast, "_enqueue", _enqueue)
    return queue


def message_update(user_id, text=None, username=None, first_name="Test", update_id=1, **fields) -> dict:
    sender = {"id": int(user_id), "is_bot": False, "first_name": first_name}
    if username:
        sender["username"] = username
    message = {"message_id": update_id, "chat": {"id": int(user_id), "type": "private"}, "from": sender}
    if text is not None:
        message["text"] = text
    message.update(fields)
    return {"update_id": update_id, "message": message}


def callback_update(user_id, data, callback_id="cb-1", update_id=1) -> dict:
    return {
        "update_id": update_id,
        "callback_query": {
            "id": callback_id,
            "from": {"id": int(user_id), "is_bot": False, "first_name": "Test"},
            "message": {"message_id": 1, "chat": {"id": int(user_id), "type": "private"}},
            "data": data,
        },
    }
