"""Repository CRUD, duplicate handling and member-count aggregation."""
import pytest

from apps.backend.models.tenant import Tenant
from apps.backend.repository import (
    DuplicateKey,
    channel_gates,
    memberships,
    tenants,
    tenants_by_member_count,
)


def _tenant(db, token, created_at, creator_id="1"):
    return tenants(db).create(token=token, username=f"bot_{created_at}", creator_id=creator_id, created_at=created_at)


def _members(db, token, joined, not_joined=0):
    repo = memberships(db)
    for i in range(joined):
        repo.create(bot_token=token, user_id=f"{token}-j{i}", has_joined=True)
    for i in range(not_joined):
        repo.create(bot_token=token, user_id=f"{token}-n{i}")


@pytest.mark.timeout(10)
def test_create_duplicate_raises_duplicate_key_and_session_stays_usable(db):
    memberships(db).create(bot_token="t1", user_id="5")
    with pytest.raises(DuplicateKey) as exc:
        memberships(db).create(bot_token="t1", user_id="5")
    assert exc.value.model == "TenantMembership"
    assert exc.value.key == {"bot_token": "t1", "user_id": "5"}
    assert memberships(db).count(bot_token="t1") == 1


@pytest.mark.timeout(10)
def test_membership_defaults(db):
    m = memberships(db).create(bot_token="t1", user_id="5")
    assert m.has_joined is False
    assert m.user_step == "none"
    assert m.admin_state == "none"
    assert m.is_blocked is False
    assert m.referred_by == "None"
    assert m.is_first_start is True
    assert m.last_interaction > 0


@pytest.mark.timeout(10)
def test_upsert_inserts_then_updates(db):
    repo = channel_gates(db)
    repo.upsert({"bot_token": "t1"}, {"url": "https://t.me/a"})
    repo.upsert({"bot_token": "t1"}, {"url": "https://t.me/b"})
    rows = repo.find_many()
    assert len(rows) == 1
    assert rows[0].url == "https://t.me/b"


@pytest.mark.timeout(10)
def test_delete_one_and_delete_many(db):
    _members(db, "t1", joined=2, not_joined=1)
    _members(db, "t2", joined=1)
    repo = memberships(db)
    assert repo.delete_one(bot_token="t1", user_id="t1-n0") is True
    assert repo.delete_one(bot_token="t1", user_id="missing") is False
    assert repo.delete_many(bot_token="t1") == 2
    assert repo.count() == 1


@pytest.mark.timeout(10)
def test_tenants_by_member_count_orders_by_joined_count(db):
    _tenant(db, "small", created_at=100)
    _tenant(db, "big", created_at=300)
    _tenant(db, "empty", created_at=50)
    _tenant(db, "tie", created_at=200)
    _members(db, "small", joined=1, not_joined=5)
    _members(db, "big", joined=3)
    _members(db, "tie", joined=1)

    ranked = tenants_by_member_count(db, joined_only=True)
    assert [(t.token, n) for t, n in ranked] == [("big", 3), ("small", 1), ("tie", 1), ("empty", 0)]

    all_members = tenants_by_member_count(db, joined_only=False, limit=2)
    assert [(t.token, n) for t, n in all_members] == [("small", 6), ("big", 3)]


@pytest.mark.timeout(10)
def test_find_many_filters_and_orders(db):
    _tenant(db, "b", created_at=20, creator_id="7")
    _tenant(db, "a", created_at=10, creator_id="7")
    _tenant(db, "c", created_at=5, creator_id="8")
    rows = tenants(db).find_many(order_by=Tenant.created_at, creator_id="7")
    assert [t.token for t in rows] == ["a", "b"]
