"""Typed CRUD/upsert access over the entity tables.

Every entity gets the same small surface (find_one, find_many, count, upsert,
create, delete_one, delete_many). Writes commit immediately; `create` maps a
unique-constraint violation to `DuplicateKey` so callers can treat
lookup-then-insert races as "already exists".
"""
from __future__ import annotations

from typing import Any, Generic, TypeVar

from sqlalchemy import and_, delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from apps.backend.models.membership import TenantMembership
from apps.backend.models.platform_user import PlatformUser
from apps.backend.models.tenant import ChannelGate, Tenant


M = TypeVar("M")


class DuplicateKey(Exception):
    def __init__(self, model: str, key: dict[str, Any]) -> None:
        super().__init__(f"{model} already exists: {sorted(key)}")
        self.model = model
        self.key = key


class Repository(Generic[M]):
    def __init__(self, db: Session, model: type[M], key_fields: tuple[str, ...]):
        self.db = db
        self.model = model
        self.key_fields = key_fields

    def _where(self, filters: dict[str, Any]) -> list:
        return [getattr(self.model, k) == v for k, v in filters.items()]

    def find_one(self, **key: Any) -> M | None:
        return self.db.execute(select(self.model).where(*self._where(key))).scalars().first()

    def find_many(self, order_by: Any = None, **filters: Any) -> list[M]:
        q = select(self.model).where(*self._where(filters))
        if order_by is not None:
            q = q.order_by(order_by)
        return list(self.db.execute(q).scalars().all())

    def count(self, **filters: Any) -> int:
        q = select(func.count()).select_from(self.model).where(*self._where(filters))
        return int(self.db.execute(q).scalar_one())

    def create(self, **fields: Any) -> M:
        row = self.model(**fields)
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            key = {k: fields.get(k) for k in self.key_fields}
            raise DuplicateKey(self.model.__name__, key)
        self.db.refresh(row)
        return row

    def upsert(self, key: dict[str, Any], fields: dict[str, Any]) -> M:
        row = self.find_one(**key)
        if row is None:
            try:
                return self.create(**key, **fields)
            except DuplicateKey:
                # lost the insert race, fall through to update
                row = self.find_one(**key)
        for k, v in fields.items():
            setattr(row, k, v)
        self.db.add(row)
        self.db.commit()
        return row

    def delete_one(self, **key: Any) -> bool:
        row = self.find_one(**key)
        if row is None:
            return False
        self.db.delete(row)
        self.db.commit()
        return True

    def delete_many(self, commit: bool = True, **filters: Any) -> int:
        res = self.db.execute(delete(self.model).where(*self._where(filters)))
        if commit:
            self.db.commit()
        return int(res.rowcount or 0)


def tenants(db: Session) -> Repository[Tenant]:
    return Repository(db, Tenant, ("token",))


def memberships(db: Session) -> Repository[TenantMembership]:
    return Repository(db, TenantMembership, ("bot_token", "user_id"))


def channel_gates(db: Session) -> Repository[ChannelGate]:
    return Repository(db, ChannelGate, ("bot_token",))


def platform_users(db: Session) -> Repository[PlatformUser]:
    return Repository(db, PlatformUser, ("user_id",))


def tenants_by_member_count(
    db: Session,
    *,
    joined_only: bool,
    limit: int | None = None,
) -> list[tuple[Tenant, int]]:
    """Tenants with their member count, largest first (ties: oldest first)."""
    join_on = TenantMembership.bot_token == Tenant.token
    if joined_only:
        join_on = and_(join_on, TenantMembership.has_joined.is_(True))
    member_count = func.count(TenantMembership.id).label("member_count")
    q = (
        select(Tenant, member_count)
        .outerjoin(TenantMembership, join_on)
        .group_by(Tenant.id)
        .order_by(member_count.desc(), Tenant.created_at.asc(), Tenant.id.asc())
    )
    if limit:
        q = q.limit(limit)
    return [(row[0], int(row[1])) for row in db.execute(q).all()]
