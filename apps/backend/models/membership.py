"""Per-tenant, per-user conversation record."""
import time

from sqlalchemy import Column, Integer, String, Boolean, Index, UniqueConstraint

from apps.backend.database import Base


class TenantMembership(Base):
    __tablename__ = "tenant_members"

    id = Column(Integer, primary_key=True, index=True)
    bot_token = Column(String(128), nullable=False, index=True)
    user_id = Column(String(32), nullable=False)
    has_joined = Column(Boolean, nullable=False, default=False)
    user_step = Column(String(32), nullable=False, default="none")
    admin_state = Column(String(32), nullable=False, default="none")
    last_interaction = Column(Integer, nullable=False, default=lambda: int(time.time()))
    is_blocked = Column(Boolean, nullable=False, default=False)
    username = Column(String(128), nullable=True)
    referred_by = Column(String(128), nullable=False, default="None")
    is_first_start = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("bot_token", "user_id", name="uq_tenant_members_bot_user"),
        Index("ix_tenant_members_bot_joined", "bot_token", "has_joined"),
    )
