"""Users of the maker bot (platform-wide, not per tenant)."""
from sqlalchemy import Column, Integer, String, Boolean

from apps.backend.database import Base


class PlatformUser(Base):
    __tablename__ = "platform_users"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(32), unique=True, nullable=False, index=True)
    step = Column(String(32), nullable=False, default="none")
    admin_state = Column(String(32), nullable=False, default="none")
    is_blocked = Column(Boolean, nullable=False, default=False)
    username = Column(String(128), nullable=True)
    referred_by = Column(String(128), nullable=False, default="None")
    is_first_start = Column(Boolean, nullable=False, default=True)
