"""Tenant bots created through the maker bot, and their channel gate."""
import time

from sqlalchemy import Column, Integer, String, Text

from apps.backend.database import Base


def _now() -> int:
    return int(time.time())


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(128), unique=True, nullable=False, index=True)  # routing key
    username = Column(String(64), nullable=False)  # bot username from getMe
    creator_id = Column(String(32), nullable=False, index=True)
    creator_username = Column(String(128), nullable=True)
    created_at = Column(Integer, nullable=False, default=_now)  # unix seconds


class ChannelGate(Base):
    __tablename__ = "channel_urls"

    id = Column(Integer, primary_key=True, index=True)
    bot_token = Column(String(128), unique=True, nullable=False, index=True)
    url = Column(Text, nullable=False)
