"""Sync state model"""
from sqlalchemy import Column, DateTime, Integer, String
from datetime import datetime, timezone
from app.models.base import Base

WATERMARK_KEY = "last_sync_time"


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SyncState(Base):
    """Process-wide key/value sync state (currently only the reconciliation watermark)"""

    __tablename__ = "sync_state"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String, unique=True, nullable=False, index=True)

    # Stored as RFC 3339 text so the value round-trips independently of the DB dialect.
    value = Column(String, nullable=True)

    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<SyncState({self.key}={self.value!r})>"
