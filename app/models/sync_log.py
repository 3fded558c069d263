"""Sync log model"""
from sqlalchemy import Column, Integer, String, DateTime, Text, Enum
from datetime import datetime
import enum
from app.models.base import Base


class SyncStatus(str, enum.Enum):
    """Sync status enumeration"""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class SyncSource(str, enum.Enum):
    """What triggered the logged operation"""
    WEBHOOK = "webhook"
    RECONCILE = "reconcile"


class SyncLog(Base):
    """Log of sync operations"""

    __tablename__ = "sync_logs"

    id = Column(Integer, primary_key=True, index=True)

    # GitHub side
    repository = Column(String, nullable=True, index=True)
    issue_number = Column(Integer, nullable=True)
    action = Column(String, nullable=True)  # webhook action, e.g. "labeled"

    # Sync details
    status = Column(Enum(SyncStatus), nullable=False)
    source = Column(Enum(SyncSource), nullable=False)
    message = Column(Text, nullable=True)

    # Timestamp
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f"<SyncLog(repository={self.repository}, status={self.status}, source={self.source})>"
