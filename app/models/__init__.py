"""Database models"""

from app.models.base import Base
from app.models.sync_log import SyncLog
from app.models.sync_state import SyncState

__all__ = [
    "Base",
    "SyncLog",
    "SyncState",
]
