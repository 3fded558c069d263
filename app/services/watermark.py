"""Reconciliation watermark persistence"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.models.sync_state import WATERMARK_KEY, SyncState

logger = logging.getLogger(__name__)

# One day of overlap so issues updated around the last pass are not missed.
OVERLAP = timedelta(days=1)
# Without a usable watermark, sync everything updated in the last three months.
DEFAULT_WINDOW = timedelta(days=90)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_watermark(value: datetime) -> str:
    """RFC 3339, UTC, second precision"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def parse_watermark(value: str) -> datetime:
    dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class WatermarkStore:
    """Single timestamp bounding the next reconciliation's GitHub query window"""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        enabled: bool = True,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.session_factory = session_factory
        self.enabled = enabled
        self._now = now

    def read(self) -> Optional[datetime]:
        """The stored watermark, or None when absent or unparseable."""
        db = self.session_factory()
        try:
            row = db.query(SyncState).filter(SyncState.key == WATERMARK_KEY).first()
        finally:
            db.close()
        if row is None or not row.value:
            logger.debug("No last sync time stored")
            return None
        try:
            return parse_watermark(row.value)
        except ValueError as e:
            logger.info(f"parse last sync time error: {e}")
            return None

    def since(self) -> datetime:
        """Start of the next pass's query window."""
        default = self._now() - DEFAULT_WINDOW
        if not self.enabled:
            return default
        last = self.read()
        if last is None:
            logger.debug("sync all issues in last three months")
            return default
        logger.debug(f"lastSyncTime: {format_watermark(last)}")
        return last - OVERLAP

    def write(self, value: Optional[datetime] = None) -> None:
        """Persist `value` (default: now). Failures are logged, never raised."""
        value = value or self._now()
        db = self.session_factory()
        try:
            row = db.query(SyncState).filter(SyncState.key == WATERMARK_KEY).first()
            if row is None:
                row = SyncState(key=WATERMARK_KEY)
                db.add(row)
            row.value = format_watermark(value)
            db.commit()
            logger.debug(f"write lastSyncTime {row.value}")
        except Exception as e:
            db.rollback()
            logger.error(f"write last sync time error: {e}")
        finally:
            db.close()
