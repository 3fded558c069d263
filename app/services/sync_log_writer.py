"""Persist SyncLog rows"""

import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.models import SyncLog
from app.models.sync_log import SyncSource, SyncStatus

logger = logging.getLogger(__name__)


class SyncLogWriter:
    """Writes one SyncLog row per call; never raises"""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def write(
        self,
        status: SyncStatus,
        source: SyncSource,
        message: Optional[str] = None,
        *,
        repository: Optional[str] = None,
        issue_number: Optional[int] = None,
        action: Optional[str] = None,
    ) -> None:
        db = self.session_factory()
        try:
            db.add(
                SyncLog(
                    repository=repository,
                    issue_number=issue_number,
                    action=action,
                    status=status,
                    source=source,
                    message=message,
                )
            )
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to write sync log: {e}")
        finally:
            db.close()
