"""Decode GitHub webhook deliveries and route them to the incremental handlers"""

import logging
from typing import Dict, Optional, Union

from app.config import Settings
from app.models.sync_log import SyncSource, SyncStatus
from app.schemas import IssueCommentEvent, IssuesEvent
from app.services.errors import UnsupportedEventType
from app.services.handlers import IssueEventHandlers
from app.services.sync_log_writer import SyncLogWriter

logger = logging.getLogger(__name__)

# GitHub action -> IssueEventHandlers method
ISSUE_ACTIONS: Dict[str, str] = {
    "opened": "issue_opened",
    "closed": "issue_closed",
    "reopened": "issue_reopened",
    "edited": "issue_edited",
    "assigned": "issue_assigned",
    "unassigned": "issue_unassigned",
    "labeled": "issue_labeled",
    "unlabeled": "issue_unlabeled",
}
COMMENT_ACTIONS: Dict[str, str] = {
    "created": "comment_created",
    "edited": "comment_edited",
    "deleted": "comment_deleted",
}


class EventDispatcher:
    """Routes `issues` / `issue_comment` events by action"""

    def __init__(self, settings: Settings, handlers: IssueEventHandlers, sync_log: Optional[SyncLogWriter] = None):
        self.settings = settings
        self.handlers = handlers
        self.sync_log = sync_log

    def dispatch(self, event_type: str, delivery_id: str, payload: Union[bytes, str]) -> bool:
        """Decode and handle one delivery.

        Returns True when a handler ran successfully, False when the event was
        ignored or its handler failed (failures are logged, not raised).
        Raises UnsupportedEventType for event types other than issues/issue_comment
        and pydantic.ValidationError for malformed payloads.
        """
        if event_type == "issues":
            return self._handle(IssuesEvent.model_validate_json(payload), ISSUE_ACTIONS, event_type, delivery_id)
        if event_type == "issue_comment":
            return self._handle(
                IssueCommentEvent.model_validate_json(payload), COMMENT_ACTIONS, event_type, delivery_id
            )
        logger.warning(f"[{delivery_id}] Unsupported type {event_type}")
        raise UnsupportedEventType(event_type)

    def _handle(
        self,
        event: Union[IssuesEvent, IssueCommentEvent],
        actions: Dict[str, str],
        event_type: str,
        delivery_id: str,
    ) -> bool:
        repo_name = event.repository.name
        url = event.comment.html_url if isinstance(event, IssueCommentEvent) else event.issue.html_url
        context = f"[{delivery_id}] {event_type}.{event.action} {repo_name}#{event.issue.number} ({url})"
        logger.debug(f"{context} received")

        if event.issue.is_pull_request:
            logger.info(f"{context} not handle pull request issue")
            return False

        method = actions.get(event.action)
        if method is None:
            logger.debug(f"{context} action ignored")
            return False

        repo = self.settings.repos.get(repo_name)
        if repo is None:
            logger.warning(f"{context} repository {repo_name} is not configured")
            return False

        try:
            getattr(self.handlers, method)(event, repo)
        except Exception as e:
            logger.error(f"{context} Error handling event: {e}")
            if self.sync_log is not None:
                self.sync_log.write(
                    SyncStatus.FAILED,
                    SyncSource.WEBHOOK,
                    str(e),
                    repository=repo_name,
                    issue_number=event.issue.number,
                    action=f"{event_type}.{event.action}",
                )
            return False
        logger.info(f"{context} handled")
        return True
