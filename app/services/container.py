"""Wiring of clients and services for one process"""

import logging
from dataclasses import dataclass
from typing import Callable, List

from sqlalchemy.orm import Session

from app.config import Settings
from app.services.correlation import CorrelationIndex
from app.services.dispatcher import EventDispatcher
from app.services.formatting import FieldProjector
from app.services.github_client import GitHubClient
from app.services.handlers import IssueEventHandlers
from app.services.jira_client import JiraClient, JiraFieldIds
from app.services.label_rules import LabelRule, default_rules
from app.services.sync_log_writer import SyncLogWriter
from app.services.sync_service import SyncService
from app.services.watermark import WatermarkStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    github_client: GitHubClient
    jira_client: JiraClient
    field_ids: JiraFieldIds
    correlation: CorrelationIndex
    projector: FieldProjector
    rules: List[LabelRule]
    handlers: IssueEventHandlers
    dispatcher: EventDispatcher
    watermark: WatermarkStore
    sync_service: SyncService


def build_services(settings: Settings, session_factory: Callable[[], Session]) -> Services:
    """Connect to both trackers and resolve the Jira custom fields. Raises on bad config."""
    settings.validate_required()

    github_client = GitHubClient(settings.github_token, settings.github_base_url)
    jira_client = JiraClient(settings.jira_base_url, settings.jira_username, settings.jira_password)

    logger.debug("start get JIRA custom fields")
    field_ids = jira_client.get_field_ids()
    logger.debug(f"finish get JIRA custom fields: {field_ids}")

    correlation = CorrelationIndex(jira_client, field_ids)
    projector = FieldProjector(settings, field_ids)
    rules = default_rules(jira_client)
    handlers = IssueEventHandlers(settings, jira_client, correlation, projector, rules)
    sync_log = SyncLogWriter(session_factory)
    dispatcher = EventDispatcher(settings, handlers, sync_log)
    watermark = WatermarkStore(session_factory, enabled=settings.use_last_sync_time)
    sync_service = SyncService(
        settings,
        github_client,
        jira_client,
        correlation,
        projector,
        handlers,
        rules,
        watermark,
        sync_log=sync_log,
    )

    return Services(
        github_client=github_client,
        jira_client=jira_client,
        field_ids=field_ids,
        correlation=correlation,
        projector=projector,
        rules=rules,
        handlers=handlers,
        dispatcher=dispatcher,
        watermark=watermark,
        sync_service=sync_service,
    )
