"""Services"""

from app.services.container import Services, build_services
from app.services.dispatcher import EventDispatcher
from app.services.github_client import GitHubClient
from app.services.jira_client import JiraClient
from app.services.sync_service import SyncService

__all__ = ["EventDispatcher", "GitHubClient", "JiraClient", "Services", "SyncService", "build_services"]
