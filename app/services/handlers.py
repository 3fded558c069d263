"""Incremental handlers: one Jira mutation per GitHub webhook action"""

import logging
import re
import time
from typing import Any, Callable, Dict, List, Optional

from jira.exceptions import JIRAError

from app.config import RepoConfig, Settings
from app.schemas import IssueCommentEvent, IssuesEvent
from app.services.correlation import CorrelationIndex
from app.services.errors import IssueNotFound
from app.services.formatting import FieldProjector
from app.services.jira_client import JiraClient, safe_attr
from app.services.label_rules import LabelRule, run_rules

logger = logging.getLogger(__name__)

# Jira transition names used as keys of RepoConfig.transition_map
TRANSITION_DONE = "Done"
TRANSITION_TODO = "To Do"

ASSIGNEE_ERROR_RE = re.compile(r"assignee.*User.*does not exist\.")


def is_assignee_error(exc: Exception) -> bool:
    """True when Jira rejected a create because the assignee does not exist."""
    text = str(exc)
    if isinstance(exc, JIRAError) and exc.text:
        text = f"{text} {exc.text}"
    return bool(ASSIGNEE_ERROR_RE.search(text))


def current_assignee(issue: Any) -> Optional[str]:
    fields = safe_attr(issue, "fields")
    return safe_attr(safe_attr(fields, "assignee"), "name")


class IssueEventHandlers:
    """State transitions for GitHub `issues` and `issue_comment` events"""

    def __init__(
        self,
        settings: Settings,
        jira_client: JiraClient,
        correlation: CorrelationIndex,
        projector: FieldProjector,
        rules: List[LabelRule],
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.jira_client = jira_client
        self.correlation = correlation
        self.projector = projector
        self.rules = rules
        self._sleep = sleep

    # --- shared helpers (also used by reconciliation) -----------------------------

    def create_issue(self, fields: Dict[str, Any]) -> Any:
        """Create a Jira issue; retry once without assignee if Jira rejects the assignee."""
        attempt = 1
        while True:
            try:
                return self.jira_client.create_issue(fields)
            except JIRAError as e:
                if attempt == 1 and fields.get("assignee") and is_assignee_error(e):
                    logger.warning(f"retry create JIRA issue without assignee: {fields['assignee']}")
                    fields = {k: v for k, v in fields.items() if k != "assignee"}
                    attempt += 1
                    continue
                logger.error(f"error create JIRA issue: {e}")
                raise

    def run_transitions(self, issue: Any, repo: RepoConfig, transition_name: str) -> None:
        """Apply the configured transition ids in order; the first failure propagates."""
        for transition_id in repo.transition_map.get(transition_name, []):
            self.jira_client.transition_issue(issue, transition_id)

    def find_issue_awaiting_creation(self, project_key: str, github_issue_id: int) -> Any:
        """Resolve an issue that a concurrent "opened" event may still be creating.

        Retries only on IssueNotFound, with exponential backoff.
        """
        attempts = max(1, self.settings.creation_wait_attempts)
        base_delay_s = self.settings.creation_wait_base_delay_s
        attempt = 1
        while True:
            try:
                return self.correlation.find_issue(project_key, github_issue_id)
            except IssueNotFound:
                if attempt >= attempts:
                    raise
                delay = base_delay_s * (2 ** (attempt - 1))
                logger.debug(f"JIRA issue for GitHub ID {github_issue_id} not visible yet, retry in {delay}s")
                self._sleep(delay)
                attempt += 1

    # --- issues ---------------------------------------------------------------

    def issue_opened(self, event: IssuesEvent, repo: RepoConfig) -> Any:
        fields = self.projector.project_new_issue(event.issue, repo)
        return self.create_issue(fields)

    def issue_closed(self, event: IssuesEvent, repo: RepoConfig) -> None:
        issue = self.correlation.find_issue(repo.jira_project, event.issue.id)
        self.run_transitions(issue, repo, TRANSITION_DONE)

    def issue_reopened(self, event: IssuesEvent, repo: RepoConfig) -> None:
        issue = self.correlation.find_issue(repo.jira_project, event.issue.id)
        self.run_transitions(issue, repo, TRANSITION_TODO)

    def issue_edited(self, event: IssuesEvent, repo: RepoConfig) -> Any:
        issue = self.correlation.find_issue(repo.jira_project, event.issue.id)
        return self.jira_client.update_issue(issue, self.projector.project_updated_issue(event.issue))

    def issue_assigned(self, event: IssuesEvent, repo: RepoConfig) -> None:
        issue = self.find_issue_awaiting_creation(repo.jira_project, event.issue.id)
        login = event.assignee.login if event.assignee else event.issue.assignee_login
        name = self.projector.map_assignee(login)
        if name is None:
            return
        self.jira_client.set_assignee(issue, name)

    def issue_unassigned(self, event: IssuesEvent, repo: RepoConfig) -> None:
        issue = self.find_issue_awaiting_creation(repo.jira_project, event.issue.id)
        login = event.assignee.login if event.assignee else ""
        intended = self.projector.map_assignee(login)
        if intended is None:
            return
        current = current_assignee(issue)
        # Don't clobber an assignee someone set by hand in Jira.
        if intended != current:
            logger.debug(f"unassigned user {intended} is not the current JIRA assignee {current}")
            return
        self.jira_client.set_assignee(issue, None)

    def issue_labeled(self, event: IssuesEvent, repo: RepoConfig) -> None:
        issue = self.find_issue_awaiting_creation(repo.jira_project, event.issue.id)
        if event.label is None:
            logger.warning("labeled event without label")
            return
        label = event.label.name
        run_rules(self.rules, lambda rule: rule.apply(issue, repo, label))

    def issue_unlabeled(self, event: IssuesEvent, repo: RepoConfig) -> None:
        issue = self.correlation.find_issue(repo.jira_project, event.issue.id)
        if event.label is None:
            logger.warning("unlabeled event without label")
            return
        label = event.label.name
        run_rules(self.rules, lambda rule: rule.reset(issue, repo, label))

    # --- comments -------------------------------------------------------------

    def comment_created(self, event: IssueCommentEvent, repo: RepoConfig) -> Any:
        issue = self.correlation.find_issue(repo.jira_project, event.issue.id)
        body = self.projector.format_comment(event.comment.body, event.comment)
        return self.jira_client.add_comment(issue.id, body)

    def comment_edited(self, event: IssueCommentEvent, repo: RepoConfig) -> Any:
        issue = self.correlation.find_issue(repo.jira_project, event.issue.id)
        comment = self.correlation.find_comment(issue.id, event.comment.id)
        body = self.projector.format_comment(event.comment.body, event.comment)
        return self.jira_client.update_comment(comment, body)

    def comment_deleted(self, event: IssueCommentEvent, repo: RepoConfig) -> None:
        issue = self.correlation.find_issue(repo.jira_project, event.issue.id)
        comment = self.correlation.find_comment(issue.id, event.comment.id)
        self.jira_client.delete_comment(comment)
