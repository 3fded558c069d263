"""Locate the Jira counterparts of GitHub issues and comments"""

import logging
import re
from typing import Any, Iterable, Optional

from app.services.errors import AmbiguousCorrelation, CommentNotFound, IssueNotFound
from app.services.jira_client import JiraClient, JiraFieldIds

logger = logging.getLogger(__name__)

# Every synced comment body starts with "Comment [(ID <github comment id>)|<link>] ..."
COMMENT_TOKEN_RE = re.compile(r"^Comment \[\(ID (\d+)\)\|")


def parse_comment_token(body: Optional[str]) -> Optional[int]:
    """Return the GitHub comment id embedded at the start of a Jira comment body."""
    if not body:
        return None
    m = COMMENT_TOKEN_RE.match(body)
    if not m:
        return None
    return int(m.group(1))


def match_comment(comments: Iterable[Any], github_comment_id: int) -> Optional[Any]:
    """First Jira comment whose token carries `github_comment_id`, or None."""
    for comment in comments:
        if parse_comment_token(getattr(comment, "body", None)) == github_comment_id:
            return comment
    return None


class CorrelationIndex:
    """Joins GitHub and Jira through the "GitHub ID" custom field and comment tokens"""

    def __init__(self, jira_client: JiraClient, field_ids: JiraFieldIds):
        self.jira_client = jira_client
        self.field_ids = field_ids

    def issue_jql(self, project_key: str, github_issue_id: int) -> str:
        return f"project='{project_key}' AND cf[{self.field_ids.github_id}] = {int(github_issue_id)}"

    def find_issue(self, project_key: str, github_issue_id: int) -> Any:
        """Return the Jira issue carrying `github_issue_id`.

        Raises IssueNotFound when there is none and AmbiguousCorrelation when
        several issues carry the same id. Transport errors propagate unchanged.
        """
        issues = self.jira_client.search_issues(self.issue_jql(project_key, github_issue_id))
        if not issues:
            raise IssueNotFound(project_key, github_issue_id)
        if len(issues) > 1:
            keys = [getattr(i, "key", "?") for i in issues]
            logger.error(
                f"Data integrity: GitHub issue {github_issue_id} maps to several JIRA issues: {keys}"
            )
            raise AmbiguousCorrelation(project_key, github_issue_id, keys)
        return issues[0]

    def find_comment(self, jira_issue_id: str, github_comment_id: int) -> Any:
        """Return the Jira comment on `jira_issue_id` synced from `github_comment_id`."""
        comments = self.jira_client.get_comments(jira_issue_id)
        comment = match_comment(comments, github_comment_id)
        if comment is None:
            raise CommentNotFound(jira_issue_id, github_comment_id)
        return comment
