"""Jira API client wrapper"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from jira import JIRA
from jira.exceptions import JIRAError

logger = logging.getLogger(__name__)


def safe_attr(obj: Any, name: str, default: Any = None) -> Any:
    """Get attribute or dict key safely (Jira resources or plain dicts)."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


# Jira custom field names that mirror GitHub data
GITHUB_ID_FIELD = "GitHub ID"
GITHUB_URL_FIELD = "GitHub URL"


@dataclass(frozen=True)
class JiraFieldIds:
    """Numeric custom field ids, e.g. "10109" for customfield_10109"""

    github_id: str
    github_url: Optional[str] = None

    @staticmethod
    def field_name(key: str) -> str:
        """customfield_<key>, as used in issue payloads"""
        return f"customfield_{key}"


class JiraClient:
    """Wrapper for Jira API operations"""

    def __init__(self, url: str, username: str, password: str):
        """Initialize Jira client"""
        self.url = url.rstrip("/")
        self.jira = JIRA(server=url, basic_auth=(username, password))

    def browse_url(self, issue_key: str) -> str:
        return f"{self.url}/browse/{issue_key}"

    def get_field_ids(self) -> JiraFieldIds:
        """Resolve the GitHub custom fields by name. Raises if "GitHub ID" is missing."""
        try:
            fields = self.jira.fields()
        except JIRAError as e:
            logger.error(f"Failed to get JIRA custom fields: {e}")
            raise

        by_name: Dict[str, str] = {}
        for field in fields:
            custom_id = (field.get("schema") or {}).get("customId")
            if custom_id is not None:
                by_name[field.get("name", "")] = str(custom_id)

        github_id = by_name.get(GITHUB_ID_FIELD)
        if not github_id:
            raise RuntimeError(
                f"Could not find JIRA custom field ID of '{GITHUB_ID_FIELD}' custom field; "
                "check that it is named correctly"
            )

        return JiraFieldIds(
            github_id=github_id,
            github_url=by_name.get(GITHUB_URL_FIELD),
        )

    def search_issues(self, jql: str) -> List[Any]:
        """Run a JQL search"""
        try:
            return list(self.jira.search_issues(jql))
        except JIRAError as e:
            logger.error(f"Failed to search issues ({jql}): {e}")
            raise

    def create_issue(self, fields: Dict[str, Any]) -> Any:
        """Create a new issue"""
        # No logging on failure here: callers inspect the error for the assignee retry.
        issue = self.jira.create_issue(fields=fields)
        logger.info(f"Created issue {issue.key}")
        return issue

    def update_issue(self, issue: Any, fields: Dict[str, Any]) -> Any:
        """Update fields of an existing issue"""
        try:
            issue.update(fields=fields)
            logger.debug(f"Updated issue {issue.key}: {sorted(fields)}")
            return issue
        except JIRAError as e:
            logger.error(f"Failed to update issue {issue.key}: {e}")
            raise

    def set_assignee(self, issue: Any, user_name: Optional[str]) -> Any:
        """Set (or clear, with None) the assignee"""
        assignee = {"name": user_name} if user_name else None
        return self.update_issue(issue, {"assignee": assignee})

    def transition_issue(self, issue: Any, transition_id: str) -> None:
        """Apply a workflow transition by id"""
        try:
            self.jira.transition_issue(issue, transition_id)
            logger.info(f"Transitioned issue {issue.key} with transition {transition_id}")
        except JIRAError as e:
            logger.error(f"Failed to transition issue {issue.key} ({transition_id}): {e}")
            raise

    def get_comments(self, issue_id: str) -> List[Any]:
        """Get all comments of an issue"""
        try:
            return list(self.jira.comments(issue_id))
        except JIRAError as e:
            logger.error(f"Failed to get comments for issue {issue_id}: {e}")
            raise

    def add_comment(self, issue_id: str, body: str) -> Any:
        """Create a comment on an issue"""
        try:
            comment = self.jira.add_comment(issue_id, body)
            logger.info(f"Created comment on issue {issue_id}")
            return comment
        except JIRAError as e:
            logger.error(f"Failed to create comment on issue {issue_id}: {e}")
            raise

    def update_comment(self, comment: Any, body: str) -> Any:
        """Overwrite a comment body"""
        try:
            comment.update(body=body)
            return comment
        except JIRAError as e:
            logger.error(f"Failed to update comment {comment.id}: {e}")
            raise

    def delete_comment(self, comment: Any) -> None:
        """Delete a comment"""
        try:
            comment.delete()
            logger.info(f"Deleted comment {comment.id}")
        except JIRAError as e:
            logger.error(f"Failed to delete comment {comment.id}: {e}")
            raise
