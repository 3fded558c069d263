"""Sync error types"""

from typing import List, Tuple


class SyncError(Exception):
    """Base class for synchronization errors"""


class IssueNotFound(SyncError):
    """No Jira issue carries the given GitHub issue id"""

    def __init__(self, project_key: str, github_issue_id: int):
        super().__init__(f"Issue not exists: project={project_key} github_id={github_issue_id}")
        self.project_key = project_key
        self.github_issue_id = github_issue_id


class AmbiguousCorrelation(SyncError):
    """More than one Jira issue carries the same GitHub issue id"""

    def __init__(self, project_key: str, github_issue_id: int, keys: List[str]):
        super().__init__(
            f"{len(keys)} JIRA issues in {project_key} carry GitHub ID {github_issue_id}: {', '.join(keys)}"
        )
        self.project_key = project_key
        self.github_issue_id = github_issue_id
        self.keys = keys


class CommentNotFound(SyncError):
    """No comment on the Jira issue carries the given GitHub comment id"""

    def __init__(self, jira_issue_id: str, github_comment_id: int):
        super().__init__(
            f"Corresponded JIRA comment not exists: issue={jira_issue_id} github_comment_id={github_comment_id}"
        )
        self.jira_issue_id = jira_issue_id
        self.github_comment_id = github_comment_id


class UnsupportedEventType(SyncError):
    """Webhook event type we do not handle"""

    def __init__(self, event_type: str):
        super().__init__(f"Unsupported type: {event_type}")
        self.event_type = event_type


class LabelRuleErrors(SyncError):
    """One or more label rules failed; every rule was still attempted"""

    def __init__(self, failures: List[Tuple[str, Exception]]):
        names = ", ".join(f"{name}: {exc}" for name, exc in failures)
        super().__init__(f"label rules failed ({names})")
        self.failures = failures
