"""GitHub API client wrapper"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from github import Auth, Github, GithubException

from app.schemas import GitHubComment, GitHubIssue

logger = logging.getLogger(__name__)

PER_PAGE = 100  # maximum GitHub allows


class GitHubClient:
    """Wrapper for GitHub API operations"""

    def __init__(self, token: Optional[str], base_url: str = "https://api.github.com"):
        """Initialize GitHub client"""
        auth = Auth.Token(token) if token else None
        self.gh = Github(auth=auth, base_url=base_url, per_page=PER_PAGE)

    @staticmethod
    def _aware(since: Optional[datetime]) -> Optional[datetime]:
        # Watermarks are stored UTC; assume UTC if tzinfo is missing.
        if since is not None and since.tzinfo is None:
            return since.replace(tzinfo=timezone.utc)
        return since

    def get_issues(self, owner: str, repo_name: str, since: Optional[datetime] = None) -> List[GitHubIssue]:
        """Get all issues (not pull requests) of a repository updated since `since`"""
        try:
            repo = self.gh.get_repo(f"{owner}/{repo_name}")
            params = {"state": "all", "sort": "created", "direction": "asc"}
            if since is not None:
                params["since"] = self._aware(since)
            issues = []
            # PaginatedList follows the Link header until there is no next page.
            for raw in repo.get_issues(**params):
                issue = GitHubIssue.model_validate(raw.raw_data)
                if not issue.is_pull_request:
                    issues.append(issue)
            return issues
        except GithubException as e:
            logger.error(f"Failed to get issues for {owner}/{repo_name}: {e}")
            raise

    def get_issue_comments(
        self, owner: str, repo_name: str, number: int, since: Optional[datetime] = None
    ) -> List[GitHubComment]:
        """Get all comments of an issue created/updated since `since`"""
        try:
            repo = self.gh.get_repo(f"{owner}/{repo_name}", lazy=True)
            issue = repo.get_issue(number)
            if since is not None:
                comments = issue.get_comments(since=self._aware(since))
            else:
                comments = issue.get_comments()
            return [GitHubComment.model_validate(c.raw_data) for c in comments]
        except GithubException as e:
            logger.error(f"Failed to get comments for {owner}/{repo_name}#{number}: {e}")
            raise
