"""Projection of GitHub issues and comments into Jira field sets"""

import logging
import shlex
import subprocess
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from app.config import RepoConfig, Settings
from app.schemas import GitHubComment, GitHubIssue, GitHubUser
from app.services.jira_client import JiraFieldIds

logger = logging.getLogger(__name__)

# Jira's hard limit is 32767; the rest is left for the attribution text.
MAX_BODY_LENGTH = 30000
TOO_LONG_NOTICE = (
    "\n\nNotice: The entered text is too long. It exceeds the allowed limit of 30,000 characters."
)
SEPARATOR = "\n----\n"
GITHUB_LABEL = "github"


def shrink_string(text: str, max_length: int = MAX_BODY_LENGTH) -> str:
    """Cut `text` to `max_length` characters and append the notice if it was longer."""
    if len(text) > max_length:
        return text[:max_length] + TOO_LONG_NOTICE
    return text


class FieldProjector:
    """Pure projection of GitHub data plus configuration into Jira fields.

    Never fails on missing optional data: unmapped users, versions or fields
    degrade to unset values and a log line.
    """

    def __init__(self, settings: Settings, field_ids: JiraFieldIds):
        self.settings = settings
        self.field_ids = field_ids
        self.tz = ZoneInfo(settings.display_timezone)

    # --- text -----------------------------------------------------------------

    def convert_markdown(self, text: str) -> Tuple[str, Optional[Exception]]:
        """Convert GitHub markdown to Jira markup with the external converter.

        Returns (converted, None), or (raw text, error) when the converter
        fails. Both results are already truncated.
        """
        cmd = self.settings.markdown_converter_cmd
        if not cmd:
            return shrink_string(text), None
        try:
            proc = subprocess.run(
                shlex.split(cmd),
                input=text,
                capture_output=True,
                text=True,
                timeout=self.settings.markdown_converter_timeout_s,
                check=True,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.error(f"Markdown converter failed, using raw text: {e}")
            return shrink_string(text), e
        return shrink_string(proc.stdout), None

    def format_time(self, dt: Optional[datetime]) -> str:
        """Render like "15:04 PM, January 2 2006" in the display timezone."""
        if dt is None:
            return ""
        local = dt.astimezone(self.tz)
        return f"{local:%H:%M %p}, {local:%B} {local.day} {local.year}"

    def _stamp(self, dt: Optional[datetime]) -> str:
        if dt is None:
            return ""
        return f" at {self.format_time(dt)}"

    @staticmethod
    def _user_ref(user: Optional[GitHubUser]) -> str:
        if user is None:
            return "from GitHub user [unknown|]"
        ref = f"from GitHub user [{user.login}|{user.html_url}]"
        if user.name:
            ref = f"{ref} ({user.name})"
        return ref

    def format_body(self, body: Optional[str], issue: GitHubIssue) -> str:
        """Issue description: converted body followed by the attribution footer."""
        converted, err = self.convert_markdown(body or "")
        if err is not None:
            logger.warning(f"Description of {issue.html_url} synced without markup conversion")
        footnotes = f"Create issue [(#{issue.number})|{issue.html_url}] {self._user_ref(issue.user)}"
        return f"{converted}\n{SEPARATOR}\n{footnotes}{self._stamp(issue.created_at)}"

    def format_comment(self, body: Optional[str], comment: GitHubComment) -> str:
        """Comment body: attribution (carrying the correlation token) first, then the text."""
        converted, err = self.convert_markdown(body or "")
        if err is not None:
            logger.warning(f"Comment {comment.html_url} synced without markup conversion")
        footnotes = f"Comment [(ID {comment.id})|{comment.html_url}] {self._user_ref(comment.user)}"
        return f"{footnotes}{self._stamp(comment.created_at)}\n{SEPARATOR}\n{converted}\n"

    # --- fields ---------------------------------------------------------------

    def map_assignee(self, login: str) -> Optional[str]:
        """Jira user name for a GitHub login; None (with a warning) when unmapped."""
        if not login:
            return None
        name = self.settings.assignee_map.get(login)
        if name is None:
            logger.warning(f"GitHub user login could not find corresponding jira user: {login}")
        return name

    @staticmethod
    def _named(values: List[str]) -> List[Dict[str, str]]:
        return [{"name": v} for v in values]

    def project_new_issue(self, issue: GitHubIssue, repo: RepoConfig) -> Dict[str, Any]:
        """Full field set for creating the Jira counterpart of `issue`."""
        project_key = repo.jira_project
        fields: Dict[str, Any] = {
            "project": {"key": project_key},
            "issuetype": {"name": repo.jira_issuetype},
            "summary": issue.title,
            "description": self.format_body(issue.body, issue),
            "components": self._named(repo.jira_components),
            "fixVersions": self._named(self.settings.fix_versions.get(project_key, [])),
            "versions": self._named(self.settings.affects_versions.get(project_key, [])),
            "labels": [GITHUB_LABEL],
            JiraFieldIds.field_name(self.field_ids.github_id): issue.id,
        }

        assignee = self.map_assignee(issue.assignee_login)
        if assignee:
            fields["assignee"] = {"name": assignee}

        if project_key in self.settings.source_url_projects:
            if self.field_ids.github_url:
                fields[JiraFieldIds.field_name(self.field_ids.github_url)] = issue.html_url
            else:
                logger.warning(f"Project {project_key} should carry the GitHub URL but the field is missing")

        return fields

    def project_updated_issue(self, issue: GitHubIssue) -> Dict[str, Any]:
        """Fields recomputed on every update; identity fields are left alone."""
        return {
            "summary": issue.title,
            "description": self.format_body(issue.body, issue),
        }
