"""GitHub payload types shared by the webhook and reconciliation paths"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _GitHubModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class GitHubUser(_GitHubModel):
    login: str = ""
    html_url: str = ""
    name: Optional[str] = None


class GitHubLabel(_GitHubModel):
    name: str


class GitHubRepository(_GitHubModel):
    name: str
    full_name: Optional[str] = None
    owner: Optional[GitHubUser] = None


class GitHubIssue(_GitHubModel):
    id: int
    number: int
    title: str = ""
    body: Optional[str] = None
    state: str = "open"
    html_url: str = ""
    user: Optional[GitHubUser] = None
    assignee: Optional[GitHubUser] = None
    labels: List[GitHubLabel] = Field(default_factory=list)
    comments: int = 0
    created_at: Optional[datetime] = None
    pull_request: Optional[Dict[str, Any]] = None

    @property
    def is_pull_request(self) -> bool:
        return self.pull_request is not None

    @property
    def assignee_login(self) -> str:
        return self.assignee.login if self.assignee else ""

    @property
    def label_names(self) -> List[str]:
        return [label.name for label in self.labels]


class GitHubComment(_GitHubModel):
    id: int
    body: Optional[str] = None
    html_url: str = ""
    user: Optional[GitHubUser] = None
    created_at: Optional[datetime] = None


class IssuesEvent(_GitHubModel):
    """Payload of the `issues` webhook event"""

    action: str
    issue: GitHubIssue
    repository: GitHubRepository
    # Present for assigned/unassigned
    assignee: Optional[GitHubUser] = None
    # Present for labeled/unlabeled
    label: Optional[GitHubLabel] = None


class IssueCommentEvent(_GitHubModel):
    """Payload of the `issue_comment` webhook event"""

    action: str
    issue: GitHubIssue
    comment: GitHubComment
    repository: GitHubRepository
