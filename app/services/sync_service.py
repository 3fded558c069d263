"""Bulk reconciliation of GitHub issues into Jira"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from app.config import RepoConfig, Settings
from app.models.sync_log import SyncSource, SyncStatus
from app.schemas import GitHubIssue
from app.services.correlation import CorrelationIndex, match_comment, parse_comment_token
from app.services.errors import IssueNotFound
from app.services.formatting import FieldProjector
from app.services.github_client import GitHubClient
from app.services.handlers import TRANSITION_DONE, TRANSITION_TODO, IssueEventHandlers
from app.services.jira_client import JiraClient, safe_attr
from app.services.label_rules import LabelRule
from app.services.sync_log_writer import SyncLogWriter
from app.services.watermark import WatermarkStore

logger = logging.getLogger(__name__)

# Jira status category name of finished issues
STATUS_CATEGORY_DONE = "Done"


def status_category(issue: Any) -> Optional[str]:
    status = safe_attr(safe_attr(issue, "fields"), "status")
    return safe_attr(safe_attr(status, "statusCategory"), "name")


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass; shared by the repository/issue workers"""

    stats: Dict[str, int] = field(
        default_factory=lambda: {"repositories": 0, "issues": 0, "created": 0, "updated": 0, "errors": 0}
    )
    # (repository, issue number or None, error)
    errors: List[Tuple[str, Optional[int], Exception]] = field(default_factory=list)
    skipped: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def incr(self, key: str, n: int = 1) -> None:
        with self._lock:
            self.stats[key] = self.stats.get(key, 0) + n

    def add_error(self, repository: str, issue_number: Optional[int], exc: Exception) -> None:
        with self._lock:
            self.errors.append((repository, issue_number, exc))
            self.stats["errors"] += 1

    @property
    def last_error(self) -> Optional[Exception]:
        """Most recent error, for callers that only want a pass/fail signal."""
        return self.errors[-1][2] if self.errors else None

    def repository_errors(self, repository: str) -> List[Tuple[Optional[int], Exception]]:
        with self._lock:
            return [(n, e) for r, n, e in self.errors if r == repository]

    def as_dict(self) -> Dict[str, Any]:
        if self.skipped:
            return {"status": "skipped", "message": "Reconciliation already running"}
        return {
            "status": "failed" if self.errors else "success",
            "stats": dict(self.stats),
            "errors": [
                {"repository": r, "issue_number": n, "error": str(e)} for r, n, e in self.errors
            ],
        }


class SyncService:
    """Service for reconciling every configured repository with Jira"""

    def __init__(
        self,
        settings: Settings,
        github_client: GitHubClient,
        jira_client: JiraClient,
        correlation: CorrelationIndex,
        projector: FieldProjector,
        handlers: IssueEventHandlers,
        rules: List[LabelRule],
        watermark: WatermarkStore,
        sync_log: Optional[SyncLogWriter] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.settings = settings
        self.github_client = github_client
        self.jira_client = jira_client
        self.correlation = correlation
        self.projector = projector
        self.handlers = handlers
        self.rules = rules
        self.watermark = watermark
        self.sync_log = sync_log
        self._now = now
        self._running = threading.Lock()

    def sync_all(self) -> ReconcileResult:
        """One full pass over every configured repository."""
        result = ReconcileResult()
        if not self._running.acquire(blocking=False):
            logger.info("Reconciliation already running, skipping")
            result.skipped = True
            return result

        try:
            since = self.watermark.since()
            repos = dict(self.settings.repos)
            logger.info(f"Start compare and sync issues of {len(repos)} repositories since {since.isoformat()}")

            if repos:
                with ThreadPoolExecutor(max_workers=len(repos), thread_name_prefix="sync-repo") as pool:
                    futures = [
                        pool.submit(self.sync_repository, name, repo, since, result)
                        for name, repo in repos.items()
                    ]
                    wait(futures)
                for future in futures:
                    # sync_repository isolates its own failures; this only catches bugs.
                    if future.exception() is not None:
                        logger.error(f"Repository sync crashed: {future.exception()}")
                        result.add_error("?", None, future.exception())

            self.watermark.write(self._now())
            logger.info(f"Finish compare and sync issues: {result.stats}")
            return result
        finally:
            self._running.release()

    def sync_repository(self, repo_name: str, repo: RepoConfig, since: datetime, result: ReconcileResult) -> None:
        """Create missing issues sequentially, then update every issue concurrently."""
        result.incr("repositories")
        try:
            issues = self.github_client.get_issues(repo.github_owner, repo_name, since)
        except Exception as e:
            logger.error(f"getGithubIssuesByRepo error occur of {repo_name}: {e}")
            result.add_error(repo_name, None, e)
            self._log(SyncStatus.FAILED, f"Listing issues failed: {e}", repo_name)
            return
        logger.debug(f"finish get all github issues of {repo_name}: {len(issues)}")
        result.incr("issues", len(issues))

        # Sequential so two creations of the same GitHub issue cannot race.
        for issue in issues:
            try:
                self.correlation.find_issue(repo.jira_project, issue.id)
            except IssueNotFound:
                try:
                    self.create_from_source(issue, repo)
                    result.incr("created")
                except Exception as e:
                    logger.error(f"Failed to create JIRA issue for {issue.html_url}: {e}")
                    result.add_error(repo_name, issue.number, e)
            except Exception as e:
                logger.error(f"findIssue failed for {issue.html_url}: {e}")
                result.add_error(repo_name, issue.number, e)

        if issues:
            workers = max(1, min(self.settings.reconcile_max_workers, len(issues)))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"sync-{repo_name}") as pool:
                wait([pool.submit(self._sync_issue, repo_name, repo, issue, since, result) for issue in issues])

        errors = result.repository_errors(repo_name)
        if errors:
            self._log(SyncStatus.FAILED, f"{len(errors)} of {len(issues)} issues failed", repo_name)
        else:
            self._log(SyncStatus.SUCCESS, f"{len(issues)} issues synced", repo_name)

    def _sync_issue(
        self, repo_name: str, repo: RepoConfig, issue: GitHubIssue, since: datetime, result: ReconcileResult
    ) -> None:
        try:
            jira_issue = self.correlation.find_issue(repo.jira_project, issue.id)
            jira_url = self.jira_client.browse_url(getattr(jira_issue, "key", ""))
            logger.debug(f"start compareSyncIssuesUpdate {issue.html_url} -> {jira_url}")
            self.update_from_source(jira_issue, issue, repo)
            self.sync_comments(jira_issue, issue, repo_name, repo, since)
            result.incr("updated")
        except Exception as e:
            logger.error(f"Failed to sync issue {issue.html_url}: {e}")
            result.add_error(repo_name, issue.number, e)

    def create_from_source(self, issue: GitHubIssue, repo: RepoConfig) -> Any:
        """Create the Jira issue like "opened" does, then back-fill state and labels best-effort."""
        if issue.assignee_login and issue.assignee_login not in self.settings.assignee_map:
            logger.warning(f"GitHub user login not find: {issue.assignee_login}")

        fields = self.projector.project_new_issue(issue, repo)
        created = self.handlers.create_issue(fields)

        if issue.state == "closed":
            try:
                self.handlers.run_transitions(created, repo, TRANSITION_DONE)
            except Exception as e:
                logger.error(f"JIRA issue transition to closed error ({issue.html_url}): {e}")

        labels = issue.label_names
        for rule in self.rules:
            rule_fields = rule.creation_fields(repo, labels)
            if not rule_fields:
                continue
            try:
                self.jira_client.update_issue(created, rule_fields)
            except Exception as e:
                logger.error(f"create JIRA issue {rule.name} error ({issue.html_url}): {e}")

        return created

    def update_from_source(self, jira_issue: Any, issue: GitHubIssue, repo: RepoConfig) -> None:
        """Push the full projection. Only the summary/description update may fail the issue."""
        self.jira_client.update_issue(jira_issue, self.projector.project_updated_issue(issue))

        # Always overwrite; an unmapped or missing GitHub assignee clears the Jira one.
        assignee = self.projector.map_assignee(issue.assignee_login)
        try:
            self.jira_client.set_assignee(jira_issue, assignee)
        except Exception as e:
            logger.warning(f"assign JIRA issue to user error {assignee}: {e}")

        category = status_category(jira_issue)
        try:
            if issue.state == "closed" and category != STATUS_CATEGORY_DONE:
                self.handlers.run_transitions(jira_issue, repo, TRANSITION_DONE)
            elif issue.state == "open" and category == STATUS_CATEGORY_DONE:
                self.handlers.run_transitions(jira_issue, repo, TRANSITION_TODO)
        except Exception as e:
            logger.error(f"JIRA issue transition to {issue.state} error: {e}")

        labels = issue.label_names
        for rule in self.rules:
            rule_fields = rule.reconcile_fields(jira_issue, repo, labels)
            if not rule_fields:
                continue
            try:
                self.jira_client.update_issue(jira_issue, rule_fields)
            except Exception as e:
                logger.error(f"update JIRA issue {rule.name} error: {e}")

    def sync_comments(
        self, jira_issue: Any, issue: GitHubIssue, repo_name: str, repo: RepoConfig, since: datetime
    ) -> None:
        """Create or update Jira comments from GitHub comments."""
        jira_comments = self.jira_client.get_comments(jira_issue.id)

        if issue.comments == 0:
            # Every GitHub comment is gone: drop the synced ones, keep comments written in Jira.
            for comment in jira_comments:
                if parse_comment_token(getattr(comment, "body", None)) is None:
                    continue
                try:
                    self.jira_client.delete_comment(comment)
                except Exception as e:
                    logger.warning(f"Delete JIRA comment error: {e}")
            return

        github_comments = self.github_client.get_issue_comments(
            repo.github_owner, repo_name, issue.number, since
        )
        # Synced comments whose GitHub comment was deleted are left in place here.
        for github_comment in github_comments:
            body = self.projector.format_comment(github_comment.body, github_comment)
            existing = match_comment(jira_comments, github_comment.id)
            try:
                if existing is not None:
                    self.jira_client.update_comment(existing, body)
                else:
                    self.jira_client.add_comment(jira_issue.id, body)
            except Exception as e:
                logger.warning(f"sync comment {github_comment.html_url} error: {e}")

    def _log(self, status: SyncStatus, message: str, repo_name: str) -> None:
        if self.sync_log is not None:
            self.sync_log.write(status, SyncSource.RECONCILE, message, repository=repo_name)
