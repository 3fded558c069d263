"""Label-driven projection rules.

Each rule maps GitHub labels onto one Jira field. Rules are independent and
order-insensitive: a missing mapping or an already-converged field is a no-op,
so running a rule twice changes nothing the second time.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from app.config import RepoConfig
from app.services.errors import LabelRuleErrors
from app.services.jira_client import JiraClient, safe_attr

logger = logging.getLogger(__name__)

# Substituted when removing a component would leave the issue without any.
FALLBACK_COMPONENT = "general"


def current_issuetype(issue: Any) -> Optional[str]:
    fields = safe_attr(issue, "fields")
    return safe_attr(safe_attr(fields, "issuetype"), "name")


def current_components(issue: Any) -> List[str]:
    fields = safe_attr(issue, "fields")
    return [safe_attr(c, "name") for c in (safe_attr(fields, "components") or [])]


class LabelRule:
    """Base class for a label -> Jira field rule"""

    name = "label-rule"

    def __init__(self, jira_client: JiraClient):
        self.jira_client = jira_client

    def apply(self, issue: Any, repo: RepoConfig, label: str) -> bool:
        """Bring the issue into the label's state. Returns True if an update was sent."""
        raise NotImplementedError

    def reset(self, issue: Any, repo: RepoConfig, label: str) -> bool:
        """Undo the label's effect. Returns True if an update was sent."""
        raise NotImplementedError

    def creation_fields(self, repo: RepoConfig, labels: List[str]) -> Optional[Dict[str, Any]]:
        """Fields to back-fill right after creation, or None if no label maps."""
        raise NotImplementedError

    def reconcile_fields(self, issue: Any, repo: RepoConfig, labels: List[str]) -> Optional[Dict[str, Any]]:
        """Fields a full reconciliation pushes, or None if nothing needs pushing."""
        raise NotImplementedError


class IssueTypeLabelRule(LabelRule):
    """Label -> Jira issue type; unlabel restores the repository default type"""

    name = "issuetype-by-label"

    def _mapped(self, repo: RepoConfig, label: str) -> Optional[str]:
        mapped = repo.issuetype_label_map.get(label)
        if mapped is None:
            logger.debug(f"label '{label}' not in issue type label map of {repo.jira_project}")
        return mapped

    def apply(self, issue: Any, repo: RepoConfig, label: str) -> bool:
        mapped = self._mapped(repo, label)
        if mapped is None:
            return False
        if current_issuetype(issue) == mapped:
            logger.debug(f"the issue already is the type {mapped}")
            return False
        self.jira_client.update_issue(issue, {"issuetype": {"name": mapped}})
        return True

    def reset(self, issue: Any, repo: RepoConfig, label: str) -> bool:
        mapped = self._mapped(repo, label)
        if mapped is None:
            return False
        if current_issuetype(issue) != mapped:
            logger.debug(f"the issue is not the type {mapped}")
            return False
        self.jira_client.update_issue(issue, {"issuetype": {"name": repo.jira_issuetype}})
        return True

    @staticmethod
    def _types(repo: RepoConfig, labels: List[str]) -> List[str]:
        return [repo.issuetype_label_map[l] for l in labels if l in repo.issuetype_label_map]

    def creation_fields(self, repo: RepoConfig, labels: List[str]) -> Optional[Dict[str, Any]]:
        types = self._types(repo, labels)
        if not types:
            return None
        return {"issuetype": {"name": types[0]}}

    def reconcile_fields(self, issue: Any, repo: RepoConfig, labels: List[str]) -> Optional[Dict[str, Any]]:
        types = self._types(repo, labels)
        if not types:
            return {"issuetype": {"name": repo.jira_issuetype}}
        if current_issuetype(issue) in types:
            return None
        return {"issuetype": {"name": types[0]}}


class ComponentLabelRule(LabelRule):
    """Label -> Jira component set; unlabel removes it again"""

    name = "component-by-label"

    def _mapped(self, repo: RepoConfig, label: str) -> Optional[str]:
        mapped = repo.component_label_map.get(label)
        if mapped is None:
            logger.debug(f"label '{label}' not in component label map of {repo.jira_project}")
        return mapped

    def apply(self, issue: Any, repo: RepoConfig, label: str) -> bool:
        mapped = self._mapped(repo, label)
        if mapped is None:
            return False
        if mapped in current_components(issue):
            logger.debug(f"the issue already in the component {mapped}")
            return False
        self.jira_client.update_issue(issue, {"components": [{"name": mapped}]})
        return True

    def reset(self, issue: Any, repo: RepoConfig, label: str) -> bool:
        mapped = self._mapped(repo, label)
        if mapped is None:
            return False
        components = current_components(issue)
        if mapped not in components:
            logger.debug(f"the issue not in the component {mapped}")
            return False
        remaining = [c for c in components if c != mapped]
        if not remaining:
            remaining = [FALLBACK_COMPONENT]
        self.jira_client.update_issue(issue, {"components": [{"name": c} for c in remaining]})
        return True

    @staticmethod
    def _components(repo: RepoConfig, labels: List[str]) -> List[str]:
        return [repo.component_label_map[l] for l in labels if l in repo.component_label_map]

    def creation_fields(self, repo: RepoConfig, labels: List[str]) -> Optional[Dict[str, Any]]:
        components = self._components(repo, labels)
        if not components:
            return None
        return {"components": [{"name": c} for c in components]}

    def reconcile_fields(self, issue: Any, repo: RepoConfig, labels: List[str]) -> Optional[Dict[str, Any]]:
        # Always pushed, even when unchanged.
        components = self._components(repo, labels) or list(repo.jira_components)
        return {"components": [{"name": c} for c in components]}


def default_rules(jira_client: JiraClient) -> List[LabelRule]:
    return [IssueTypeLabelRule(jira_client), ComponentLabelRule(jira_client)]


def run_rules(rules: List[LabelRule], step: Callable[[LabelRule], Any]) -> None:
    """Run `step` for every rule; failures are collected and raised together at the end."""
    failures = []
    for rule in rules:
        try:
            step(rule)
        except Exception as e:
            logger.error(f"error when running {rule.name}: {e}")
            failures.append((rule.name, e))
    if failures:
        raise LabelRuleErrors(failures)
