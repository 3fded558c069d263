import unittest
from types import SimpleNamespace


class _StubJira:
    """Applies updates to the stub issue so repeated rules can converge."""

    def __init__(self):
        self.updates = []

    def update_issue(self, issue, fields):
        self.updates.append(fields)
        if "issuetype" in fields:
            issue.fields.issuetype = SimpleNamespace(name=fields["issuetype"]["name"])
        if "components" in fields:
            issue.fields.components = [SimpleNamespace(name=c["name"]) for c in fields["components"]]
        return issue


def _jira_issue(issuetype="Task", components=("general",)):
    return SimpleNamespace(
        key="TIDB-1",
        id="100",
        fields=SimpleNamespace(
            issuetype=SimpleNamespace(name=issuetype),
            components=[SimpleNamespace(name=c) for c in components],
        ),
    )


def _repo():
    from app.config import RepoConfig

    return RepoConfig(
        github_owner="pingcap",
        jira_project="TIDB",
        jira_issuetype="Task",
        jira_components=["general"],
        issuetype_label_map={"type/bug": "Bug", "type/feature": "New Feature"},
        component_label_map={"component/planner": "planner", "component/executor": "executor"},
    )


class IssueTypeLabelRuleTests(unittest.TestCase):
    def test_apply_converges(self):
        from app.services.label_rules import IssueTypeLabelRule

        jira = _StubJira()
        rule = IssueTypeLabelRule(jira)
        issue = _jira_issue()

        self.assertTrue(rule.apply(issue, _repo(), "type/bug"))
        self.assertFalse(rule.apply(issue, _repo(), "type/bug"))
        self.assertEqual(jira.updates, [{"issuetype": {"name": "Bug"}}])

    def test_unmapped_label_is_noop(self):
        from app.services.label_rules import IssueTypeLabelRule

        jira = _StubJira()
        self.assertFalse(IssueTypeLabelRule(jira).apply(_jira_issue(), _repo(), "good first issue"))
        self.assertEqual(jira.updates, [])

    def test_reset_restores_default_type(self):
        from app.services.label_rules import IssueTypeLabelRule

        jira = _StubJira()
        rule = IssueTypeLabelRule(jira)
        issue = _jira_issue(issuetype="Bug")

        self.assertFalse(rule.reset(issue, _repo(), "type/feature"))
        self.assertTrue(rule.reset(issue, _repo(), "type/bug"))
        self.assertEqual(issue.fields.issuetype.name, "Task")
        self.assertFalse(rule.reset(issue, _repo(), "type/bug"))

    def test_reconcile_fields(self):
        from app.services.label_rules import IssueTypeLabelRule

        rule = IssueTypeLabelRule(_StubJira())
        repo = _repo()

        self.assertIsNone(rule.reconcile_fields(_jira_issue("Bug"), repo, ["type/bug"]))
        self.assertEqual(
            rule.reconcile_fields(_jira_issue("Task"), repo, ["type/bug"]), {"issuetype": {"name": "Bug"}}
        )
        self.assertEqual(rule.reconcile_fields(_jira_issue("Bug"), repo, []), {"issuetype": {"name": "Task"}})


class ComponentLabelRuleTests(unittest.TestCase):
    def test_apply_replaces_component_set_once(self):
        from app.services.label_rules import ComponentLabelRule

        jira = _StubJira()
        rule = ComponentLabelRule(jira)
        issue = _jira_issue()

        self.assertTrue(rule.apply(issue, _repo(), "component/planner"))
        self.assertFalse(rule.apply(issue, _repo(), "component/planner"))
        self.assertEqual(jira.updates, [{"components": [{"name": "planner"}]}])

    def test_labeled_matches_reconciled_components(self):
        from app.services.label_rules import ComponentLabelRule

        rule = ComponentLabelRule(_StubJira())
        repo = _repo()
        issue = _jira_issue()

        rule.apply(issue, repo, "component/planner")

        self.assertEqual(
            [{"name": c.name} for c in issue.fields.components],
            rule.reconcile_fields(issue, repo, ["component/planner"])["components"],
        )

    def test_reset_last_component_falls_back_to_general(self):
        from app.services.label_rules import ComponentLabelRule

        jira = _StubJira()
        rule = ComponentLabelRule(jira)
        issue = _jira_issue(components=("planner",))

        self.assertTrue(rule.reset(issue, _repo(), "component/planner"))
        self.assertEqual(jira.updates, [{"components": [{"name": "general"}]}])

    def test_reset_keeps_other_components(self):
        from app.services.label_rules import ComponentLabelRule

        jira = _StubJira()
        issue = _jira_issue(components=("planner", "executor"))

        ComponentLabelRule(jira).reset(issue, _repo(), "component/planner")
        self.assertEqual([c.name for c in issue.fields.components], ["executor"])

    def test_reconcile_always_pushes(self):
        from app.services.label_rules import ComponentLabelRule

        rule = ComponentLabelRule(_StubJira())
        repo = _repo()

        self.assertEqual(
            rule.reconcile_fields(_jira_issue(components=("planner",)), repo, ["component/planner"]),
            {"components": [{"name": "planner"}]},
        )
        self.assertEqual(rule.reconcile_fields(_jira_issue(), repo, []), {"components": [{"name": "general"}]})


class LabelUnlabelConvergenceTests(unittest.TestCase):
    def test_label_then_unlabel_restores_state(self):
        from app.services.label_rules import default_rules

        repo = _repo()
        for label in ("type/bug", "component/planner"):
            issue = _jira_issue()
            rules = default_rules(_StubJira())
            for rule in rules:
                rule.apply(issue, repo, label)
            for rule in rules:
                rule.reset(issue, repo, label)

            self.assertEqual(issue.fields.issuetype.name, "Task")
            self.assertEqual([c.name for c in issue.fields.components], ["general"])

    def test_unlabel_after_label_falls_back_to_general(self):
        from app.services.label_rules import ComponentLabelRule

        rule = ComponentLabelRule(_StubJira())
        issue = _jira_issue(components=("executor",))

        rule.apply(issue, _repo(), "component/planner")
        self.assertEqual([c.name for c in issue.fields.components], ["planner"])
        rule.reset(issue, _repo(), "component/planner")
        self.assertEqual([c.name for c in issue.fields.components], ["general"])


class RunRulesTests(unittest.TestCase):
    def test_every_rule_runs_and_failures_are_collected(self):
        from app.services.errors import LabelRuleErrors
        from app.services.label_rules import run_rules

        ran = []

        def step(rule):
            ran.append(rule.name)
            if rule.name == "first":
                raise RuntimeError("jira said no")

        rules = [SimpleNamespace(name="first"), SimpleNamespace(name="second")]
        with self.assertRaises(LabelRuleErrors) as ctx:
            run_rules(rules, step)

        self.assertEqual(ran, ["first", "second"])
        self.assertEqual([name for name, _ in ctx.exception.failures], ["first"])

    def test_no_failures_no_error(self):
        from app.services.label_rules import run_rules

        run_rules([SimpleNamespace(name="only")], lambda rule: None)


if __name__ == "__main__":
    unittest.main()
