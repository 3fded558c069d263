import unittest
from types import SimpleNamespace


class _StubJira:
    def __init__(self, issues=None, comments=None):
        self.issues = list(issues or [])
        self.comments = dict(comments or {})
        self.jql = []

    def search_issues(self, jql):
        self.jql.append(jql)
        github_id = int(jql.rsplit("=", 1)[1])
        return [i for i in self.issues if i.github_id == github_id]

    def get_comments(self, issue_id):
        return list(self.comments.get(issue_id, []))


def _index(jira):
    from app.services.correlation import CorrelationIndex
    from app.services.jira_client import JiraFieldIds

    return CorrelationIndex(jira, JiraFieldIds(github_id="10109"))


class CommentTokenTests(unittest.TestCase):
    def test_parse_comment_token(self):
        from app.services.correlation import parse_comment_token

        body = "Comment [(ID 987654)|https://github.com/o/r/issues/1#issuecomment-987654] from GitHub user ..."
        self.assertEqual(parse_comment_token(body), 987654)

    def test_token_must_start_the_body(self):
        from app.services.correlation import parse_comment_token

        self.assertIsNone(parse_comment_token("quoted: Comment [(ID 5)|x]"))
        self.assertIsNone(parse_comment_token("a comment written in Jira"))
        self.assertIsNone(parse_comment_token(""))
        self.assertIsNone(parse_comment_token(None))

    def test_formatted_comment_carries_its_own_token(self):
        from app.config import Settings
        from app.schemas import GitHubComment
        from app.services.correlation import parse_comment_token
        from app.services.formatting import FieldProjector
        from app.services.jira_client import JiraFieldIds

        projector = FieldProjector(Settings(_env_file=None), JiraFieldIds(github_id="10109"))
        comment = GitHubComment(id=1234567890123, body="hi", html_url="https://github.com/o/r/issues/1#c")
        body = projector.format_comment(comment.body, comment)

        self.assertEqual(parse_comment_token(body), 1234567890123)


class CorrelationIndexTests(unittest.TestCase):
    def test_issue_jql(self):
        index = _index(_StubJira())
        self.assertEqual(index.issue_jql("TIDB", 42), "project='TIDB' AND cf[10109] = 42")

    def test_find_issue_single_match(self):
        issue = SimpleNamespace(key="TIDB-1", id="100", github_id=42)
        jira = _StubJira(issues=[issue, SimpleNamespace(key="TIDB-2", id="101", github_id=7)])

        self.assertIs(_index(jira).find_issue("TIDB", 42), issue)
        self.assertEqual(jira.jql, ["project='TIDB' AND cf[10109] = 42"])

    def test_find_issue_none(self):
        from app.services.errors import IssueNotFound

        with self.assertRaises(IssueNotFound) as ctx:
            _index(_StubJira()).find_issue("TIDB", 42)
        self.assertEqual(ctx.exception.github_issue_id, 42)
        self.assertIn("Issue not exists", str(ctx.exception))

    def test_find_issue_several_matches(self):
        from app.services.errors import AmbiguousCorrelation

        jira = _StubJira(
            issues=[
                SimpleNamespace(key="TIDB-1", id="100", github_id=42),
                SimpleNamespace(key="TIDB-9", id="109", github_id=42),
            ]
        )
        with self.assertRaises(AmbiguousCorrelation) as ctx:
            _index(jira).find_issue("TIDB", 42)
        self.assertEqual(ctx.exception.keys, ["TIDB-1", "TIDB-9"])

    def test_search_errors_propagate(self):
        jira = _StubJira()

        def boom(jql):
            raise ConnectionError("jira down")

        jira.search_issues = boom
        with self.assertRaises(ConnectionError):
            _index(jira).find_issue("TIDB", 42)

    def test_find_comment(self):
        from app.services.errors import CommentNotFound

        synced = SimpleNamespace(id="c1", body="Comment [(ID 55)|u] from GitHub user [a|b] at x")
        manual = SimpleNamespace(id="c2", body="written in Jira")
        index = _index(_StubJira(comments={"100": [manual, synced]}))

        self.assertIs(index.find_comment("100", 55), synced)
        with self.assertRaises(CommentNotFound):
            index.find_comment("100", 56)


if __name__ == "__main__":
    unittest.main()
