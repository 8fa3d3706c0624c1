"""Tests for Slack, Teams, GitHub and Azure DevOps integrations."""

import base64
from unittest.mock import MagicMock, patch

import pytest

from armdrift.integrations.devops import AzureDevOpsClient
from armdrift.integrations.github import post_to_github_pr
from armdrift.integrations.slack import build_slack_payload, post_to_slack
from armdrift.integrations.teams import build_teams_payload, post_to_teams

SLACK_URL = "https://hooks.slack.com/services/T00/B00/xxx"
TEAMS_URL = "https://example.webhook.office.com/webhookb2/xxx"
ORG_URL = "https://dev.azure.com/contoso"
THREADS_URL = f"{ORG_URL}/My%20Project/_apis/git/repositories/My%20Project/pullRequests/7/threads"


# --- Slack ---


def test_slack_payload_for_drift(drifted_report):
    attachment = build_slack_payload(drifted_report)["attachments"][0]

    assert attachment["color"] == "#ff0000"
    assert attachment["fallback"] == "Azure Drift Report: Drift Detected"
    assert "stapp (Microsoft.Storage/storageAccounts)" in attachment["text"]
    titles = {f["title"]: f["value"] for f in attachment["fields"]}
    assert titles["Drifted"] == "1"
    assert titles["Unmanaged"] == "1"
    assert "Missing" not in titles
    assert attachment["ts"] == int(drifted_report.generated_at.timestamp())


def test_slack_payload_without_drift(clean_report):
    attachment = build_slack_payload(clean_report)["attachments"][0]
    assert attachment["color"] == "#36a64f"
    assert attachment["text"] is None


def test_post_to_slack_sends_payload(drifted_report):
    with patch("armdrift.integrations.slack.requests.post") as mock_post:
        mock_post.return_value = MagicMock(status_code=200)

        post_to_slack(drifted_report, SLACK_URL)

        mock_post.assert_called_once()
        assert mock_post.call_args[0][0] == SLACK_URL
        assert mock_post.call_args[1]["json"] == build_slack_payload(drifted_report)
        assert mock_post.call_args[1]["timeout"] == 30


def test_post_to_slack_raises_on_failure(drifted_report):
    with patch("armdrift.integrations.slack.requests.post") as mock_post:
        mock_post.return_value.raise_for_status.side_effect = Exception("500 Server Error")

        with pytest.raises(Exception, match="500"):
            post_to_slack(drifted_report, SLACK_URL)


def test_post_to_slack_rejects_non_slack_host(drifted_report):
    with pytest.raises(ValueError, match="Invalid Slack webhook host"):
        post_to_slack(drifted_report, "https://evil.example.com/webhook")


def test_post_to_slack_rejects_http(drifted_report):
    with pytest.raises(ValueError, match="must use HTTPS"):
        post_to_slack(drifted_report, "http://hooks.slack.com/services/T00/B00/xxx")


def test_post_to_slack_allows_gov_cloud(clean_report):
    with patch("armdrift.integrations.slack.requests.post") as mock_post:
        post_to_slack(clean_report, "https://hooks.slack-gov.com/services/T00/B00/xxx")
        mock_post.assert_called_once()


# --- Teams ---


def test_teams_payload_is_adaptive_card(drifted_report):
    payload = build_teams_payload(drifted_report)

    attachment = payload["attachments"][0]
    assert attachment["contentType"] == "application/vnd.microsoft.card.adaptive"
    card = attachment["content"]
    assert card["version"] == "1.4"
    texts = [block.get("text") for block in card["body"]]
    assert "⚠️ Drift Detected" in texts
    assert "• stapp (Microsoft.Storage/storageAccounts)" in texts


def test_teams_payload_without_drift(clean_report):
    card = build_teams_payload(clean_report)["attachments"][0]["content"]
    texts = [block.get("text") for block in card["body"]]
    assert "✅ No Drift Detected" in texts
    assert "Drifted Resources:" not in texts


def test_post_to_teams(drifted_report):
    with patch("armdrift.integrations.teams.requests.post") as mock_post:
        post_to_teams(drifted_report, TEAMS_URL)

        mock_post.assert_called_once()
        assert mock_post.call_args[0][0] == TEAMS_URL
        assert mock_post.call_args[1]["json"]["type"] == "message"


def test_post_to_teams_rejects_http(drifted_report):
    with pytest.raises(ValueError, match="must use HTTPS"):
        post_to_teams(drifted_report, "http://example.webhook.office.com/x")


# --- GitHub ---


@pytest.fixture
def github_session():
    with patch("armdrift.integrations.github.requests.Session") as mock_session_cls:
        session = mock_session_cls.return_value.__enter__.return_value
        session.headers = {}
        yield session


def test_post_to_github_pr_creates_comment(drifted_report, github_session):
    post_to_github_pr(drifted_report, "owner/repo", 42, "ghp_test123")

    github_session.get.assert_not_called()
    github_session.post.assert_called_once()
    url = github_session.post.call_args[0][0]
    assert url == "https://api.github.com/repos/owner/repo/issues/42/comments"
    assert "Drift Detected" in github_session.post.call_args[1]["json"]["body"]
    assert github_session.headers["Authorization"] == "token ghp_test123"


def test_post_to_github_pr_redacts_values(drifted_report, github_session):
    post_to_github_pr(drifted_report, "owner/repo", 42, "token", redact=True)

    body = github_session.post.call_args[1]["json"]["body"]
    assert "Premium_LRS" not in body
    assert "Standard_LRS" not in body
    assert "[REDACTED]" in body


def test_post_to_github_pr_updates_marked_comment(drifted_report, github_session):
    github_session.get.return_value.json.return_value = [
        {"id": 1, "body": "unrelated"},
        {"id": 99, "body": "<!-- drift-main -->\nold report"},
    ]

    post_to_github_pr(drifted_report, "owner/repo", 42, "token", identifier="drift-main")

    github_session.post.assert_not_called()
    github_session.patch.assert_called_once()
    assert github_session.patch.call_args[0][0] == "https://api.github.com/repos/owner/repo/issues/comments/99"
    assert github_session.patch.call_args[1]["json"]["body"].startswith("<!-- drift-main -->")


def test_post_to_github_pr_creates_when_marker_not_found(drifted_report, github_session):
    github_session.get.return_value.json.return_value = [{"id": 1, "body": "unrelated"}]

    post_to_github_pr(drifted_report, "owner/repo", 42, "token", identifier="drift-main")

    github_session.patch.assert_not_called()
    body = github_session.post.call_args[1]["json"]["body"]
    assert body.startswith("<!-- drift-main -->")


def test_post_to_github_pr_pages_through_comments(drifted_report, github_session):
    first = MagicMock()
    first.json.return_value = [{"id": i, "body": "x"} for i in range(100)]
    second = MagicMock()
    second.json.return_value = [{"id": 500, "body": "<!-- drift-main -->"}]
    github_session.get.side_effect = [first, second]

    post_to_github_pr(drifted_report, "owner/repo", 42, "token", identifier="drift-main")

    assert github_session.get.call_args_list[1][1]["params"] == {"per_page": 100, "page": 2}
    assert github_session.patch.call_args[0][0].endswith("/issues/comments/500")


def test_post_to_github_pr_validates_repo(drifted_report):
    with pytest.raises(ValueError, match="Invalid GitHub repo format"):
        post_to_github_pr(drifted_report, "not-a-valid-repo", 1, "token")


def test_post_to_github_pr_raises_on_failure(drifted_report, github_session):
    github_session.post.return_value.raise_for_status.side_effect = Exception("404 Not Found")

    with pytest.raises(Exception, match="404"):
        post_to_github_pr(drifted_report, "owner/repo", 999, "token")


# --- Azure DevOps ---


@pytest.fixture
def devops_session():
    session = MagicMock()
    session.headers = {}
    return session


def test_devops_client_requires_token():
    with pytest.raises(ValueError, match="access token"):
        AzureDevOpsClient("")


def test_devops_client_sets_basic_auth(devops_session):
    AzureDevOpsClient("pat123", session=devops_session)
    expected = base64.b64encode(b":pat123").decode("ascii")
    assert devops_session.headers["Authorization"] == f"Basic {expected}"


def test_devops_post_creates_active_thread_on_drift(drifted_report, devops_session):
    client = AzureDevOpsClient("pat", session=devops_session)

    client.post_pull_request_comment(ORG_URL + "/", "My Project", 7, drifted_report)

    devops_session.post.assert_called_once()
    assert devops_session.post.call_args[0][0] == THREADS_URL
    assert devops_session.post.call_args[1]["params"] == {"api-version": "7.1"}
    payload = devops_session.post.call_args[1]["json"]
    assert payload["status"] == 1
    assert payload["comments"][0]["commentType"] == 1
    assert "Drift Detected" in payload["comments"][0]["content"]


def test_devops_post_creates_fixed_thread_without_drift(clean_report, devops_session):
    client = AzureDevOpsClient("pat", session=devops_session)
    client.post_pull_request_comment(ORG_URL, "My Project", 7, clean_report)
    assert devops_session.post.call_args[1]["json"]["status"] == 4


def test_devops_upsert_updates_existing_comment(drifted_report, devops_session):
    devops_session.get.return_value.json.return_value = {
        "value": [
            {"id": 10, "comments": [{"id": 1, "content": "hello"}]},
            {"id": 11, "comments": [{"id": 2, "content": None}, {"id": 3, "content": "<!-- drift -->"}]},
        ]
    }
    client = AzureDevOpsClient("pat", session=devops_session)

    client.upsert_pull_request_comment(ORG_URL, "My Project", 7, drifted_report, "drift")

    devops_session.post.assert_not_called()
    devops_session.patch.assert_called_once()
    assert devops_session.patch.call_args[0][0] == f"{THREADS_URL}/11/comments/3"
    assert devops_session.patch.call_args[1]["json"]["content"].startswith("<!-- drift -->")


def test_devops_upsert_creates_thread_when_not_found(drifted_report, devops_session):
    devops_session.get.return_value.json.return_value = {"value": []}
    client = AzureDevOpsClient("pat", session=devops_session)

    client.upsert_pull_request_comment(ORG_URL, "My Project", 7, drifted_report, "drift")

    devops_session.patch.assert_not_called()
    devops_session.post.assert_called_once()


def test_devops_client_closes_session(devops_session):
    with AzureDevOpsClient("pat", session=devops_session):
        pass
    devops_session.close.assert_called_once()
