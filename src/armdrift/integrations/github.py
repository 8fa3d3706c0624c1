"""Post drift reports as GitHub PR comments."""

import logging
import re

import requests

from armdrift.formatter import format_pr_comment
from armdrift.models import DriftReport

logger = logging.getLogger(__name__)

REPO_PATTERN = re.compile(r"^[a-zA-Z0-9._-]+/[a-zA-Z0-9._-]+$")
API_URL = "https://api.github.com"


def _find_comment(session: requests.Session, url: str, identifier: str, timeout: int) -> int | None:
    """Return the id of the first PR comment carrying the identifier marker."""
    marker = f"<!-- {identifier} -->"
    page = 1
    while True:
        response = session.get(url, params={"per_page": 100, "page": page}, timeout=timeout)
        response.raise_for_status()
        comments = response.json()
        for comment in comments:
            if marker in (comment.get("body") or ""):
                return comment["id"]
        if len(comments) < 100:
            return None
        page += 1


def post_to_github_pr(
    report: DriftReport,
    repo: str,
    pr_number: int,
    token: str,
    identifier: str | None = None,
    timeout: int = 30,
    *,
    redact: bool = False,
) -> None:
    """Post a drift report as a comment on a GitHub pull request.

    With ``identifier``, an earlier comment carrying the same marker is edited in
    place instead of adding a new one. ``redact`` hides property values in the comment.
    """
    if not REPO_PATTERN.match(repo):
        raise ValueError(f"Invalid GitHub repo format: {repo!r} (expected 'owner/repo')")

    body = format_pr_comment(report, identifier, redact=redact)
    comments_url = f"{API_URL}/repos/{repo}/issues/{pr_number}/comments"

    with requests.Session() as session:
        session.headers.update(
            {
                "Authorization": f"token {token}",
                "Accept": "application/vnd.github.v3+json",
            }
        )

        comment_id = _find_comment(session, comments_url, identifier, timeout) if identifier else None
        if comment_id is not None:
            response = session.patch(
                f"{API_URL}/repos/{repo}/issues/comments/{comment_id}",
                json={"body": body},
                timeout=timeout,
            )
        else:
            response = session.post(comments_url, json={"body": body}, timeout=timeout)
        response.raise_for_status()

    logger.info("Posted drift report comment to %s#%d", repo, pr_number)
