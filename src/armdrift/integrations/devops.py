"""Post drift reports as Azure DevOps pull request comments."""

import base64
import logging
from typing import Any
from urllib.parse import quote

import requests

from armdrift.formatter import format_pr_comment
from armdrift.models import DriftReport

logger = logging.getLogger(__name__)

API_VERSION = "7.1"

# Azure DevOps thread status codes
THREAD_STATUS_ACTIVE = 1
THREAD_STATUS_FIXED = 4
COMMENT_TYPE_TEXT = 1


class AzureDevOpsClient:
    """Minimal Azure DevOps REST client for PR comment threads."""

    def __init__(self, access_token: str, timeout: int = 30, session: requests.Session | None = None):
        if not access_token:
            raise ValueError("Azure DevOps personal access token is required")
        self._timeout = timeout
        self._session = session or requests.Session()
        auth = base64.b64encode(f":{access_token}".encode("ascii")).decode("ascii")
        self._session.headers.update(
            {
                "Authorization": f"Basic {auth}",
                "Content-Type": "application/json",
            }
        )

    def close(self) -> None:
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    @staticmethod
    def _threads_url(organization_url: str, project: str, pull_request_id: int) -> str:
        project_part = quote(project, safe="")
        return (
            f"{organization_url.rstrip('/')}/{project_part}/_apis/git/repositories/"
            f"{project_part}/pullRequests/{pull_request_id}/threads"
        )

    def _create_thread(self, url: str, content: str, has_drift: bool) -> None:
        payload = {
            "comments": [
                {"parentCommentId": 0, "content": content, "commentType": COMMENT_TYPE_TEXT}
            ],
            "status": THREAD_STATUS_ACTIVE if has_drift else THREAD_STATUS_FIXED,
        }
        response = self._session.post(
            url, params={"api-version": API_VERSION}, json=payload, timeout=self._timeout
        )
        response.raise_for_status()

    def post_pull_request_comment(
        self,
        organization_url: str,
        project: str,
        pull_request_id: int,
        report: DriftReport,
    ) -> None:
        """Create a new comment thread with the drift report."""
        url = self._threads_url(organization_url, project, pull_request_id)
        self._create_thread(url, format_pr_comment(report), report.has_drift)
        logger.info("Posted drift report comment to PR #%d", pull_request_id)

    def upsert_pull_request_comment(
        self,
        organization_url: str,
        project: str,
        pull_request_id: int,
        report: DriftReport,
        comment_identifier: str,
    ) -> None:
        """Update the comment carrying ``comment_identifier``, or create one."""
        url = self._threads_url(organization_url, project, pull_request_id)
        content = format_pr_comment(report, comment_identifier)

        existing = self.find_thread_comment(url, comment_identifier)
        if existing is None:
            self._create_thread(url, content, report.has_drift)
        else:
            thread_id, comment_id = existing
            response = self._session.patch(
                f"{url}/{thread_id}/comments/{comment_id}",
                params={"api-version": API_VERSION},
                json={"content": content},
                timeout=self._timeout,
            )
            response.raise_for_status()

        logger.info("Upserted drift report comment to PR #%d", pull_request_id)

    def find_thread_comment(self, threads_url: str, identifier: str) -> tuple[int, int] | None:
        """Return ``(thread_id, comment_id)`` of the first comment containing ``identifier``."""
        response = self._session.get(
            threads_url, params={"api-version": API_VERSION}, timeout=self._timeout
        )
        response.raise_for_status()

        threads: list[dict[str, Any]] = response.json().get("value", [])
        for thread in threads:
            for comment in thread.get("comments", []):
                if identifier in (comment.get("content") or ""):
                    return thread["id"], comment["id"]
        return None
