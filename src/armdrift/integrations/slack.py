"""Post drift reports to Slack via incoming webhook."""

import logging
from typing import Any
from urllib.parse import urlparse

import requests

from armdrift.models import DriftReport, DriftStatus

logger = logging.getLogger(__name__)

ALLOWED_SLACK_HOSTS = {"hooks.slack.com", "hooks.slack-gov.com"}
MAX_LISTED_RESOURCES = 5


def build_slack_payload(report: DriftReport) -> dict[str, Any]:
    """Build a Slack attachment summarising the report."""
    status_emoji = ":warning:" if report.has_drift else ":white_check_mark:"
    status_text = "Drift Detected" if report.has_drift else "No Drift Detected"

    fields = [
        {"title": "Template", "value": report.template_path, "short": True},
        {"title": "Resource Group", "value": report.resource_group or "N/A", "short": True},
        {"title": "In Sync", "value": str(report.in_sync_count), "short": True},
        {"title": "Drifted", "value": str(report.drifted_count), "short": True},
    ]
    if report.missing_count:
        fields.append({"title": "Missing", "value": str(report.missing_count), "short": True})
    if report.unmanaged_count:
        fields.append({"title": "Unmanaged", "value": str(report.unmanaged_count), "short": True})

    drifted = [r for r in report.results if r.status == DriftStatus.DRIFTED]
    text = None
    if drifted:
        listed = "\n".join(
            f"• {r.resource_name} ({r.resource_type})" for r in drifted[:MAX_LISTED_RESOURCES]
        )
        text = f"*Drifted Resources:*\n{listed}"
        if len(drifted) > MAX_LISTED_RESOURCES:
            text += f"\n_...and {len(drifted) - MAX_LISTED_RESOURCES} more_"

    return {
        "attachments": [
            {
                "fallback": f"Azure Drift Report: {status_text}",
                "color": "#ff0000" if report.has_drift else "#36a64f",
                "pretext": f"{status_emoji} *Azure Resource Drift Report*",
                "text": text,
                "fields": fields,
                "footer": "armdrift",
                "ts": int(report.generated_at.timestamp()),
            }
        ]
    }


def post_to_slack(report: DriftReport, webhook_url: str, timeout: int = 30) -> None:
    """Post a drift report to a Slack incoming webhook."""
    parsed = urlparse(webhook_url)
    if parsed.scheme != "https":
        raise ValueError("Slack webhook URL must use HTTPS")
    if parsed.hostname not in ALLOWED_SLACK_HOSTS:
        raise ValueError(
            f"Invalid Slack webhook host {parsed.hostname!r}: "
            f"must be one of {sorted(ALLOWED_SLACK_HOSTS)}"
        )
    response = requests.post(
        webhook_url,
        json=build_slack_payload(report),
        timeout=timeout,
    )
    response.raise_for_status()
    logger.info("Sent drift notification to Slack")
