"""Post drift reports to Microsoft Teams as an Adaptive Card."""

import logging
from typing import Any
from urllib.parse import urlparse

import requests

from armdrift.models import DriftReport, DriftStatus

logger = logging.getLogger(__name__)

MAX_LISTED_RESOURCES = 5


def _summary_column(label: str, count: int, color: str) -> dict[str, Any]:
    return {
        "type": "Column",
        "width": "auto",
        "items": [
            {"type": "TextBlock", "text": label, "weight": "bolder"},
            {"type": "TextBlock", "text": str(count), "size": "extraLarge", "color": color},
        ],
    }


def build_teams_payload(report: DriftReport) -> dict[str, Any]:
    """Build an Adaptive Card message summarising the report."""
    body: list[dict[str, Any]] = [
        {
            "type": "TextBlock",
            "size": "large",
            "weight": "bolder",
            "text": "Azure Resource Drift Report",
        },
        {
            "type": "TextBlock",
            "text": "⚠️ Drift Detected" if report.has_drift else "✅ No Drift Detected",
            "color": "attention" if report.has_drift else "good",
            "weight": "bolder",
        },
        {
            "type": "FactSet",
            "facts": [
                {"title": "Template", "value": report.template_path},
                {"title": "Resource Group", "value": report.resource_group or "N/A"},
                {"title": "Subscription", "value": report.subscription_id or "N/A"},
                {"title": "Total Resources", "value": str(report.total_resources)},
            ],
        },
        {
            "type": "ColumnSet",
            "columns": [
                _summary_column("✅ In Sync", report.in_sync_count, "good"),
                _summary_column("❌ Drifted", report.drifted_count, "attention"),
                _summary_column("⚠️ Missing", report.missing_count, "warning"),
            ],
        },
    ]

    drifted = [r for r in report.results if r.status == DriftStatus.DRIFTED]
    if drifted:
        body.append(
            {"type": "TextBlock", "text": "Drifted Resources:", "weight": "bolder", "separator": True}
        )
        for r in drifted[:MAX_LISTED_RESOURCES]:
            body.append(
                {"type": "TextBlock", "text": f"• {r.resource_name} ({r.resource_type})", "wrap": True}
            )
        if len(drifted) > MAX_LISTED_RESOURCES:
            body.append(
                {
                    "type": "TextBlock",
                    "text": f"...and {len(drifted) - MAX_LISTED_RESOURCES} more",
                    "isSubtle": True,
                }
            )

    return {
        "type": "message",
        "attachments": [
            {
                "contentType": "application/vnd.microsoft.card.adaptive",
                "content": {"type": "AdaptiveCard", "version": "1.4", "body": body},
            }
        ],
    }


def post_to_teams(report: DriftReport, webhook_url: str, timeout: int = 30) -> None:
    """Post a drift report to a Microsoft Teams incoming webhook."""
    if urlparse(webhook_url).scheme != "https":
        raise ValueError("Teams webhook URL must use HTTPS")
    response = requests.post(
        webhook_url,
        json=build_teams_payload(report),
        timeout=timeout,
    )
    response.raise_for_status()
    logger.info("Sent drift notification to Microsoft Teams")
