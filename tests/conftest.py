"""Shared test fixtures."""

import json
from datetime import UTC, datetime

import pytest

from armdrift.config import DetectorConfig
from armdrift.ignore import IgnoreRuleSet
from armdrift.models import DriftKind, DriftReport, DriftResult, DriftStatus, PropertyDrift

STORAGE_TYPE = "Microsoft.Storage/storageAccounts"

SIMPLE_TEMPLATE = {
    "$schema": "https://schema.management.azure.com/schemas/2019-04-01/deploymentTemplate.json#",
    "contentVersion": "1.0.0.0",
    "parameters": {
        "storageName": {"type": "string", "defaultValue": "stdefault"},
        "location": {"type": "string", "defaultValue": "eastus"},
        "retentionDays": {"type": "int", "defaultValue": 7},
    },
    "resources": [
        {
            "type": STORAGE_TYPE,
            "apiVersion": "2023-01-01",
            "name": "[parameters('storageName')]",
            "location": "[parameters('location')]",
            "tags": {"Env": "Prod", "Owner": "[parameters('storageName')]"},
            "properties": {
                "sku": {"name": "Standard_LRS"},
                "retention": "[parameters('retentionDays')]",
                "ratio": 1.5,
                "label": "[concat('st', parameters('storageName'))]",
            },
        }
    ],
}


@pytest.fixture
def bare_config():
    """Config without any ignore rules, so tests see every difference."""
    return DetectorConfig(ignore_rules=IgnoreRuleSet())


@pytest.fixture
def arm_template_file(tmp_path):
    path = tmp_path / "main.json"
    path.write_text(json.dumps(SIMPLE_TEMPLATE, indent=2), encoding="utf-8")
    return path


def make_report(drifted=True):
    """A small report used by formatter, integration and CLI tests."""
    if drifted:
        results = [
            DriftResult(
                resource_id="/providers/Microsoft.Storage/storageAccounts/stapp",
                resource_type=STORAGE_TYPE,
                resource_name="stapp",
                status=DriftStatus.DRIFTED,
                drifts=[
                    PropertyDrift(
                        "properties.sku.name", DriftKind.MODIFIED, "Standard_LRS", "Premium_LRS"
                    ),
                    PropertyDrift("tags.Env", DriftKind.MISSING, expected_value="Prod"),
                ],
            ),
            DriftResult(
                resource_id="/subscriptions/sub/resourceGroups/rg/providers/Microsoft.Web/sites/orphan",
                resource_type="Microsoft.Web/sites",
                resource_name="orphan",
                status=DriftStatus.UNMANAGED,
            ),
        ]
    else:
        results = [
            DriftResult(
                resource_id="/providers/Microsoft.Storage/storageAccounts/stapp",
                resource_type=STORAGE_TYPE,
                resource_name="stapp",
                status=DriftStatus.IN_SYNC,
            )
        ]
    return DriftReport(
        generated_at=datetime(2026, 2, 25, 13, 30, 0, tzinfo=UTC),
        template_path="infra/main.bicep",
        subscription_id="00000000-0000-0000-0000-000000000000",
        resource_group="rg-app",
        results=results,
    )


@pytest.fixture
def drifted_report():
    return make_report(drifted=True)


@pytest.fixture
def clean_report():
    return make_report(drifted=False)
