"""Tests for resource pairing and report assembly."""

import logging
from unittest.mock import MagicMock

import pytest

from armdrift.config import DetectorConfig
from armdrift.detector import Detector
from armdrift.errors import UnsupportedTemplateError
from armdrift.ignore import IgnoreRuleSet
from armdrift.jsonvalue import ABSENT, load_json
from armdrift.models import DriftKind, DriftStatus, ResourceState

STORAGE = "Microsoft.Storage/storageAccounts"
SITES = "Microsoft.Web/sites"


def _state(name, resource_type=STORAGE, properties=ABSENT, resource_id=None, **kwargs):
    return ResourceState(
        resource_id=resource_id or f"/subscriptions/sub/resourceGroups/rg/providers/{resource_type}/{name}",
        resource_type=resource_type,
        name=name,
        properties=properties,
        **kwargs,
    )


@pytest.fixture
def detector():
    return Detector(config=DetectorConfig(ignore_rules=IgnoreRuleSet()))


def test_assemble_matched_then_unmanaged(detector):
    expected = [_state("a"), _state("b")]
    actual = [_state("orphan", SITES), _state("b"), _state("a")]

    results = detector.assemble(expected, actual)

    assert [r.resource_name for r in results] == ["a", "b", "orphan"]
    assert [r.status for r in results] == [
        DriftStatus.IN_SYNC,
        DriftStatus.IN_SYNC,
        DriftStatus.UNMANAGED,
    ]


def test_unmanaged_result_uses_live_identity(detector):
    orphan = _state("orphan", SITES)
    results = detector.assemble([], [orphan])
    assert len(results) == 1
    assert results[0].resource_id == orphan.resource_id
    assert results[0].drifts == []


def test_missing_resource(detector):
    results = detector.assemble([_state("a")], [])
    assert results[0].status == DriftStatus.MISSING


def test_matching_ignores_case(detector):
    results = detector.assemble(
        [_state("MyStorage", "Microsoft.Storage/StorageAccounts")],
        [_state("mystorage", "microsoft.storage/storageaccounts")],
    )
    assert [r.status for r in results] == [DriftStatus.IN_SYNC]


def test_same_name_different_type_does_not_match(detector):
    results = detector.assemble([_state("app", STORAGE)], [_state("app", SITES)])
    assert [r.status for r in results] == [DriftStatus.MISSING, DriftStatus.UNMANAGED]


def test_expected_result_keeps_template_identity(detector):
    expected = _state("a", resource_id="/providers/Microsoft.Storage/storageAccounts/a")
    results = detector.assemble([expected], [_state("a")])
    assert results[0].resource_id == "/providers/Microsoft.Storage/storageAccounts/a"


def test_duplicate_live_resources_keep_first(detector, caplog):
    """Open question: later duplicates are only logged, never reported as unmanaged."""
    first = _state("a", properties=load_json('{"sku": "x"}'), resource_id="/first")
    second = _state("A", properties=load_json('{"sku": "y"}'), resource_id="/second")
    expected = _state("a", properties=load_json('{"sku": "x"}'))

    with caplog.at_level(logging.WARNING, logger="armdrift.detector"):
        results = detector.assemble([expected], [first, second])

    assert len(results) == 1
    assert results[0].status == DriftStatus.IN_SYNC
    assert "Duplicate live resource" in caplog.text


def test_comparison_failure_becomes_error_result(detector):
    # a set is not a JSON value, so the comparator raises TypeError
    broken = _state("bad", properties={"a": {1, 2}})
    good = _state("good", properties=load_json('{"a": 1}'))
    actual = [
        _state("bad", properties=load_json('{"a": [1]}')),
        _state("good", properties=load_json('{"a": 2}')),
    ]

    results = detector.assemble([broken, good], actual)

    assert results[0].status == DriftStatus.ERROR
    assert "Not a JSON value" in results[0].error_message
    assert results[0].drifts == []
    assert results[1].status == DriftStatus.DRIFTED
    assert results[1].drifts[0].kind == DriftKind.MODIFIED


def test_error_message_falls_back_to_exception_name(detector):
    detector.compare = MagicMock(side_effect=RuntimeError())
    results = detector.assemble([_state("a")], [])
    assert results[0].status == DriftStatus.ERROR
    assert results[0].error_message == "RuntimeError"


def test_build_report_counts(detector):
    report = detector.build_report(
        [_state("a", properties=load_json('{"x": 1}')), _state("b")],
        [_state("a", properties=load_json('{"x": 2}')), _state("c")],
        template_path="main.json",
        subscription_id="sub",
        resource_group="rg",
    )
    assert report.template_path == "main.json"
    assert report.subscription_id == "sub"
    assert report.resource_group == "rg"
    assert report.generated_at.tzinfo is not None
    assert report.drifted_count == 1
    assert report.missing_count == 1
    assert report.unmanaged_count == 1
    assert report.has_drift is True


def test_only_unmanaged_is_not_drift(detector):
    report = detector.build_report([_state("a")], [_state("a"), _state("extra")], "main.json")
    assert report.unmanaged_count == 1
    assert report.has_drift is False


def test_generate_report_queries_resource_group(arm_template_file):
    service = MagicMock()
    service.get_resource_group_resources.return_value = [
        ResourceState(
            resource_id="/subscriptions/sub/resourceGroups/rg/providers/Microsoft.Storage/storageAccounts/stdefault",
            resource_type=STORAGE,
            name="stdefault",
            location="eastus",
            tags={"Env": "Prod", "Owner": "stdefault"},
            properties=load_json(
                '{"sku": {"name": "Premium_LRS"}, "retention": 7, "ratio": 1.5,'
                ' "label": "[concat(\'st\', parameters(\'storageName\'))]"}'
            ),
        )
    ]
    detector = Detector(service, config=DetectorConfig(ignore_rules=IgnoreRuleSet()))

    report = detector.generate_report(arm_template_file, "sub", "rg")

    service.get_resource_group_resources.assert_called_once_with("sub", "rg")
    assert report.template_path == str(arm_template_file)
    assert report.total_resources == 1
    result = report.results[0]
    assert result.status == DriftStatus.DRIFTED
    assert [d.property_path for d in result.drifts] == ["properties.sku.name"]


def test_generate_report_passes_parameters(arm_template_file):
    service = MagicMock()
    service.get_resource_group_resources.return_value = []
    detector = Detector(service)

    report = detector.generate_report(arm_template_file, "sub", "rg", parameters={"storageName": "custom"})

    assert report.results[0].resource_name == "custom"
    assert report.results[0].status == DriftStatus.MISSING


def test_generate_report_requires_service(arm_template_file):
    with pytest.raises(RuntimeError, match="resource service"):
        Detector().generate_report(arm_template_file, "sub", "rg")


def test_generate_report_rejects_unknown_template_type(tmp_path):
    path = tmp_path / "main.yaml"
    path.write_text("resources: []")
    with pytest.raises(UnsupportedTemplateError, match=".yaml"):
        Detector(MagicMock()).generate_report(path, "sub", "rg")
