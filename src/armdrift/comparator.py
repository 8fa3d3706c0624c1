"""Structural comparison of expected and actual resource state."""

import logging
from typing import Any

from armdrift.config import DetectorConfig
from armdrift.jsonvalue import ABSENT, Number, ValueKind, kind_of
from armdrift.models import DriftKind, DriftResult, DriftStatus, PropertyDrift, ResourceState

logger = logging.getLogger(__name__)


class TreeComparator:
    """Recursive, depth-bounded, rule-filtered diff of two JSON values."""

    def __init__(self, config: DetectorConfig):
        self._config = config

    def _is_empty(self, value: Any) -> bool:
        if value is ABSENT:
            return True
        return value is None and self._config.treat_null_as_missing

    def compare(
        self,
        expected: Any,
        actual: Any,
        path: str,
        resource_type: str | None = None,
        depth: int = 0,
    ) -> list[PropertyDrift]:
        """Return every difference between ``expected`` and ``actual`` at and below ``path``."""
        if depth >= self._config.max_property_depth:
            return []

        if self._config.ignore_rules.should_ignore(path, resource_type):
            return []

        expected_empty = self._is_empty(expected)
        actual_empty = self._is_empty(actual)

        if expected_empty and actual_empty:
            return []

        if expected_empty:
            if not self._config.report_added_properties:
                return []
            return [PropertyDrift(path, DriftKind.ADDED, actual_value=actual)]

        if actual_empty:
            return [PropertyDrift(path, DriftKind.MISSING, expected_value=expected)]

        expected_kind = kind_of(expected)
        if expected_kind != kind_of(actual):
            return [PropertyDrift(path, DriftKind.TYPE_CHANGED, expected, actual)]

        if expected_kind == ValueKind.OBJECT:
            return self._compare_objects(expected, actual, path, resource_type, depth)
        if expected_kind == ValueKind.ARRAY:
            return self._compare_arrays(expected, actual, path, resource_type, depth)

        # Number equality is raw-text equality; strings and booleans compare by value.
        if expected != actual:
            return [PropertyDrift(path, DriftKind.MODIFIED, expected, actual)]
        return []

    def _compare_objects(
        self,
        expected: dict,
        actual: dict,
        path: str,
        resource_type: str | None,
        depth: int,
    ) -> list[PropertyDrift]:
        actual_keys: dict[str, str] = {}
        for key in actual:
            actual_keys.setdefault(key.lower(), key)

        drifts: list[PropertyDrift] = []
        for key, expected_value in expected.items():
            actual_key = actual_keys.pop(key.lower(), None)
            actual_value = actual[actual_key] if actual_key is not None else ABSENT
            drifts.extend(
                self.compare(expected_value, actual_value, f"{path}.{key}", resource_type, depth + 1)
            )

        for actual_key in actual_keys.values():
            drifts.extend(
                self.compare(ABSENT, actual[actual_key], f"{path}.{actual_key}", resource_type, depth + 1)
            )

        return drifts

    def _compare_arrays(
        self,
        expected: list,
        actual: list,
        path: str,
        resource_type: str | None,
        depth: int,
    ) -> list[PropertyDrift]:
        drifts: list[PropertyDrift] = []
        if len(expected) != len(actual):
            drifts.append(
                PropertyDrift(
                    f"{path}.length",
                    DriftKind.MODIFIED,
                    Number(str(len(expected))),
                    Number(str(len(actual))),
                )
            )

        for i, (expected_item, actual_item) in enumerate(zip(expected, actual)):
            drifts.extend(
                self.compare(expected_item, actual_item, f"{path}[{i}]", resource_type, depth + 1)
            )

        return drifts


class ResourceComparator:
    """Compares one expected resource against its live counterpart."""

    def __init__(self, config: DetectorConfig):
        self._config = config
        self._tree = TreeComparator(config)

    def compare(self, expected: ResourceState, actual: ResourceState | None) -> DriftResult:
        if actual is None:
            return DriftResult(
                resource_id=expected.resource_id,
                resource_type=expected.resource_type,
                resource_name=expected.name,
                status=DriftStatus.MISSING,
            )

        drifts: list[PropertyDrift] = []
        drifts.extend(self._compare_location(expected, actual))
        drifts.extend(self._compare_tags(expected, actual))

        if expected.properties is not ABSENT:
            drifts.extend(
                self._tree.compare(
                    expected.properties,
                    actual.properties,
                    "properties",
                    expected.resource_type,
                )
            )

        logger.debug(
            "Compared %s (%s): %d drift(s)", expected.name, expected.resource_type, len(drifts)
        )

        return DriftResult(
            resource_id=expected.resource_id,
            resource_type=expected.resource_type,
            resource_name=expected.name,
            status=DriftStatus.DRIFTED if drifts else DriftStatus.IN_SYNC,
            drifts=drifts,
        )

    def _compare_location(self, expected: ResourceState, actual: ResourceState) -> list[PropertyDrift]:
        if not expected.location:
            return []
        if self._config.ignore_rules.should_ignore("location", expected.resource_type):
            return []
        if actual.location is not None and expected.location.lower() == actual.location.lower():
            return []
        actual_location = actual.location if actual.location is not None else ABSENT
        return [PropertyDrift("location", DriftKind.MODIFIED, expected.location, actual_location)]

    def _compare_tags(self, expected: ResourceState, actual: ResourceState) -> list[PropertyDrift]:
        rules = self._config.ignore_rules
        resource_type = expected.resource_type

        actual_keys: dict[str, str] = {}
        for key in actual.tags:
            actual_keys.setdefault(key.lower(), key)

        drifts: list[PropertyDrift] = []
        for key, expected_value in expected.tags.items():
            actual_key = actual_keys.pop(key.lower(), None)
            path = f"tags.{key}"
            if rules.should_ignore(path, resource_type):
                continue
            if actual_key is None:
                drifts.append(PropertyDrift(path, DriftKind.MISSING, expected_value=expected_value))
            elif expected_value != actual.tags[actual_key]:
                drifts.append(
                    PropertyDrift(path, DriftKind.MODIFIED, expected_value, actual.tags[actual_key])
                )

        if self._config.report_added_properties:
            for actual_key in actual_keys.values():
                path = f"tags.{actual_key}"
                if rules.should_ignore(path, resource_type):
                    continue
                drifts.append(
                    PropertyDrift(path, DriftKind.ADDED, actual_value=actual.tags[actual_key])
                )

        return drifts
