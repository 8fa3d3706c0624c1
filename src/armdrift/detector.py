"""Pairs template resources with live resources and assembles drift reports."""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from armdrift.azure.resource_graph import ResourceGraphService
from armdrift.comparator import ResourceComparator
from armdrift.config import DetectorConfig
from armdrift.models import DriftReport, DriftResult, DriftStatus, ResourceState
from armdrift.templates.factory import TemplateParser, get_parser

logger = logging.getLogger(__name__)


class Detector:
    """Detects drift between an ARM/Bicep template and a live resource group."""

    def __init__(
        self,
        resource_service: ResourceGraphService | None = None,
        config: DetectorConfig | None = None,
        parsers: list[TemplateParser] | None = None,
    ):
        self._resource_service = resource_service
        self._config = config or DetectorConfig()
        self._parsers = parsers
        self._comparator = ResourceComparator(self._config)

    def compare(self, expected: ResourceState, actual: ResourceState | None) -> DriftResult:
        """Compare one expected resource with its live counterpart (or None)."""
        return self._comparator.compare(expected, actual)

    def assemble(
        self,
        expected_states: Iterable[ResourceState],
        actual_states: Iterable[ResourceState],
    ) -> list[DriftResult]:
        """Match expected to actual resources and compare each pair.

        Matched results come first in template order, followed by unmanaged resources.
        """
        actual_by_key: dict[tuple[str, str], ResourceState] = {}
        for actual in actual_states:
            key = actual.match_key
            if key in actual_by_key:
                # TODO: surface duplicate live resources in the report instead of dropping them
                logger.warning(
                    "Duplicate live resource %s (%s); keeping %s, dropping %s",
                    actual.name,
                    actual.resource_type,
                    actual_by_key[key].resource_id,
                    actual.resource_id,
                )
                continue
            actual_by_key[key] = actual

        results: list[DriftResult] = []
        for expected in expected_states:
            actual = actual_by_key.pop(expected.match_key, None)
            try:
                result = self.compare(expected, actual)
            except Exception as e:
                logger.exception("Failed to compare %s (%s)", expected.name, expected.resource_type)
                result = DriftResult(
                    resource_id=expected.resource_id,
                    resource_type=expected.resource_type,
                    resource_name=expected.name,
                    status=DriftStatus.ERROR,
                    error_message=str(e) or type(e).__name__,
                )
            results.append(result)

        for unmanaged in actual_by_key.values():
            results.append(
                DriftResult(
                    resource_id=unmanaged.resource_id,
                    resource_type=unmanaged.resource_type,
                    resource_name=unmanaged.name,
                    status=DriftStatus.UNMANAGED,
                )
            )

        return results

    def build_report(
        self,
        expected_states: Iterable[ResourceState],
        actual_states: Iterable[ResourceState],
        template_path: str,
        subscription_id: str | None = None,
        resource_group: str | None = None,
    ) -> DriftReport:
        """Assemble a report from already-loaded expected and actual states."""
        return DriftReport(
            generated_at=datetime.now(UTC),
            template_path=template_path,
            subscription_id=subscription_id,
            resource_group=resource_group,
            results=self.assemble(expected_states, actual_states),
        )

    def generate_report(
        self,
        template_path: str | Path,
        subscription_id: str,
        resource_group: str,
        parameters: dict[str, str] | None = None,
    ) -> DriftReport:
        """Parse a template, query its resource group and report drift."""
        if self._resource_service is None:
            raise RuntimeError("Detector needs a resource service to generate reports")

        logger.info("Generating drift report for template: %s", template_path)

        parser = get_parser(template_path, self._parsers)
        expected_states = parser.parse(template_path, parameters)

        actual_states = self._resource_service.get_resource_group_resources(
            subscription_id, resource_group
        )

        report = self.build_report(
            expected_states,
            actual_states,
            template_path=str(template_path),
            subscription_id=subscription_id,
            resource_group=resource_group,
        )
        logger.info(
            "Drift report: %d in sync, %d drifted, %d missing, %d unmanaged, %d errors",
            report.in_sync_count,
            report.drifted_count,
            report.missing_count,
            report.unmanaged_count,
            report.error_count,
        )
        return report
