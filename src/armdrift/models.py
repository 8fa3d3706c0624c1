"""Core data models for template drift detection."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from armdrift.jsonvalue import ABSENT


class DriftStatus(StrEnum):
    """Overall drift status of a single resource."""

    IN_SYNC = "InSync"
    DRIFTED = "Drifted"
    MISSING = "Missing"
    UNMANAGED = "Unmanaged"
    ERROR = "Error"


class DriftKind(StrEnum):
    """Kind of a single property difference."""

    MODIFIED = "Modified"
    MISSING = "Missing"
    ADDED = "Added"
    TYPE_CHANGED = "TypeChanged"


@dataclass(frozen=True)
class ResourceState:
    """Snapshot of one resource's configuration, from a template or from Azure."""

    resource_id: str
    resource_type: str
    name: str
    location: str | None = None
    resource_group: str | None = None
    tags: dict[str, str] = field(default_factory=dict)
    properties: Any = ABSENT
    timestamp: datetime | None = None

    @property
    def match_key(self) -> tuple[str, str]:
        """Key under which expected and actual states are paired."""
        return (self.resource_type.lower(), self.name.lower())


@dataclass(frozen=True)
class PropertyDrift:
    """A single difference between expected and actual configuration.

    ``expected_value``/``actual_value`` are ``ABSENT`` when the property does not
    exist on that side, which is distinct from a JSON ``null``.
    """

    property_path: str
    kind: DriftKind
    expected_value: Any = ABSENT
    actual_value: Any = ABSENT


@dataclass(frozen=True)
class DriftResult:
    """Drift outcome for a single resource."""

    resource_id: str
    resource_type: str
    resource_name: str
    status: DriftStatus
    drifts: list[PropertyDrift] = field(default_factory=list)
    error_message: str | None = None

    @property
    def has_drift(self) -> bool:
        return self.status == DriftStatus.DRIFTED


@dataclass(frozen=True)
class DriftReport:
    """Results of one comparison run between a template and a resource group."""

    generated_at: datetime
    template_path: str
    subscription_id: str | None = None
    resource_group: str | None = None
    results: list[DriftResult] = field(default_factory=list)

    def _count(self, status: DriftStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def total_resources(self) -> int:
        return len(self.results)

    @property
    def in_sync_count(self) -> int:
        return self._count(DriftStatus.IN_SYNC)

    @property
    def drifted_count(self) -> int:
        return self._count(DriftStatus.DRIFTED)

    @property
    def missing_count(self) -> int:
        return self._count(DriftStatus.MISSING)

    @property
    def unmanaged_count(self) -> int:
        return self._count(DriftStatus.UNMANAGED)

    @property
    def error_count(self) -> int:
        return self._count(DriftStatus.ERROR)

    @property
    def has_drift(self) -> bool:
        """Drifted or missing resources; unmanaged resources are informational only."""
        return self.drifted_count > 0 or self.missing_count > 0
