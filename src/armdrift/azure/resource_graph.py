"""Thin Azure Resource Graph wrapper that returns live resource states."""

import logging
from datetime import UTC, datetime
from typing import Any

from azure.core.exceptions import HttpResponseError
from azure.identity import DefaultAzureCredential
from azure.mgmt.resourcegraph import ResourceGraphClient
from azure.mgmt.resourcegraph.models import QueryRequest, QueryRequestOptions, ResultFormat

from armdrift.jsonvalue import ABSENT, from_python
from armdrift.models import ResourceState

logger = logging.getLogger(__name__)

PROJECTION = "| project id, name, type, location, resourceGroup, tags, properties"


def escape_kql(value: str) -> str:
    """Escape a value for use inside a single-quoted KQL string literal."""
    return value.replace("'", "''")


def _require(value: str, name: str) -> None:
    if not value:
        raise ValueError(f"{name} must not be empty")


def parse_row(row: dict[str, Any], queried_at: datetime | None = None) -> ResourceState | None:
    """Convert one Resource Graph row into a ResourceState. Incomplete rows yield None."""
    resource_id = row.get("id")
    resource_type = row.get("type")
    name = row.get("name")
    if not resource_id or not resource_type or not name:
        return None

    raw_tags = row.get("tags")
    tags = {}
    if isinstance(raw_tags, dict):
        tags = {k: v for k, v in raw_tags.items() if isinstance(v, str)}

    return ResourceState(
        resource_id=resource_id,
        resource_type=resource_type,
        name=name,
        location=row.get("location"),
        resource_group=row.get("resourceGroup"),
        tags=tags,
        properties=from_python(row["properties"]) if "properties" in row else ABSENT,
        timestamp=queried_at or datetime.now(UTC),
    )


class ResourceGraphService:
    """Queries Azure Resource Graph and returns armdrift ResourceStates."""

    def __init__(self, client: ResourceGraphClient | None = None, credential=None):
        self._client = client or ResourceGraphClient(credential or DefaultAzureCredential())

    def get_resource_state(self, resource_id: str) -> ResourceState | None:
        """Fetch a single resource by its fully-qualified ID."""
        _require(resource_id, "resource_id")
        logger.debug("Querying resource: %s", resource_id)
        query = f"Resources | where id =~ '{escape_kql(resource_id)}' {PROJECTION}"
        results = self._execute(query)
        return results[0] if results else None

    def get_resource_group_resources(self, subscription_id: str, resource_group: str) -> list[ResourceState]:
        """Fetch every resource in a resource group."""
        _require(subscription_id, "subscription_id")
        _require(resource_group, "resource_group")
        logger.debug("Querying resources in resource group: %s", resource_group)
        query = (
            f"Resources "
            f"| where subscriptionId =~ '{escape_kql(subscription_id)}' "
            f"| where resourceGroup =~ '{escape_kql(resource_group)}' "
            f"{PROJECTION}"
        )
        return self._execute(query, subscriptions=[subscription_id])

    def get_resources_by_type(self, subscription_id: str, resource_type: str) -> list[ResourceState]:
        """Fetch every resource of one type in a subscription."""
        _require(subscription_id, "subscription_id")
        _require(resource_type, "resource_type")
        logger.debug("Querying resources of type: %s", resource_type)
        query = (
            f"Resources "
            f"| where subscriptionId =~ '{escape_kql(subscription_id)}' "
            f"| where type =~ '{escape_kql(resource_type)}' "
            f"{PROJECTION}"
        )
        return self._execute(query, subscriptions=[subscription_id])

    def _execute(self, query: str, subscriptions: list[str] | None = None) -> list[ResourceState]:
        results: list[ResourceState] = []
        skip_token = None
        queried_at = datetime.now(UTC)

        while True:
            request = QueryRequest(
                query=query,
                subscriptions=subscriptions,
                options=QueryRequestOptions(
                    result_format=ResultFormat.OBJECT_ARRAY,
                    skip_token=skip_token,
                ),
            )
            try:
                response = self._client.resources(request)
            except HttpResponseError as e:
                logger.error("Resource Graph query failed: %s", e.message)
                raise

            for row in response.data or []:
                state = parse_row(row, queried_at)
                if state is not None:
                    results.append(state)

            skip_token = response.skip_token
            if not skip_token:
                break

        logger.debug("Query returned %d resources", len(results))
        return results
