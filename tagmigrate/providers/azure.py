"""
Azure provider backed by Resource Graph (discovery) and the Tags API (reads/writes).
"""

import logging
from typing import Any, Dict, List, Optional

from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
)
from azure.identity import DefaultAzureCredential
from azure.mgmt.core.tools import parse_resource_id
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.resource.resources.models import Tags, TagsResource
from azure.mgmt.resourcegraph import ResourceGraphClient
from azure.mgmt.resourcegraph.models import QueryRequest, QueryRequestOptions

from ..errors import SetupError, TransientServiceError
from ..models import ResourceRecord
from .base import CloudProvider, ResourceQuery, Scope

logger = logging.getLogger(__name__)

MANAGEMENT_SCOPE = "https://management.azure.com/.default"


def _kql_string(value: str) -> str:
    """Quote a value as a single-quoted KQL string literal."""
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def build_kql(query: ResourceQuery, count_only: bool = False) -> str:
    """
    Render a ResourceQuery as a Resource Graph (KQL) query.

    Args:
        query: Discovery filter
        count_only: Produce a count query instead of a projection

    Returns:
        KQL query text
    """
    parts = ["Resources"]

    if query.resource_type:
        parts.append(f"where type =~ {_kql_string(query.resource_type)}")

    if query.tag_key:
        parts.append(f"where isnotnull(tags[{_kql_string(query.tag_key)}])")

    if count_only:
        parts.append("count")
    else:
        parts.append("project id, name, type, resourceGroup, location, subscriptionId, tags")
        # Stable ordering is required for skip-based paging
        parts.append("order by id asc")

    return " | ".join(parts)


def describe_resource_id(resource_id: str) -> Dict[str, str]:
    """
    Split an ARM resource id into name, type, resource group and subscription.

    Args:
        resource_id: Full ARM resource id

    Returns:
        Dictionary with name, type, resource_group and subscription_id keys
    """
    parsed = parse_resource_id(resource_id)

    type_parts = []
    if parsed.get("namespace") and parsed.get("type"):
        type_parts.append(f"{parsed['namespace']}/{parsed['type']}")
    level = 1
    while parsed.get(f"child_type_{level}"):
        type_parts.append(parsed[f"child_type_{level}"])
        level += 1

    return {
        "name": parsed.get("resource_name") or parsed.get("name") or resource_id.rstrip("/").split("/")[-1],
        "type": "/".join(type_parts),
        "resource_group": parsed.get("resource_group", ""),
        "subscription_id": parsed.get("subscription", ""),
    }


def _record_from_row(row: Dict[str, Any]) -> ResourceRecord:
    return ResourceRecord(
        id=row.get("id", ""),
        name=row.get("name", ""),
        type=row.get("type", ""),
        resource_group=row.get("resourceGroup", ""),
        location=row.get("location", ""),
        subscription_id=row.get("subscriptionId", ""),
        tags=dict(row.get("tags") or {}),
    )


class AzureProvider(CloudProvider):
    """Azure Resource Graph + ARM Tags API provider."""

    def __init__(self, credential=None):
        super().__init__()
        self.name = "azure"
        self.credential = credential
        self._graph_client: Optional[ResourceGraphClient] = None
        self._resource_clients: Dict[str, ResourceManagementClient] = {}

    def authenticate(self) -> None:
        """Create a DefaultAzureCredential and prove it can mint a management token."""
        if self.credential is None:
            self.credential = DefaultAzureCredential()

        try:
            self.credential.get_token(MANAGEMENT_SCOPE)
        except ClientAuthenticationError as e:
            raise SetupError(f"No authenticated Azure session: {e}") from e

        logger.info("Azure session established")

    def _graph(self) -> ResourceGraphClient:
        if self.credential is None:
            raise SetupError("AzureProvider.authenticate() must be called first")
        if self._graph_client is None:
            self._graph_client = ResourceGraphClient(self.credential)
        return self._graph_client

    def _resources(self, subscription_id: str) -> ResourceManagementClient:
        if self.credential is None:
            raise SetupError("AzureProvider.authenticate() must be called first")
        client = self._resource_clients.get(subscription_id)
        if client is None:
            client = ResourceManagementClient(self.credential, subscription_id)
            self._resource_clients[subscription_id] = client
        return client

    def _run_query(self, kql: str, scope: Scope, options: QueryRequestOptions) -> List[Dict[str, Any]]:
        request = QueryRequest(
            subscriptions=list(scope.subscriptions) or None,
            query=kql,
            options=options,
        )
        try:
            response = self._graph().resources(request)
        except AzureError as e:
            raise TransientServiceError(f"Resource Graph query failed: {e}") from e
        return list(response.data or [])

    def count(self, query: ResourceQuery, scope: Scope) -> int:
        kql = build_kql(query, count_only=True)
        logger.debug(f"Count query ({scope.describe()}): {kql}")

        rows = self._run_query(kql, scope, QueryRequestOptions(result_format="objectArray"))
        if not rows:
            return 0
        return int(rows[0].get("Count", 0))

    def page(self, query: ResourceQuery, scope: Scope, limit: int, offset: int) -> List[ResourceRecord]:
        kql = build_kql(query)

        # Resource Graph rejects skip=0, so the first page omits it entirely
        if offset == 0:
            options = QueryRequestOptions(top=limit, result_format="objectArray")
        else:
            options = QueryRequestOptions(top=limit, skip=offset, result_format="objectArray")

        logger.debug(f"Page query offset={offset} limit={limit}: {kql}")
        return [_record_from_row(row) for row in self._run_query(kql, scope, options)]

    def get_resource(self, resource_id: str) -> Optional[ResourceRecord]:
        details = describe_resource_id(resource_id)
        client = self._resources(details["subscription_id"])

        try:
            result = client.tags.get_at_scope(scope=resource_id)
        except ResourceNotFoundError:
            return None
        except HttpResponseError as e:
            if e.status_code == 404:
                return None
            raise

        tags = {}
        if result.properties is not None and result.properties.tags:
            tags = dict(result.properties.tags)

        return ResourceRecord(
            id=resource_id,
            name=details["name"],
            type=details["type"],
            resource_group=details["resource_group"],
            location="",
            subscription_id=details["subscription_id"],
            tags=tags,
        )

    def replace_tags(self, resource_id: str, tags: Dict[str, str]) -> None:
        details = describe_resource_id(resource_id)
        client = self._resources(details["subscription_id"])

        poller = client.tags.begin_create_or_update_at_scope(
            scope=resource_id,
            parameters=TagsResource(properties=Tags(tags=dict(tags))),
        )
        poller.result()
        logger.debug(f"Replaced tags on {resource_id}: {sorted(tags)}")
