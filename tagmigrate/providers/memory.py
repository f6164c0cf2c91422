"""
In-memory provider for testing and offline rehearsal.
"""

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..errors import SetupError
from ..models import ResourceRecord
from .base import CloudProvider, ResourceQuery, Scope

logger = logging.getLogger(__name__)


class MemoryProvider(CloudProvider):
    """Holds resources in a dict and applies tag writes immediately."""

    def __init__(self, resources: Optional[Iterable[ResourceRecord]] = None):
        super().__init__()
        self.name = "memory"
        self.resources: Dict[str, ResourceRecord] = {}
        self.page_calls: List[Dict[str, int]] = []
        self.count_calls = 0
        self.writes: List[Dict[str, object]] = []

        for resource in resources or []:
            self.add(resource)

    @classmethod
    def from_fixture(cls, path: str) -> "MemoryProvider":
        """
        Load resources from a JSON file of Resource Graph style rows.

        Args:
            path: JSON file holding a list of objects with id, name, type,
                resourceGroup, location, subscriptionId and tags keys

        Returns:
            Provider seeded with the fixture resources

        Raises:
            SetupError: If the fixture cannot be read or parsed
        """
        fixture = Path(path)
        try:
            with open(fixture, "r", encoding="utf-8") as f:
                rows = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise SetupError(f"Cannot load memory fixture {fixture}: {e}") from e

        return cls(
            ResourceRecord(
                id=row["id"],
                name=row.get("name", ""),
                type=row.get("type", ""),
                resource_group=row.get("resourceGroup", ""),
                location=row.get("location", ""),
                subscription_id=row.get("subscriptionId", ""),
                tags=dict(row.get("tags") or {}),
            )
            for row in rows
        )

    def add(self, resource: ResourceRecord) -> None:
        self.resources[resource.id] = replace(resource, tags=dict(resource.tags))

    def delete(self, resource_id: str) -> None:
        self.resources.pop(resource_id, None)

    def tags_of(self, resource_id: str) -> Dict[str, str]:
        return dict(self.resources[resource_id].tags)

    def authenticate(self) -> None:
        logger.debug(f"Memory provider holding {len(self.resources)} resources")

    def _matching(self, query: ResourceQuery, scope: Scope) -> List[ResourceRecord]:
        matches = []
        for resource_id in sorted(self.resources):
            resource = self.resources[resource_id]
            if scope.subscriptions and resource.subscription_id not in scope.subscriptions:
                continue
            if query.resource_type and resource.type.lower() != query.resource_type.lower():
                continue
            if query.tag_key and query.tag_key not in resource.tags:
                continue
            matches.append(resource)
        return matches

    def count(self, query: ResourceQuery, scope: Scope) -> int:
        self.count_calls += 1
        return len(self._matching(query, scope))

    def page(self, query: ResourceQuery, scope: Scope, limit: int, offset: int) -> List[ResourceRecord]:
        self.page_calls.append({"limit": limit, "offset": offset})
        matches = self._matching(query, scope)
        return [replace(r, tags=dict(r.tags)) for r in matches[offset:offset + limit]]

    def get_resource(self, resource_id: str) -> Optional[ResourceRecord]:
        resource = self.resources.get(resource_id)
        if resource is None:
            return None
        return replace(resource, tags=dict(resource.tags))

    def replace_tags(self, resource_id: str, tags: Dict[str, str]) -> None:
        if resource_id not in self.resources:
            raise LookupError(f"Resource not found: {resource_id}")
        self.resources[resource_id] = replace(self.resources[resource_id], tags=dict(tags))
        self.writes.append({"resource_id": resource_id, "tags": dict(tags)})
