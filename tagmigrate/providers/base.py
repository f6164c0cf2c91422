"""
Provider interface for the cloud collaborators tagmigrate depends on.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..models import ResourceRecord


@dataclass(frozen=True)
class Scope:
    """
    Where discovery queries run.

    An empty subscription list means tenant-wide: every subscription the
    authenticated session can see.
    """
    subscriptions: List[str] = field(default_factory=list)

    @classmethod
    def tenant(cls) -> "Scope":
        return cls()

    @classmethod
    def single(cls, subscription_id: str) -> "Scope":
        return cls(subscriptions=[subscription_id])

    @property
    def is_tenant_wide(self) -> bool:
        return not self.subscriptions

    def describe(self) -> str:
        if self.is_tenant_wide:
            return "tenant-wide"
        if len(self.subscriptions) == 1:
            return f"subscription {self.subscriptions[0]}"
        return f"{len(self.subscriptions)} subscriptions"


@dataclass(frozen=True)
class ResourceQuery:
    """Provider-neutral discovery filter."""
    resource_type: Optional[str] = None
    tag_key: Optional[str] = None


class CloudProvider(ABC):
    """Abstract base class for discovery and tag services."""

    def __init__(self):
        self.name = self.__class__.__name__.replace("Provider", "").lower()

    @abstractmethod
    def authenticate(self) -> None:
        """
        Establish or validate the authenticated session.

        Raises:
            SetupError: If no usable session is available
        """
        pass

    @abstractmethod
    def count(self, query: ResourceQuery, scope: Scope) -> int:
        """
        Count resources matching a query.

        Raises:
            TransientServiceError: If the query call fails
        """
        pass

    @abstractmethod
    def page(self, query: ResourceQuery, scope: Scope, limit: int, offset: int) -> List[ResourceRecord]:
        """
        Fetch one page of resources matching a query.

        Args:
            query: Discovery filter
            scope: Subscriptions to search
            limit: Maximum records to return
            offset: Records to skip; 0 means the first page

        Raises:
            TransientServiceError: If the query call fails
        """
        pass

    @abstractmethod
    def get_resource(self, resource_id: str) -> Optional[ResourceRecord]:
        """Read a resource's live tags; None if the resource no longer exists."""
        pass

    @abstractmethod
    def replace_tags(self, resource_id: str, tags: Dict[str, str]) -> None:
        """Replace the resource's entire tag set with tags."""
        pass
