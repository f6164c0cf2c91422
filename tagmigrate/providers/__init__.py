"""
Cloud providers for resource discovery and tag reads/writes.
"""

import logging
import os
from typing import Optional

from .base import CloudProvider, ResourceQuery, Scope
from .memory import MemoryProvider

logger = logging.getLogger(__name__)


def get_provider(provider_name: Optional[str] = None, fixture: Optional[str] = None) -> CloudProvider:
    """
    Get a provider instance by name.

    Args:
        provider_name: "azure" or "memory"; defaults to TAGMIGRATE_PROVIDER
        fixture: JSON seed file for the memory provider

    Returns:
        Unauthenticated provider instance

    Raises:
        ValueError: If the provider name is unknown
    """
    if not provider_name:
        provider_name = os.getenv("TAGMIGRATE_PROVIDER", "azure")

    name = provider_name.lower()

    if name == "memory":
        if fixture:
            return MemoryProvider.from_fixture(fixture)
        return MemoryProvider()

    if name == "azure":
        # Azure SDK is only imported when the Azure provider is requested
        from .azure import AzureProvider
        return AzureProvider()

    raise ValueError(f"Unknown provider: {provider_name}")


__all__ = [
    "CloudProvider",
    "ResourceQuery",
    "Scope",
    "MemoryProvider",
    "get_provider",
]
