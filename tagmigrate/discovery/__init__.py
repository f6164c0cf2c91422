"""
Resource discovery: paged querying and inventory export.
"""

from .query import PagedQueryClient, backoff_delay, dedupe_by_id
from .export import write_inventory, inventory_columns, inventory_row

__all__ = [
    "PagedQueryClient",
    "backoff_delay",
    "dedupe_by_id",
    "write_inventory",
    "inventory_columns",
    "inventory_row",
]
