"""
Inventory export: one CSV row per resource, one column per tag key seen.
"""

import csv
import logging
from pathlib import Path
from typing import Dict, List, Sequence

from ..models import ResourceRecord
from ..tags import tag_key_union

logger = logging.getLogger(__name__)

BASE_COLUMNS = ["Id", "Name", "Type", "ResourceGroup", "Location", "SubscriptionId"]
TAG_COLUMN_PREFIX = "Tag:"


def inventory_columns(resources: Sequence[ResourceRecord]) -> List[str]:
    """Base columns followed by a prefixed column for every tag key in the set."""
    return BASE_COLUMNS + [f"{TAG_COLUMN_PREFIX}{key}" for key in tag_key_union(resources)]


def inventory_row(resource: ResourceRecord, tag_keys: Sequence[str]) -> Dict[str, str]:
    """Project a resource onto the fixed column set; absent tags become empty strings."""
    row = {
        "Id": resource.id,
        "Name": resource.name,
        "Type": resource.type,
        "ResourceGroup": resource.resource_group,
        "Location": resource.location,
        "SubscriptionId": resource.subscription_id,
    }
    for key in tag_keys:
        row[f"{TAG_COLUMN_PREFIX}{key}"] = resource.tags.get(key, "")
    return row


def write_inventory(path: str, resources: Sequence[ResourceRecord]) -> Path:
    """
    Write discovered resources to a CSV file.

    Args:
        path: Output file path; parent directories are created
        resources: Resources to export

    Returns:
        Path of the written file
    """
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)

    tag_keys = tag_key_union(resources)
    columns = inventory_columns(resources)

    with open(output, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=columns)
        writer.writeheader()
        for resource in resources:
            writer.writerow(inventory_row(resource, tag_keys))

    logger.info(f"Wrote {len(resources)} resources with {len(tag_keys)} tag columns to {output}")
    return output
