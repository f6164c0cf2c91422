"""
Tag map utilities for computing and applying tag key migrations.
"""

from typing import Dict, Iterable, List

from .models import ResourceRecord, TagDelta


ALL_TAGS_SEPARATOR = ";"


def transform_delta(tags: Dict[str, str], old_name: str, new_name: str) -> TagDelta:
    """
    Build the delta that renames old_name to new_name, keeping its value.

    Args:
        tags: Live tags of the resource (must contain old_name)
        old_name: Tag key being retired
        new_name: Tag key that receives the value

    Returns:
        Delta removing old_name and, unless new_name already holds the
        value, adding new_name

    Raises:
        KeyError: If old_name is not present in tags
    """
    value = tags[old_name]
    delta = TagDelta(remove={old_name})
    if tags.get(new_name) != value:
        delta.add[new_name] = value
    return delta


def rollback_delta(tags: Dict[str, str], old_name: str, new_name: str, value: str) -> TagDelta:
    """
    Build the inverse delta that restores old_name from a recorded value.

    The recorded value always wins over whatever old_name currently holds.

    Args:
        tags: Live tags of the resource
        old_name: Tag key to restore
        new_name: Tag key to remove
        value: Value recorded in the backup ledger

    Returns:
        Delta removing new_name (if present) and setting old_name to value
    """
    delta = TagDelta()
    if new_name in tags:
        delta.remove.add(new_name)
    delta.add[old_name] = value
    return delta


def apply_delta(tags: Dict[str, str], delta: TagDelta) -> Dict[str, str]:
    """
    Return a new full tag map with the delta applied.

    Args:
        tags: Current tags (not modified)
        delta: Keys to remove and keys to set

    Returns:
        The complete tag map to hand to a full-replace tag write
    """
    result = {key: value for key, value in tags.items() if key not in delta.remove}
    result.update(delta.add)
    return result


def join_tag_keys(tags: Dict[str, str]) -> str:
    """Join tag keys in enumeration order for the ledger AllTags column."""
    return ALL_TAGS_SEPARATOR.join(tags.keys())


def split_tag_keys(all_tags: str) -> List[str]:
    """Inverse of join_tag_keys; empty input gives an empty list."""
    if not all_tags:
        return []
    return all_tags.split(ALL_TAGS_SEPARATOR)


def tag_key_union(resources: Iterable[ResourceRecord]) -> List[str]:
    """
    Collect every tag key used across a set of resources.

    Args:
        resources: Resources to scan

    Returns:
        Sorted list of distinct tag keys
    """
    keys = set()
    for resource in resources:
        keys.update(resource.tags.keys())
    return sorted(keys)
