"""
Data models for resources, backup records and per-resource outcomes.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Set


PENDING_STATUS = "Pending"


class OutcomeKind(Enum):
    """How an outcome is counted in the run summary."""
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


class TransformState(Enum):
    """Terminal states of the tag transform state machine."""
    NO_OLD_TAG = "NoOldTag"
    BOTH_MISSING = "BothMissing"
    CONFLICT = "Conflict"
    RESOURCE_GONE = "ResourceGone"
    BACKUP_FAILED = "BackupFailed"
    WOULD_APPLY = "WouldApply"
    APPLIED = "Applied"
    VERIFY_FAILED = "VerifyFailed"
    ERROR = "Error"


class RollbackState(Enum):
    """Terminal states of the rollback state machine."""
    RESOURCE_GONE = "ResourceGone"
    ALREADY_ROLLED_BACK = "AlreadyRolledBack"
    NEITHER_TAG_PRESENT = "NeitherTagPresent"
    WOULD_ROLL_BACK = "WouldRollBack"
    ROLLED_BACK = "RolledBack"
    VERIFY_FAILED = "VerifyFailed"
    ERROR = "Error"


@dataclass(frozen=True)
class ResourceRecord:
    """Snapshot of a cloud resource as returned by discovery or a live read."""
    id: str
    name: str
    type: str
    resource_group: str
    location: str
    subscription_id: str
    tags: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        # own a copy so the snapshot cannot change under callers
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))


@dataclass(frozen=True)
class BackupRecord:
    """One ledger row: the state of a resource before its tag was migrated."""
    timestamp: str
    name: str
    resource_group_name: str
    resource_id: str
    resource_type: str
    location: str
    old_tag_name: str
    new_tag_name: str
    tag_value: str = ""
    all_tags: str = ""
    status: str = PENDING_STATUS


@dataclass
class TagDelta:
    """Keys to remove and keys to set on a single resource."""
    remove: Set[str] = field(default_factory=set)
    add: Dict[str, str] = field(default_factory=dict)

    def describe(self) -> str:
        parts = [f"remove '{key}'" for key in sorted(self.remove)]
        parts += [f"set '{key}'='{value}'" for key, value in self.add.items()]
        return ", ".join(parts) if parts else "no change"


@dataclass
class Outcome:
    """Terminal result for one resource in a transform or rollback run."""
    resource_id: str
    name: str
    state: str
    kind: OutcomeKind
    reason: str
    manual_intervention: bool = False

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


@dataclass
class QueryResult:
    """Materialised discovery result."""
    resources: List[ResourceRecord]
    total_reported: int
    pages_fetched: int
    duplicates_dropped: int = 0
