"""
Backup ledger: append-only CSV of pre-mutation tag state, used as the undo log.
"""

import csv
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from .errors import LedgerError
from .models import PENDING_STATUS, BackupRecord, ResourceRecord
from .tags import join_tag_keys

logger = logging.getLogger(__name__)

LEDGER_COLUMNS = [
    "Timestamp",
    "Name",
    "ResourceGroupName",
    "ResourceId",
    "ResourceType",
    "Location",
    "OldTagName",
    "NewTagName",
    "TagValue",
    "AllTags",
    "Status",
]

REQUIRED_COLUMNS = ["Name", "ResourceId", "OldTagName", "NewTagName", "TagValue"]

_FIELD_BY_COLUMN = {
    "Timestamp": "timestamp",
    "Name": "name",
    "ResourceGroupName": "resource_group_name",
    "ResourceId": "resource_id",
    "ResourceType": "resource_type",
    "Location": "location",
    "OldTagName": "old_tag_name",
    "NewTagName": "new_tag_name",
    "TagValue": "tag_value",
    "AllTags": "all_tags",
    "Status": "status",
}


def build_backup_record(resource: ResourceRecord, old_name: str, new_name: str,
                        timestamp: Optional[str] = None) -> BackupRecord:
    """
    Snapshot a resource's live tags before migrating old_name to new_name.

    Args:
        resource: Resource as read immediately before mutation
        old_name: Tag key being retired
        new_name: Tag key receiving the value
        timestamp: Override for the record timestamp

    Returns:
        BackupRecord with TagValue set to "" when old_name is absent
    """
    return BackupRecord(
        timestamp=timestamp or datetime.now().isoformat(timespec="seconds"),
        name=resource.name,
        resource_group_name=resource.resource_group,
        resource_id=resource.id,
        resource_type=resource.type,
        location=resource.location,
        old_tag_name=old_name,
        new_tag_name=new_name,
        tag_value=resource.tags.get(old_name, ""),
        all_tags=join_tag_keys(resource.tags),
        status=PENDING_STATUS,
    )


def record_to_row(record: BackupRecord) -> Dict[str, str]:
    return {column: getattr(record, attr) for column, attr in _FIELD_BY_COLUMN.items()}


def row_to_record(row: Dict[str, str]) -> BackupRecord:
    values = {attr: (row.get(column) or "") for column, attr in _FIELD_BY_COLUMN.items()}
    if not values["status"]:
        values["status"] = PENDING_STATUS
    return BackupRecord(**values)


class BackupLedger:
    """Appends backup records to a CSV file, one durable row at a time."""

    def __init__(self, path: str):
        self.path = Path(path)
        self.records_written = 0

    def append(self, record: BackupRecord) -> bool:
        """
        Durably append one record.

        The row is flushed and fsync'd before returning so the caller can
        safely mutate the resource afterwards.

        Args:
            record: Record to append

        Returns:
            True if the row reached storage, False otherwise
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            write_header = not self.path.exists() or self.path.stat().st_size == 0

            with open(self.path, "a", newline="", encoding="utf-8") as f:
                writer = csv.DictWriter(f, fieldnames=LEDGER_COLUMNS)
                if write_header:
                    writer.writeheader()
                writer.writerow(record_to_row(record))
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            logger.error(f"Failed to write backup for {record.resource_id} to {self.path}: {e}")
            return False

        self.records_written += 1
        logger.debug(f"Backed up {record.resource_id} ({record.old_tag_name}='{record.tag_value}')")
        return True


def load_ledger(path: str) -> List[BackupRecord]:
    """
    Read a completed ledger.

    The file is rejected as a whole if any required column is missing.

    Args:
        path: Ledger CSV path

    Returns:
        Records in file order

    Raises:
        LedgerError: If the file is missing, unreadable or lacks required columns
    """
    ledger_file = Path(path)

    if not ledger_file.is_file():
        raise LedgerError(f"Backup ledger not found: {ledger_file}")

    try:
        with open(ledger_file, "r", newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)
            columns = reader.fieldnames or []

            missing = [column for column in REQUIRED_COLUMNS if column not in columns]
            if missing:
                raise LedgerError(
                    f"Backup ledger {ledger_file} is missing required column(s): {', '.join(missing)}"
                )

            records = [row_to_record(row) for row in reader]
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise LedgerError(f"Cannot read backup ledger {ledger_file}: {e}") from e

    logger.info(f"Loaded {len(records)} backup record(s) from {ledger_file}")
    return records
