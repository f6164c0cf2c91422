"""
Rollback engine: restore migrated tags from a backup ledger.
"""

import logging
import time
from typing import Callable, List, Optional, Sequence, Tuple

from .config import MIN_SETTLE_SECONDS
from .models import BackupRecord, Outcome, OutcomeKind, RollbackState
from .providers.base import CloudProvider
from .summary import RunSummary
from .tags import apply_delta, rollback_delta, split_tag_keys

logger = logging.getLogger(__name__)

_LOG_LEVEL = {
    OutcomeKind.SUCCESS: logging.INFO,
    OutcomeKind.SKIPPED: logging.INFO,
    OutcomeKind.FAILURE: logging.ERROR,
}


def filter_records(records: Sequence[BackupRecord], resource_group: Optional[str] = None,
                   name_contains: Optional[str] = None) -> List[BackupRecord]:
    """
    Narrow ledger rows before a rollback.

    Resource group names match exactly and resource names match by substring;
    both comparisons ignore case, as Azure does for these names.

    Args:
        records: Loaded ledger rows
        resource_group: Keep only rows in this resource group
        name_contains: Keep only rows whose resource name contains this text

    Returns:
        Matching rows in ledger order
    """
    selected = list(records)

    if resource_group:
        wanted = resource_group.lower()
        selected = [r for r in selected if r.resource_group_name.lower() == wanted]

    if name_contains:
        needle = name_contains.lower()
        selected = [r for r in selected if needle in r.name.lower()]

    return selected


class RollbackEngine:
    """
    Applies the inverse of a tag migration for each ledger row.

    Resources that were deleted or already restored are skipped, so running
    the same ledger twice is safe.
    """

    def __init__(self, provider: CloudProvider, settle_seconds: float = MIN_SETTLE_SECONDS,
                 dry_run: bool = False, force: bool = False,
                 confirm: Optional[Callable[[str], bool]] = None,
                 show: Optional[Callable[[List[BackupRecord]], None]] = None,
                 on_outcome: Optional[Callable[[Outcome], None]] = None):
        if confirm is None and not (force or dry_run):
            raise ValueError("A confirm callable is required unless force or dry_run is set")

        self.provider = provider
        self.settle_seconds = max(settle_seconds, MIN_SETTLE_SECONDS)
        self.dry_run = dry_run
        self.force = force
        self.confirm = confirm
        self.show = show
        self.on_outcome = on_outcome

    def _finish(self, summary: RunSummary, record: BackupRecord, state: RollbackState,
                kind: OutcomeKind, reason: str, manual: bool = False) -> Outcome:
        logger.log(_LOG_LEVEL[kind], f"[{state.value}] {record.name} ({record.resource_id}): {reason}")
        outcome = summary.record(Outcome(
            resource_id=record.resource_id,
            name=record.name,
            state=state.value,
            kind=kind,
            reason=reason,
            manual_intervention=manual,
        ))
        if self.on_outcome:
            self.on_outcome(outcome)
        return outcome

    def _evaluate(self, record: BackupRecord) -> Tuple[RollbackState, OutcomeKind, str, bool]:
        old, new = record.old_tag_name, record.new_tag_name

        if not record.resource_id:
            return RollbackState.ERROR, OutcomeKind.FAILURE, "ledger row has no ResourceId", False

        live = self.provider.get_resource(record.resource_id)
        if live is None:
            return RollbackState.RESOURCE_GONE, OutcomeKind.SKIPPED, "resource no longer exists", False

        has_old = old in live.tags
        has_new = new in live.tags

        if not has_new and has_old:
            return (RollbackState.ALREADY_ROLLED_BACK, OutcomeKind.SKIPPED,
                    f"'{old}' already restored", False)

        if not has_new and not has_old:
            return (RollbackState.NEITHER_TAG_PRESENT, OutcomeKind.SKIPPED,
                    f"neither '{old}' nor '{new}' present; manual intervention required", True)

        if has_old:
            logger.warning(
                f"{record.name}: both '{old}'='{live.tags[old]}' and '{new}' present; "
                f"ledger value '{record.tag_value}' will overwrite '{old}'"
            )

        if new in split_tag_keys(record.all_tags):
            logger.warning(f"{record.name}: '{new}' existed before the migration and will be removed")

        delta = rollback_delta(live.tags, old, new, record.tag_value)

        if self.dry_run:
            return RollbackState.WOULD_ROLL_BACK, OutcomeKind.SUCCESS, f"would {delta.describe()}", False

        self.provider.replace_tags(live.id, apply_delta(live.tags, delta))

        time.sleep(self.settle_seconds)
        verified = self.provider.get_resource(live.id)

        if verified is None:
            return (RollbackState.VERIFY_FAILED, OutcomeKind.FAILURE,
                    "resource disappeared before verification", False)
        if old not in verified.tags or new in verified.tags:
            return (RollbackState.VERIFY_FAILED, OutcomeKind.FAILURE,
                    f"verification failed: '{old}' present={old in verified.tags}, "
                    f"'{new}' present={new in verified.tags}", False)

        return RollbackState.ROLLED_BACK, OutcomeKind.SUCCESS, delta.describe(), False

    def process(self, record: BackupRecord, summary: RunSummary) -> Outcome:
        """
        Run the rollback state machine for one ledger row.

        Args:
            record: Ledger row describing the migration to undo
            summary: Accumulator the outcome is recorded into

        Returns:
            The recorded outcome
        """
        try:
            state, kind, reason, manual = self._evaluate(record)
        except Exception as e:
            state, kind, reason, manual = (RollbackState.ERROR, OutcomeKind.FAILURE,
                                           f"{type(e).__name__}: {e}", False)

        return self._finish(summary, record, state, kind, reason, manual)

    def run(self, records: Sequence[BackupRecord], summary: Optional[RunSummary] = None,
            resource_group: Optional[str] = None, name_contains: Optional[str] = None) -> RunSummary:
        """
        Filter ledger rows, confirm with the operator and roll each one back.

        Args:
            records: Loaded ledger rows
            summary: Accumulator to record into; a new one is created if omitted
            resource_group: Exact resource group filter
            name_contains: Resource name substring filter

        Returns:
            The summary; cancelled is set if the operator declined
        """
        if summary is None:
            summary = RunSummary(operation="rollback", dry_run=self.dry_run)

        selected = filter_records(records, resource_group, name_contains)
        if not selected:
            logger.info("No ledger rows match the filters; nothing to roll back")
            return summary

        logger.info(f"{len(selected)} of {len(records)} ledger row(s) selected for rollback")

        if self.show:
            self.show(selected)

        if not (self.force or self.dry_run):
            if not self.confirm(f"Roll back tags on {len(selected)} resource(s)?"):
                logger.info("Rollback cancelled by operator")
                summary.cancelled = True
                return summary

        try:
            for record in selected:
                self.process(record, summary)
        except Exception as e:
            logger.critical(f"Rollback aborted after {summary.total} resource(s): {e}")
            summary.abort(f"{type(e).__name__}: {e}")

        return summary
