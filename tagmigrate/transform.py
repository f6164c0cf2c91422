"""
Tag transform engine: rename one tag key on each resource, with backup and verification.
"""

import logging
import time
from dataclasses import replace
from typing import Callable, Iterable, Optional, Tuple

from .config import MIN_SETTLE_SECONDS
from .ledger import BackupLedger, build_backup_record
from .models import Outcome, OutcomeKind, ResourceRecord, TransformState
from .providers.base import CloudProvider
from .summary import RunSummary
from .tags import apply_delta, transform_delta

logger = logging.getLogger(__name__)

_LOG_LEVEL = {
    OutcomeKind.SUCCESS: logging.INFO,
    OutcomeKind.SKIPPED: logging.INFO,
    OutcomeKind.FAILURE: logging.ERROR,
}


class TagTransformEngine:
    """
    Moves the value of old_name to new_name on each resource.

    Per resource: read live tags, decide skip/conflict/apply, write a backup
    row, replace the full tag set, wait for the settle delay and re-read to
    verify. Resources are processed strictly one after another.
    """

    def __init__(self, provider: CloudProvider, old_name: str, new_name: str,
                 ledger: Optional[BackupLedger] = None, settle_seconds: float = MIN_SETTLE_SECONDS,
                 dry_run: bool = False, on_outcome: Optional[Callable[[Outcome], None]] = None):
        if not old_name or not new_name:
            raise ValueError("Both old and new tag names are required")
        if old_name == new_name:
            raise ValueError(f"Old and new tag names are identical: '{old_name}'")
        if ledger is None and not dry_run:
            raise ValueError("A backup ledger is required unless running in dry-run mode")

        self.provider = provider
        self.old_name = old_name
        self.new_name = new_name
        self.ledger = ledger
        self.settle_seconds = max(settle_seconds, MIN_SETTLE_SECONDS)
        self.dry_run = dry_run
        self.on_outcome = on_outcome

    def _finish(self, summary: RunSummary, resource: ResourceRecord, state: TransformState,
                kind: OutcomeKind, reason: str) -> Outcome:
        logger.log(_LOG_LEVEL[kind], f"[{state.value}] {resource.name} ({resource.id}): {reason}")
        outcome = summary.record(Outcome(
            resource_id=resource.id,
            name=resource.name,
            state=state.value,
            kind=kind,
            reason=reason,
        ))
        if self.on_outcome:
            self.on_outcome(outcome)
        return outcome

    def _evaluate(self, resource: ResourceRecord) -> Tuple[ResourceRecord, TransformState, OutcomeKind, str]:
        old, new = self.old_name, self.new_name

        live = self.provider.get_resource(resource.id)
        if live is None:
            return resource, TransformState.RESOURCE_GONE, OutcomeKind.SKIPPED, "resource no longer exists"

        if old not in live.tags:
            if new in live.tags:
                return (live, TransformState.NO_OLD_TAG, OutcomeKind.SKIPPED,
                        f"'{old}' not present ('{new}' already set)")
            return (live, TransformState.BOTH_MISSING, OutcomeKind.SKIPPED,
                    f"neither '{old}' nor '{new}' present")

        value = live.tags[old]
        if new in live.tags and live.tags[new] != value:
            return (live, TransformState.CONFLICT, OutcomeKind.SKIPPED,
                    f"'{new}'='{live.tags[new]}' conflicts with '{old}'='{value}'; not overwriting")

        delta = transform_delta(live.tags, old, new)

        if self.dry_run:
            return live, TransformState.WOULD_APPLY, OutcomeKind.SUCCESS, f"would {delta.describe()}"

        # live reads may lack location; keep the discovered identity with live tags
        if not self.ledger.append(build_backup_record(replace(resource, tags=live.tags), old, new)):
            return (live, TransformState.BACKUP_FAILED, OutcomeKind.SKIPPED,
                    "backup write failed; resource left unchanged")

        self.provider.replace_tags(live.id, apply_delta(live.tags, delta))

        time.sleep(self.settle_seconds)
        verified = self.provider.get_resource(live.id)

        if verified is None:
            return (live, TransformState.VERIFY_FAILED, OutcomeKind.FAILURE,
                    "resource disappeared before verification")
        if new not in verified.tags or old in verified.tags:
            return (live, TransformState.VERIFY_FAILED, OutcomeKind.FAILURE,
                    f"verification failed: '{new}' present={new in verified.tags}, "
                    f"'{old}' present={old in verified.tags}")

        return live, TransformState.APPLIED, OutcomeKind.SUCCESS, delta.describe()

    def process(self, resource: ResourceRecord, summary: RunSummary) -> Outcome:
        """
        Run the transform state machine for one resource.

        Args:
            resource: Resource from discovery; its tags are re-read live
            summary: Accumulator the outcome is recorded into

        Returns:
            The recorded outcome
        """
        try:
            subject, state, kind, reason = self._evaluate(resource)
        except Exception as e:
            subject, state, kind, reason = (resource, TransformState.ERROR, OutcomeKind.FAILURE,
                                            f"{type(e).__name__}: {e}")

        return self._finish(summary, subject, state, kind, reason)

    def run(self, resources: Iterable[ResourceRecord], summary: Optional[RunSummary] = None) -> RunSummary:
        """
        Process resources in order.

        A failure inside process() is recorded and the run continues; anything
        escaping it aborts the remaining queue and is noted on the summary.

        Args:
            resources: Candidate resources
            summary: Accumulator to record into; a new one is created if omitted

        Returns:
            The summary, also when the run was aborted
        """
        if summary is None:
            summary = RunSummary(operation="transform", dry_run=self.dry_run)

        mode = "DRY RUN: " if self.dry_run else ""
        logger.info(f"{mode}Migrating tag '{self.old_name}' -> '{self.new_name}'")

        try:
            for resource in resources:
                self.process(resource, summary)
        except Exception as e:
            logger.critical(f"Transform aborted after {summary.total} resource(s): {e}")
            summary.abort(f"{type(e).__name__}: {e}")

        return summary
