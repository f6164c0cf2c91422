"""
Run summary accumulator and report formatting.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .models import Outcome, OutcomeKind


@dataclass
class RunSummary:
    """Counters and outcomes for a single transform or rollback run."""
    operation: str = "transform"
    dry_run: bool = False
    start_time: float = field(default_factory=time.time)
    success_count: int = 0
    failure_count: int = 0
    skipped_count: int = 0
    outcomes: List[Outcome] = field(default_factory=list)
    cancelled: bool = False
    aborted: bool = False
    error: Optional[str] = None

    @property
    def total(self) -> int:
        return self.success_count + self.failure_count + self.skipped_count

    @property
    def elapsed_seconds(self) -> float:
        return time.time() - self.start_time

    @property
    def manual_intervention(self) -> List[Outcome]:
        return [o for o in self.outcomes if o.manual_intervention]

    def record(self, outcome: Outcome) -> Outcome:
        """Count an outcome and keep it for reporting."""
        if outcome.kind == OutcomeKind.SUCCESS:
            self.success_count += 1
        elif outcome.kind == OutcomeKind.FAILURE:
            self.failure_count += 1
        else:
            self.skipped_count += 1
        self.outcomes.append(outcome)
        return outcome

    def abort(self, error: str) -> None:
        self.aborted = True
        self.error = error

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "dry_run": self.dry_run,
            "total": self.total,
            "success": self.success_count,
            "failure": self.failure_count,
            "skipped": self.skipped_count,
            "cancelled": self.cancelled,
            "aborted": self.aborted,
            "error": self.error,
            "elapsed_seconds": round(self.elapsed_seconds, 2),
        }


def format_summary(summary: RunSummary) -> List[str]:
    """
    Render the summary as report lines.

    Args:
        summary: Completed (or aborted) run summary

    Returns:
        Lines suitable for click.echo
    """
    title = f"{summary.operation.capitalize()} summary"
    if summary.dry_run:
        title += " (dry run)"

    lines = [
        title,
        f"  Total:    {summary.total}",
        f"  Success:  {summary.success_count}",
        f"  Failed:   {summary.failure_count}",
        f"  Skipped:  {summary.skipped_count}",
        f"  Duration: {summary.elapsed_seconds:.1f}s",
    ]

    if summary.cancelled:
        lines.append("  Cancelled by operator before any change was made")

    if summary.aborted:
        lines.append(f"  Aborted: {summary.error}")

    needs_attention = summary.manual_intervention
    if needs_attention:
        lines.append("  Manual intervention required:")
        for outcome in needs_attention:
            lines.append(f"    - {outcome.name} ({outcome.resource_id}): {outcome.reason}")

    return lines
