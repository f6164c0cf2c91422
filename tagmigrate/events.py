"""
Run journal utilities for NDJSON format.
"""

import json
from datetime import datetime
from typing import Any, Dict

from .state import get_run_dir


class EventTypes:
    RUN_START = "RUN_START"
    OUTCOME = "OUTCOME"
    RUN_DONE = "RUN_DONE"
    RUN_ABORTED = "RUN_ABORTED"
    RUN_CANCELLED = "RUN_CANCELLED"


def emit_event(run_id: str, event_type: str, data: Dict[str, Any]) -> None:
    """
    Append an event to the run's events.ndjson file.

    Args:
        run_id: Run ID
        event_type: One of EventTypes
        data: Event data
    """
    events_file = get_run_dir(run_id) / "events.ndjson"

    event = {
        "ts": datetime.now().isoformat(),
        "type": event_type,
        "data": data
    }

    with open(events_file, "a") as f:
        f.write(json.dumps(event) + "\n")
        f.flush()


def read_events(run_id: str) -> list[Dict[str, Any]]:
    """
    Read all events from a run's events.ndjson file.

    Args:
        run_id: Run ID

    Returns:
        List of events
    """
    events_file = get_run_dir(run_id) / "events.ndjson"

    if not events_file.exists():
        return []

    events = []
    with open(events_file, "r") as f:
        for line in f:
            line = line.strip()
            if line:
                try:
                    events.append(json.loads(line))
                except json.JSONDecodeError:
                    continue  # Partial last line from an interrupted run

    return events


def summarize_run(run_id: str) -> Dict[str, Any]:
    """
    Derive a run's status and counters from its journal.

    Args:
        run_id: Run ID

    Returns:
        Dictionary with status, operation and success/failure/skipped counts
    """
    events = read_events(run_id)

    counts = {"success": 0, "failure": 0, "skipped": 0}
    operation = None
    manual = []

    for event in events:
        data = event.get("data", {})
        if event.get("type") == EventTypes.RUN_START:
            operation = data.get("operation")
        elif event.get("type") == EventTypes.OUTCOME:
            kind = data.get("kind")
            if kind in counts:
                counts[kind] += 1
            if data.get("manual_intervention"):
                manual.append(data.get("resource_id"))

    status_map = {
        EventTypes.RUN_START: "running",
        EventTypes.OUTCOME: "running",
        EventTypes.RUN_DONE: "completed",
        EventTypes.RUN_ABORTED: "aborted",
        EventTypes.RUN_CANCELLED: "cancelled",
    }
    last_type = events[-1].get("type") if events else None

    return {
        "run_id": run_id,
        "operation": operation,
        "status": status_map.get(last_type, "unknown"),
        "total": sum(counts.values()),
        "manual_intervention": manual,
        **counts,
    }
