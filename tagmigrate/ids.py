"""
Run identifiers: r-YYYYMMDD-hhmmss-xxxx, sortable by start time.
"""

import re
import secrets
from datetime import datetime
from typing import Optional

RUN_ID_PATTERN = re.compile(r"^r-(\d{8}-\d{6})-[0-9a-z]{4}$")
_STAMP_FORMAT = "%Y%m%d-%H%M%S"


def new_run_id(now: Optional[datetime] = None) -> str:
    """Build a run id stamped with the local start time and a random hex suffix."""
    stamp = (now or datetime.now()).strftime(_STAMP_FORMAT)
    return f"r-{stamp}-{secrets.token_hex(2)}"


def run_started_at(run_id: str) -> Optional[datetime]:
    """
    Recover the start time encoded in a run id.

    Args:
        run_id: Candidate run id

    Returns:
        The start time, or None if the id is malformed or names an impossible date
    """
    match = RUN_ID_PATTERN.match(run_id)
    if not match:
        return None

    try:
        return datetime.strptime(match.group(1), _STAMP_FORMAT)
    except ValueError:
        return None


def is_valid_run_id(run_id: str) -> bool:
    return run_started_at(run_id) is not None
