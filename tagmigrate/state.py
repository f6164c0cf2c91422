"""
State management for runs: working directories, parameters and default ledger paths.
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from .ids import is_valid_run_id

LEDGER_FILENAME = "backup.csv"


def get_home() -> Path:
    """
    Get the tagmigrate home directory.

    Returns:
        Path: Resolved TAGMIGRATE_HOME (default ".tagmigrate")
    """
    home = os.environ.get("TAGMIGRATE_HOME", ".tagmigrate")
    return Path(home).resolve()


def get_run_dir(run_id: str) -> Path:
    """
    Get the directory for a specific run.

    Args:
        run_id: Run ID

    Returns:
        Path: Run directory

    Raises:
        ValueError: If run ID is invalid
    """
    if not is_valid_run_id(run_id):
        raise ValueError(f"Invalid run ID: {run_id}")

    return get_home() / run_id


def create_run_dir(run_id: str) -> Path:
    """Create the run directory and return its path."""
    run_dir = get_run_dir(run_id)
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def default_ledger_path(run_id: str) -> Path:
    """Where a transform run writes its backup ledger unless told otherwise."""
    return get_run_dir(run_id) / LEDGER_FILENAME


def write_run_json(run_id: str, operation: str, parameters: Dict[str, Any]) -> None:
    """
    Record the parameters a run was started with.

    Args:
        run_id: Run ID
        operation: "discover", "transform" or "rollback"
        parameters: Command options
    """
    run_dir = get_run_dir(run_id)
    data = {
        "run_id": run_id,
        "operation": operation,
        "parameters": parameters,
        "created_at": datetime.now().isoformat(),
    }

    with open(run_dir / "run.json", "w") as f:
        json.dump(data, f, indent=2)


def read_run_json(run_id: str) -> Optional[Dict[str, Any]]:
    """
    Read run parameters.

    Returns:
        Dict: Run parameters or None if not recorded
    """
    run_file = get_run_dir(run_id) / "run.json"

    if not run_file.exists():
        return None

    with open(run_file, "r") as f:
        return json.load(f)


def list_runs() -> list[str]:
    """
    List all run IDs.

    Returns:
        List of run IDs, most recent first
    """
    home = get_home()

    if not home.exists():
        return []

    runs = []
    for item in home.iterdir():
        if item.is_dir() and is_valid_run_id(item.name):
            runs.append(item.name)

    return sorted(runs, reverse=True)
