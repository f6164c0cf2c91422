"""
CLI tests using the memory provider seeded from a fixture file.
"""

import csv
import json
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from tagmigrate.cli import main
from tagmigrate.ledger import BackupLedger, load_ledger
from tagmigrate.models import BackupRecord
from tagmigrate.state import list_runs, read_run_json

FIXTURE = Path(__file__).parent / "fixtures" / "resources.json"


@pytest.fixture
def runner(tmp_path, monkeypatch):
    monkeypatch.setenv("TAGMIGRATE_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("TAGMIGRATE_PROVIDER", "memory")
    monkeypatch.setenv("TAGMIGRATE_MEMORY_FIXTURE", str(FIXTURE))
    with patch("tagmigrate.transform.time.sleep"):
        yield CliRunner()


def write_ledger(path, records):
    ledger = BackupLedger(str(path))
    for record in records:
        ledger.append(record)


def storage_record(value="Dev"):
    return BackupRecord(
        timestamp="2026-01-01T00:00:00",
        name="stdev01",
        resource_group_name="rg-dev",
        resource_id="/subscriptions/x/resourceGroups/rg-dev/providers/Microsoft.Storage/storageAccounts/stdev01",
        resource_type="Microsoft.Storage/storageAccounts",
        location="northeurope",
        old_tag_name="Environment",
        new_tag_name="Env",
        tag_value=value,
        all_tags="Environment",
    )


def vm_record():
    return BackupRecord(
        timestamp="2026-01-01T00:00:00",
        name="vm-prod-01",
        resource_group_name="rg-prod",
        resource_id="/subscriptions/x/resourceGroups/rg-prod/providers/Microsoft.Compute/virtualMachines/vm-prod-01",
        resource_type="Microsoft.Compute/virtualMachines",
        location="westeurope",
        old_tag_name="Environment",
        new_tag_name="Env",
        tag_value="Production",
        all_tags="Environment;Owner",
    )


class TestDiscover:
    """Test the discover command."""

    def test_writes_inventory(self, runner, tmp_path):
        output = tmp_path / "inventory.csv"
        result = runner.invoke(main, ["discover", "--output", str(output), "--page-size", "2"])

        assert result.exit_code == 0, result.output
        with open(output, newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert len(rows) == 3
        assert "Tag:Environment" in rows[0]
        assert "3 page(s)" not in result.output
        assert "2 page(s)" in result.output

    def test_resource_type_filter(self, runner, tmp_path):
        output = tmp_path / "inventory.csv"
        result = runner.invoke(main, [
            "discover", "-o", str(output), "--resource-type", "microsoft.storage/storageaccounts",
        ])

        assert result.exit_code == 0, result.output
        with open(output, newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert [r["Name"] for r in rows] == ["stdev01"]

    def test_invalid_page_size(self, runner, tmp_path):
        result = runner.invoke(main, ["discover", "-o", str(tmp_path / "x.csv"), "--page-size", "5000"])
        assert result.exit_code == 2


class TestTransform:
    """Test the transform command."""

    def test_transform_writes_ledger_and_journal(self, runner, tmp_path):
        ledger = tmp_path / "backup.csv"
        result = runner.invoke(main, [
            "transform", "--old-tag", "Environment", "--new-tag", "Env", "--ledger", str(ledger),
        ])

        assert result.exit_code == 0, result.output
        records = load_ledger(str(ledger))
        assert [r.name for r in records] == ["vm-prod-01"]
        assert records[0].tag_value == "Production"

        run_id = list_runs()[0]
        assert read_run_json(run_id)["operation"] == "transform"

        status = runner.invoke(main, ["status", run_id, "--json"])
        info = json.loads(status.output)
        assert info["status"] == "completed"
        assert (info["success"], info["failure"], info["skipped"]) == (1, 0, 1)

    def test_default_ledger_lives_in_run_dir(self, runner, tmp_path):
        result = runner.invoke(main, ["transform", "--old-tag", "Environment", "--new-tag", "Env"])

        assert result.exit_code == 0, result.output
        run_id = list_runs()[0]
        assert (tmp_path / "home" / run_id / "backup.csv").exists()

    def test_dry_run_writes_no_ledger(self, runner, tmp_path):
        ledger = tmp_path / "backup.csv"
        result = runner.invoke(main, [
            "transform", "--old-tag", "Environment", "--new-tag", "Env", "--ledger", str(ledger), "--dry-run",
        ])

        assert result.exit_code == 0, result.output
        assert "DRY RUN" in result.output
        assert not ledger.exists()

    def test_nothing_to_do_exits_zero(self, runner):
        result = runner.invoke(main, ["transform", "--old-tag", "CostCenter", "--new-tag", "Cost"])

        assert result.exit_code == 0, result.output
        assert "nothing to do" in result.output

    def test_unknown_provider_is_setup_failure(self, runner):
        result = runner.invoke(main, ["--provider", "gcp", "transform", "--old-tag", "a", "--new-tag", "b"])
        assert result.exit_code == 2


class TestRollback:
    """Test the rollback command."""

    def test_forced_rollback(self, runner, tmp_path):
        ledger = tmp_path / "backup.csv"
        write_ledger(ledger, [storage_record(), vm_record()])

        result = runner.invoke(main, ["rollback", str(ledger), "--force"])

        assert result.exit_code == 0, result.output
        info = json.loads(runner.invoke(main, ["status", list_runs()[0], "--json"]).output)
        assert info["operation"] == "rollback"
        # stdev01 restored, vm-prod-01 already carries Environment
        assert (info["success"], info["failure"], info["skipped"]) == (1, 0, 1)

    def test_confirmation_declined(self, runner, tmp_path):
        ledger = tmp_path / "backup.csv"
        write_ledger(ledger, [storage_record()])

        result = runner.invoke(main, ["rollback", str(ledger)], input="n\n")

        assert result.exit_code == 0, result.output
        assert "stdev01" in result.output
        info = json.loads(runner.invoke(main, ["status", list_runs()[0], "--json"]).output)
        assert info["status"] == "cancelled"
        assert info["total"] == 0

    def test_confirmation_accepted(self, runner, tmp_path):
        ledger = tmp_path / "backup.csv"
        write_ledger(ledger, [storage_record()])

        result = runner.invoke(main, ["rollback", str(ledger)], input="y\n")

        assert result.exit_code == 0, result.output
        info = json.loads(runner.invoke(main, ["status", list_runs()[0], "--json"]).output)
        assert info["success"] == 1

    def test_filter_with_no_match(self, runner, tmp_path):
        ledger = tmp_path / "backup.csv"
        write_ledger(ledger, [storage_record()])

        result = runner.invoke(main, ["rollback", str(ledger), "--resource-group", "rg-none"])

        assert result.exit_code == 0, result.output
        assert "nothing to roll back" in result.output

    def test_missing_ledger_is_setup_failure(self, runner, tmp_path):
        result = runner.invoke(main, ["rollback", str(tmp_path / "missing.csv"), "--force"])
        assert result.exit_code == 2

    def test_malformed_ledger_is_setup_failure(self, runner, tmp_path):
        ledger = tmp_path / "bad.csv"
        ledger.write_text("Name,ResourceId\nvm,/subscriptions/x/vm\n", encoding="utf-8")

        result = runner.invoke(main, ["rollback", str(ledger), "--force"])
        assert result.exit_code == 2


class TestRuns:
    """Test run listing and status."""

    def test_runs_empty(self, runner):
        result = runner.invoke(main, ["runs"])
        assert result.exit_code == 0
        assert "No runs recorded" in result.output

    def test_runs_lists_transform(self, runner):
        runner.invoke(main, ["transform", "--old-tag", "Environment", "--new-tag", "Env", "--dry-run"])

        result = runner.invoke(main, ["runs"])
        assert result.exit_code == 0
        assert "transform" in result.output
        assert "completed" in result.output

    def test_status_invalid_id(self, runner):
        result = runner.invoke(main, ["status", "not-a-run"])
        assert result.exit_code == 2
        assert "Invalid run ID" in result.output

    def test_status_unknown_run(self, runner):
        result = runner.invoke(main, ["status", "r-20260101-000000-abcd"])
        assert result.exit_code == 2
