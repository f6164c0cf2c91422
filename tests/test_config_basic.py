"""
Tests for environment-driven settings and run summaries.
"""

import pytest

from tagmigrate.config import load_settings
from tagmigrate.models import Outcome, OutcomeKind
from tagmigrate.summary import RunSummary, format_summary


class TestSettings:
    """Test settings loading."""

    def test_defaults(self, monkeypatch):
        for name in ["TAGMIGRATE_HOME", "TAGMIGRATE_PROVIDER", "TAGMIGRATE_PAGE_SIZE",
                     "TAGMIGRATE_SETTLE_SECONDS", "TAGMIGRATE_MAX_ATTEMPTS", "TAGMIGRATE_LOG_LEVEL",
                     "TAGMIGRATE_MEMORY_FIXTURE", "TAGMIGRATE_BACKOFF_INITIAL", "TAGMIGRATE_BACKOFF_MAX"]:
            monkeypatch.delenv(name, raising=False)

        settings = load_settings()

        assert settings.provider == "azure"
        assert settings.page_size == 1000
        assert settings.settle_seconds == 0.5
        assert settings.max_attempts == 5
        assert (settings.backoff_initial, settings.backoff_max) == (0.5, 8.0)
        assert settings.memory_fixture is None

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("TAGMIGRATE_PAGE_SIZE", "250")
        monkeypatch.setenv("TAGMIGRATE_SETTLE_SECONDS", "2")
        monkeypatch.setenv("TAGMIGRATE_LOG_LEVEL", "debug")

        settings = load_settings()

        assert settings.page_size == 250
        assert settings.settle_seconds == 2.0
        assert settings.log_level == "DEBUG"

    def test_settle_is_clamped(self, monkeypatch):
        monkeypatch.setenv("TAGMIGRATE_SETTLE_SECONDS", "0.1")
        assert load_settings().settle_seconds == 0.5

    def test_bad_number(self, monkeypatch):
        monkeypatch.setenv("TAGMIGRATE_MAX_ATTEMPTS", "many")
        with pytest.raises(ValueError, match="TAGMIGRATE_MAX_ATTEMPTS"):
            load_settings()


class TestRunSummary:
    """Test the outcome accumulator."""

    def test_record_counts_by_kind(self):
        summary = RunSummary(operation="rollback")
        for kind in [OutcomeKind.SUCCESS, OutcomeKind.SUCCESS, OutcomeKind.FAILURE, OutcomeKind.SKIPPED]:
            summary.record(Outcome(resource_id="/r", name="r", state="x", kind=kind, reason=""))

        assert (summary.total, summary.success_count, summary.failure_count, summary.skipped_count) == (4, 2, 1, 1)
        assert summary.to_dict()["total"] == 4

    def test_format_reports_abort_and_manual_intervention(self):
        summary = RunSummary(operation="rollback", dry_run=True)
        summary.record(Outcome(resource_id="/r1", name="vm1", state="NeitherTagPresent",
                               kind=OutcomeKind.SKIPPED, reason="neither tag", manual_intervention=True))
        summary.abort("RuntimeError: boom")

        lines = format_summary(summary)

        assert lines[0] == "Rollback summary (dry run)"
        assert "  Skipped:  1" in lines
        assert any("Aborted: RuntimeError: boom" in line for line in lines)
        assert any("vm1 (/r1)" in line for line in lines)
