"""
Click CLI interface for tagmigrate.
"""

import json
import logging
import sys
from typing import List, Optional

import click

from .config import load_settings
from .discovery import PagedQueryClient, write_inventory
from .errors import DiscoveryError, SetupError
from .events import EventTypes, emit_event, read_events, summarize_run
from .ids import is_valid_run_id, new_run_id, run_started_at
from .ledger import BackupLedger, load_ledger
from .models import BackupRecord, Outcome
from .providers import CloudProvider, ResourceQuery, Scope, get_provider
from .rollback import RollbackEngine
from .state import create_run_dir, default_ledger_path, get_run_dir, list_runs, write_run_json
from .summary import RunSummary, format_summary
from .transform import TagTransformEngine

EXIT_ABORTED = 1
EXIT_SETUP = 2


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


def _fail(message: str, code: int) -> None:
    click.echo(f"❌ {message}", err=True)
    sys.exit(code)


def _connect(ctx: click.Context) -> CloudProvider:
    """Build and authenticate the provider; any setup problem ends the command."""
    settings = ctx.obj["settings"]
    try:
        provider = get_provider(ctx.obj["provider"], settings.memory_fixture)
        provider.authenticate()
    except (SetupError, ValueError) as e:
        _fail(f"Setup failed: {e}", EXIT_SETUP)
    return provider


def _journal(run_id: str):
    def record(outcome: Outcome) -> None:
        emit_event(run_id, EventTypes.OUTCOME, outcome.to_dict())
    return record


def _print_summary(summary: RunSummary) -> None:
    lines = format_summary(summary)
    if summary.aborted or summary.failure_count:
        color = "red"
    elif summary.cancelled:
        color = "yellow"
    else:
        color = "green"
    click.echo("")
    click.echo(click.style(lines[0], fg=color, bold=True))
    for line in lines[1:]:
        click.echo(line)


def _finish_run(run_id: str, summary: RunSummary) -> None:
    if summary.aborted:
        emit_event(run_id, EventTypes.RUN_ABORTED, summary.to_dict())
    elif summary.cancelled:
        emit_event(run_id, EventTypes.RUN_CANCELLED, summary.to_dict())
    else:
        emit_event(run_id, EventTypes.RUN_DONE, summary.to_dict())

    _print_summary(summary)

    if summary.aborted:
        sys.exit(EXIT_ABORTED)


def _print_records(records: List[BackupRecord]) -> None:
    click.echo(f"📋 {len(records)} ledger row(s) selected:")
    for record in records:
        value = record.tag_value if record.tag_value else "(empty)"
        click.echo(
            f"  • {record.name} [{record.resource_group_name}] "
            f"{record.new_tag_name} -> {record.old_tag_name}={value}"
        )


@click.group()
@click.option("--provider", "provider_name", help="Cloud provider (azure, memory); default TAGMIGRATE_PROVIDER")
@click.option("--log-level", help="Logging level; default TAGMIGRATE_LOG_LEVEL")
@click.pass_context
def main(ctx, provider_name, log_level):
    """
    tagmigrate - Rename a tag key across cloud resources, with backup and rollback.
    """
    ctx.ensure_object(dict)
    try:
        settings = load_settings()
    except ValueError as e:
        _fail(f"Invalid configuration: {e}", EXIT_SETUP)

    ctx.obj["settings"] = settings
    ctx.obj["provider"] = provider_name or settings.provider
    _setup_logging(log_level or settings.log_level)


@main.command()
@click.option("--output", "-o", required=True, help="CSV file to write the inventory to")
@click.option("--subscription", "subscriptions", multiple=True,
              help="Subscription id to search (repeatable); tenant-wide if omitted")
@click.option("--resource-type", help="Only resources of this type, e.g. Microsoft.Compute/virtualMachines")
@click.option("--tag-key", help="Only resources carrying this tag key")
@click.option("--page-size", type=int, help="Records per discovery page (1-1000)")
@click.pass_context
def discover(ctx, output: str, subscriptions: tuple, resource_type: Optional[str],
             tag_key: Optional[str], page_size: Optional[int]):
    """
    Discover resources and export their tags to CSV.
    """
    settings = ctx.obj["settings"]
    provider = _connect(ctx)

    scope = Scope(subscriptions=list(subscriptions))
    query = ResourceQuery(resource_type=resource_type, tag_key=tag_key)
    client = PagedQueryClient(provider, settings.max_attempts, settings.backoff_initial, settings.backoff_max)

    try:
        result = client.fetch_all(query, scope, page_size or settings.page_size)
    except ValueError as e:
        _fail(str(e), EXIT_SETUP)
    except DiscoveryError as e:
        _fail(f"Discovery failed: {e}", EXIT_ABORTED)

    path = write_inventory(output, result.resources)

    click.echo(f"🔎 Scope: {scope.describe()}")
    click.echo(f"📦 Resources: {len(result.resources)} ({result.pages_fetched} page(s), "
               f"{result.duplicates_dropped} duplicate(s) dropped)")
    click.echo(f"💾 Inventory written to {path}")


@main.command()
@click.option("--old-tag", required=True, help="Tag key to retire")
@click.option("--new-tag", required=True, help="Tag key that receives the value")
@click.option("--resource-type", help="Only resources of this type")
@click.option("--subscription-id", help="Limit to one subscription; tenant-wide if omitted")
@click.option("--ledger", "ledger_path", help="Backup ledger path; defaults to the run directory")
@click.option("--page-size", type=int, help="Records per discovery page (1-1000)")
@click.option("--dry-run", is_flag=True, help="Report what would change without writing anything")
@click.pass_context
def transform(ctx, old_tag: str, new_tag: str, resource_type: Optional[str], subscription_id: Optional[str],
              ledger_path: Optional[str], page_size: Optional[int], dry_run: bool):
    """
    Rename OLD_TAG to NEW_TAG on every matching resource.
    """
    settings = ctx.obj["settings"]
    provider = _connect(ctx)

    run_id = new_run_id()
    create_run_dir(run_id)
    ledger_file = ledger_path or str(default_ledger_path(run_id))
    write_run_json(run_id, "transform", {
        "old_tag": old_tag,
        "new_tag": new_tag,
        "resource_type": resource_type,
        "subscription_id": subscription_id,
        "ledger": ledger_file,
        "dry_run": dry_run,
    })

    try:
        engine = TagTransformEngine(
            provider,
            old_tag,
            new_tag,
            ledger=None if dry_run else BackupLedger(ledger_file),
            settle_seconds=settings.settle_seconds,
            dry_run=dry_run,
            on_outcome=_journal(run_id),
        )
    except ValueError as e:
        _fail(str(e), EXIT_SETUP)

    summary = RunSummary(operation="transform", dry_run=dry_run)
    emit_event(run_id, EventTypes.RUN_START, {"operation": "transform", "old_tag": old_tag, "new_tag": new_tag})

    click.echo(f"🆔 Run: {run_id}")
    if dry_run:
        click.echo(click.style("DRY RUN: no tags or backups will be written", fg="yellow"))
    else:
        click.echo(f"💾 Backup ledger: {ledger_file}")

    scope = Scope.single(subscription_id) if subscription_id else Scope.tenant()
    client = PagedQueryClient(provider, settings.max_attempts, settings.backoff_initial, settings.backoff_max)

    try:
        result = client.fetch_all(ResourceQuery(resource_type=resource_type, tag_key=old_tag), scope,
                                  page_size or settings.page_size)
    except (DiscoveryError, ValueError) as e:
        summary.abort(f"Discovery failed: {e}")
        _finish_run(run_id, summary)
        return

    if not result.resources:
        click.echo(f"No resources carry tag '{old_tag}'; nothing to do")

    try:
        engine.run(result.resources, summary)
    except KeyboardInterrupt:
        summary.abort("Interrupted by user")

    _finish_run(run_id, summary)


@main.command()
@click.argument("ledger_path")
@click.option("--resource-group", help="Only ledger rows in this resource group (exact match)")
@click.option("--resource-name", help="Only ledger rows whose resource name contains this text")
@click.option("--force", is_flag=True, help="Skip the confirmation prompt")
@click.option("--dry-run", is_flag=True, help="Report what would be restored without writing anything")
@click.pass_context
def rollback(ctx, ledger_path: str, resource_group: Optional[str], resource_name: Optional[str],
             force: bool, dry_run: bool):
    """
    Restore original tags from a backup ledger.
    """
    settings = ctx.obj["settings"]

    try:
        records = load_ledger(ledger_path)
    except SetupError as e:
        _fail(str(e), EXIT_SETUP)

    provider = _connect(ctx)

    run_id = new_run_id()
    create_run_dir(run_id)
    write_run_json(run_id, "rollback", {
        "ledger": ledger_path,
        "resource_group": resource_group,
        "resource_name": resource_name,
        "force": force,
        "dry_run": dry_run,
    })

    engine = RollbackEngine(
        provider,
        settle_seconds=settings.settle_seconds,
        dry_run=dry_run,
        force=force,
        confirm=lambda prompt: click.confirm(prompt, default=False),
        show=_print_records,
        on_outcome=_journal(run_id),
    )

    summary = RunSummary(operation="rollback", dry_run=dry_run)
    emit_event(run_id, EventTypes.RUN_START, {"operation": "rollback", "ledger": ledger_path})

    click.echo(f"🆔 Run: {run_id}")
    if dry_run:
        click.echo(click.style("DRY RUN: no tags will be written", fg="yellow"))

    try:
        engine.run(records, summary, resource_group=resource_group, name_contains=resource_name)
    except KeyboardInterrupt:
        summary.abort("Interrupted by user")

    if summary.total == 0 and not (summary.cancelled or summary.aborted):
        click.echo("No ledger rows match the filters; nothing to roll back")

    _finish_run(run_id, summary)


@main.command()
def runs():
    """
    List recorded runs, most recent first.
    """
    run_ids = list_runs()
    if not run_ids:
        click.echo("No runs recorded")
        return

    for run_id in run_ids:
        info = summarize_run(run_id)
        started = run_started_at(run_id)
        click.echo(
            f"{run_id}  {started:%Y-%m-%d %H:%M:%S}  {info['operation'] or '-':<9}  {info['status']:<9}  "
            f"ok={info['success']} failed={info['failure']} skipped={info['skipped']}"
        )


@main.command()
@click.argument("run_id")
@click.option("--json", "output_json", is_flag=True, help="Output machine-readable JSON")
def status(run_id: str, output_json: bool):
    """
    Show the outcome of a recorded run.
    """
    if not is_valid_run_id(run_id):
        _fail(f"Invalid run ID: {run_id}", EXIT_SETUP)

    if not get_run_dir(run_id).exists():
        _fail(f"Run {run_id} not found", EXIT_SETUP)

    info = summarize_run(run_id)

    if output_json:
        click.echo(json.dumps(info, indent=2))
        return

    click.echo(f"🆔 Run: {run_id}")
    click.echo(f"⚙️  Operation: {info['operation'] or 'unknown'}")
    color = "green" if info["status"] == "completed" else "red"
    click.echo(f"📊 Status: {click.style(info['status'], fg=color)}")
    click.echo(f"   Success: {info['success']}  Failed: {info['failure']}  Skipped: {info['skipped']}")

    if info["manual_intervention"]:
        click.echo("⚠️  Manual intervention required:")
        for resource_id in info["manual_intervention"]:
            click.echo(f"  • {resource_id}")

    failures = [e["data"] for e in read_events(run_id)
                if e.get("type") == EventTypes.OUTCOME and e.get("data", {}).get("kind") == "failure"]
    if failures:
        click.echo("\n📝 Failures:")
        for data in failures[-10:]:
            click.echo(f"  • {data.get('name')}: {data.get('reason')}")


if __name__ == "__main__":
    main()
