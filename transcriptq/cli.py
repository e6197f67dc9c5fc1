"""CLI interface for transcriptq."""

import logging
import sys
from datetime import datetime
from typing import Optional
import click
from pydantic import ValidationError
from .errors import TranscriptQError
from .models import Config, JobStatus
from .notifier import OutboxNotifier
from .scheduler import DRAIN_HANDLER, TRIGGER_PRESETS, Scheduler
from .service import TranscriptionService
from .settings import Settings


def get_service() -> TranscriptionService:
    """Build a service from environment settings."""
    return TranscriptionService.from_settings(Settings())


def _fmt_time(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "-"


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log debug output")
def cli(verbose: bool):
    """transcriptq - queued transcription of large media files"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument("correlation_ref")
@click.argument("resource_id")
@click.option("--owner", required=True, help="Email address to notify when done")
@click.option("--payload", default="Transcribe this recording.", help="Request text sent with the resource")
@click.option("--payload-file", type=click.File("r"), help="Read the request text from a file")
def submit(correlation_ref: str, resource_id: str, owner: str, payload: str, payload_file):
    """Queue a resource for transcription.

    Example:
        transcriptq submit OBS-42 uploads/lesson.mp3 --owner observer@example.org
    """
    service = get_service()
    try:
        resource = service.resources.describe(resource_id)
        created = service.create_transcription_job(
            owner, correlation_ref, resource, payload_file.read() if payload_file else payload
        )
    except TranscriptQError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)
    click.echo(f"✓ Job {created.job_id} queued (about {created.estimated_wait_minutes} minutes)")


@cli.command()
@click.argument("job_id")
def status(job_id: str):
    """Show the status of one job.

    Example:
        transcriptq status 3f2c...
    """
    service = get_service()
    try:
        view = service.get_job_status(job_id)
    except TranscriptQError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)
    click.echo(f"Status:   {view.status.value}")
    if view.artifact_ref:
        click.echo(f"Artifact: {service.artifacts.link_for(view.artifact_ref)}")
    if view.last_error:
        click.echo(f"Error:    {view.last_error}")


@cli.command(name="list")
@click.option("--status", "status_filter", type=click.Choice([s.value for s in JobStatus]), help="Filter by status")
@click.option("--limit", default=10, help="Maximum jobs to display")
def list_jobs(status_filter: Optional[str], limit: int):
    """List jobs, oldest first.

    Example:
        transcriptq list --status pending
    """
    storage = get_service().storage
    if status_filter:
        jobs = storage.get_jobs_by_status(JobStatus(status_filter))
    else:
        jobs = storage.get_all_jobs()
    jobs = jobs[:limit]

    if not jobs:
        click.echo("No jobs found")
        return

    click.echo(f"\n{'ID':<34} {'Status':<12} {'Attempts':<10} {'Created':<20}")
    click.echo("-" * 78)
    for job in jobs:
        click.echo(f"{job.id:<34} {job.status.value:<12} {job.attempts:<10} {_fmt_time(job.created_at):<20}")
    click.echo()


@cli.command()
def stats():
    """Show job counts and configuration."""
    service = get_service()
    counts = service.queue.get_stats()
    config = service.storage.get_config()
    trigger = service.triggers.get(DRAIN_HANDLER)

    click.echo("\n" + "=" * 50)
    click.echo("transcriptq Status")
    click.echo("=" * 50)
    click.echo(f"Total Jobs:     {counts['total']}")
    click.echo(f"  Pending:      {counts['pending']}")
    click.echo(f"  Processing:   {counts['processing']}")
    click.echo(f"  Complete:     {counts['complete']}")
    click.echo(f"  Failed:       {counts['failed']}")
    click.echo(f"Queued ids:     {counts['queued']}")
    click.echo("\nConfiguration:")
    click.echo(f"  Max Attempts: {config.max_attempts}")
    click.echo(f"  Batch Size:   {config.batch_size}")
    click.echo(f"  Trigger:      {f'every {trigger.interval_minutes} min' if trigger else 'not installed'}")
    click.echo("=" * 50 + "\n")


@cli.command()
def tick():
    """Run one drainer tick (for cron or a manual run)."""
    report = get_service().run_tick()
    click.echo(
        f"✓ Polled {report.polled}, submitted {report.submitted}, repaired {report.repaired}"
        + (", stopped early" if report.stopped_early else "")
    )
    if report.errors:
        click.echo(f"✗ {report.errors} job(s) raised errors, see log", err=True)


@cli.command()
@click.option("--days", type=int, help="Override the configured retention horizon")
def sweep(days: Optional[int]):
    """Delete finished jobs past the retention horizon."""
    deleted = get_service().run_sweep(days)
    click.echo(f"✓ Deleted {deleted} job(s)")


@cli.group()
def schedule():
    """Manage the periodic trigger"""
    pass


@schedule.command()
@click.option("--every", type=click.Choice([str(p) for p in TRIGGER_PRESETS]), default="15", help="Minutes between ticks")
def install(every: str):
    """Install (or replace) the drainer trigger.

    Example:
        transcriptq schedule install --every 5
    """
    trigger = get_service().triggers.install(DRAIN_HANDLER, int(every))
    click.echo(f"✓ Drainer will run every {trigger.interval_minutes} minutes")


@schedule.command()
def show():
    """Show the installed trigger."""
    trigger = get_service().triggers.get(DRAIN_HANDLER)
    if trigger is None:
        click.echo("No trigger installed")
        return
    click.echo(f"Drainer every {trigger.interval_minutes} minutes (installed {_fmt_time(trigger.installed_at)})")


@schedule.command()
def run():
    """Run ticks in the foreground on the installed interval."""
    click.echo("Scheduler started, Ctrl-C to stop")
    ticks = Scheduler(get_service).run()
    click.echo(f"Scheduler stopped after {ticks} tick(s)")


@cli.command()
@click.option("--limit", default=10, help="Maximum messages to display")
def outbox(limit: int):
    """Show notifications recorded in the outbox."""
    service = get_service()
    if not isinstance(service.notifier, OutboxNotifier):
        click.echo("Notifications are sent by email; there is no outbox")
        return
    messages = service.notifier.messages()[-limit:]
    if not messages:
        click.echo("Outbox is empty")
        return
    for message in messages:
        click.echo(f"{_fmt_time(message.created_at)}  {message.recipient:<30} {message.subject}")


@cli.group()
def config():
    """Manage configuration"""
    pass


@config.command(name="show")
def show_config():
    """Show current configuration.

    Example:
        transcriptq config show
    """
    cfg = get_service().storage.get_config()
    click.echo("\nCurrent Configuration:")
    for key, value in cfg.model_dump().items():
        click.echo(f"  {key.replace('_', '-')}:  {value}")
    click.echo()


@config.command(name="set")
@click.argument("key")
@click.argument("value")
def set_config(key: str, value: str):
    """Set a configuration value.

    Example:
        transcriptq config set batch-size 10
        transcriptq config set time-budget-seconds 240
    """
    storage = get_service().storage
    cfg = storage.get_config()
    field = key.replace("-", "_")
    if field not in Config.model_fields:
        click.echo(f"✗ Unknown config key: {key}", err=True)
        sys.exit(1)

    try:
        cfg = Config.model_validate({**cfg.model_dump(), field: value})
    except ValidationError as e:
        click.echo(f"✗ Invalid value: {e.errors()[0]['msg']}", err=True)
        sys.exit(1)
    storage.set_config(cfg)
    click.echo(f"✓ Configuration updated: {key} = {value}")


if __name__ == "__main__":
    cli()
