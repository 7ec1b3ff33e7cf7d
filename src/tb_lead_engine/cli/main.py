"""Main CLI entry point for the tblead command."""

import logging
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn

from .. import __version__
from ..config import settings
from ..core.duplicates import DuplicateDetector
from ..core.scorer import LeadScorer
from ..core.config import ScoringConfigManager
from ..drip_campaigns import (
    EnrollmentStatus,
    EnrollmentStore,
    EnrollmentTracker,
    SequenceCatalog,
    SequenceScheduler,
    SequenceTrigger,
    TemplateLibrary,
)
from ..notifications import RecordingNotifier, build_email_notifier, build_sms_notifier
from ..storage.database import CRMDatabase
from ..storage.models import (
    Contact,
    Interaction,
    Opportunity,
    InteractionType,
    InteractionDirection,
    OpportunityStage,
    Urgency,
)

console = Console()

TEMPERATURE_COLORS = {"hot": "red", "warm": "yellow", "cold": "blue"}
STATUS_COLORS = {"active": "green", "paused": "yellow", "completed": "cyan", "cancelled": "dim"}


def get_db(db_path: Optional[str] = None) -> CRMDatabase:
    """Get database instance."""
    return CRMDatabase(Path(db_path) if db_path else settings.db_path)


def get_tracker(dry_run: bool = False) -> EnrollmentTracker:
    """Tracker backed by the enrollment file in the data directory.

    A dry run records messages instead of sending them and works on an
    in-memory copy of the enrollments, so nothing it does is saved.
    """
    storage_path = settings.data_dir / "sequences"
    if dry_run:
        store = EnrollmentStore.snapshot(storage_path)
        email_notifier = RecordingNotifier("email")
        sms_notifier = RecordingNotifier("sms")
    else:
        store = EnrollmentStore(storage_path)
        email_notifier = build_email_notifier(settings)
        sms_notifier = build_sms_notifier(settings)

    return EnrollmentTracker(
        catalog=SequenceCatalog(),
        store=store,
        email_notifier=email_notifier,
        sms_notifier=sms_notifier,
        templates=TemplateLibrary(company_name=settings.company_name),
    )


def get_scorer() -> LeadScorer:
    return LeadScorer(ScoringConfigManager(settings.data_dir / "scoring_config.json").config)


def _temperature_label(value: str) -> str:
    color = TEMPERATURE_COLORS.get(value, "")
    return f"[{color}]{value}[/{color}]" if color else value


@click.group()
@click.version_option(version=__version__, prog_name="tblead")
def cli():
    """T&B Lead Engine - lead scoring and follow-up sequences.

    \b
    Quick Start:
      tblead init                                  # Initialize database
      tblead add-contact -f Jane -l Doe -e jane@x.com --source referral
      tblead score-all                             # Score every contact
      tblead trigger 1 new_lead                    # Start the nurture sequence
      tblead tick                                  # Send whatever is due
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ============================================================================
# CONTACTS
# ============================================================================

@cli.command()
@click.option("--db", "db_path", help="Custom database path")
def init(db_path: Optional[str]):
    """Initialize the CRM database."""
    db = get_db(db_path)

    console.print(Panel.fit(
        f"[green]✓ Database initialized![/green]\n\n"
        f"Location: [cyan]{db.db_path}[/cyan]\n"
        f"Sequences: [cyan]{settings.data_dir / 'sequences'}[/cyan]\n\n"
        f"[bold]Delivery:[/bold]\n"
        f"• Email (SendGrid): {'[green]configured[/green]' if settings.email_configured else '[yellow]not configured[/yellow]'}\n"
        f"• SMS (Twilio):     {'[green]configured[/green]' if settings.sms_configured else '[yellow]not configured[/yellow]'}\n\n"
        f"[dim]Run 'tblead --help' for all commands[/dim]",
        title=f"T&B Lead Engine v{__version__}"
    ))


@cli.command("add-contact")
@click.option("--first-name", "-f", required=True)
@click.option("--last-name", "-l", required=True)
@click.option("--email", "-e")
@click.option("--phone", "-p")
@click.option("--company")
@click.option("--address")
@click.option("--city")
@click.option("--state")
@click.option("--zip", "zip_code")
@click.option("--notes")
@click.option("--source", "lead_source", help="Lead source, e.g. referral, website, cold_call")
@click.option("--db", "db_path", help="Custom database path")
def add_contact(first_name, last_name, email, phone, company, address, city, state,
                zip_code, notes, lead_source, db_path):
    """Add a contact, warning about likely duplicates."""
    db = get_db(db_path)
    contact = Contact(
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone=phone,
        company=company,
        address=address,
        city=city,
        state=state,
        zip_code=zip_code,
        notes=notes,
        lead_source=lead_source,
    )

    duplicates = DuplicateDetector().find_duplicates(contact, db.get_contacts())
    contact = db.add_contact(contact)

    console.print(f"[green]✓ Added contact #{contact.id}[/green] {contact.full_name}")
    for match in duplicates:
        console.print(
            f"[yellow]Possible duplicate:[/yellow] #{match.id} {match.full_name} "
            f"({match.email or match.phone or 'no contact info'})"
        )


@cli.command("log-interaction")
@click.argument("contact_id", type=int)
@click.option("--type", "-t", "interaction_type", type=click.Choice([t.value for t in InteractionType]),
              default="note")
@click.option("--direction", "-d", type=click.Choice([d.value for d in InteractionDirection]))
@click.option("--subject", "-s")
@click.option("--content", "-c")
@click.option("--db", "db_path", help="Custom database path")
def log_interaction(contact_id: int, interaction_type: str, direction: Optional[str],
                    subject: Optional[str], content: Optional[str], db_path: Optional[str]):
    """Log a call, email, meeting or note against a contact."""
    db = get_db(db_path)
    if not db.get_contact(contact_id):
        console.print(f"[red]Contact #{contact_id} not found[/red]")
        return

    interaction = db.add_interaction(Interaction(
        contact_id=contact_id,
        type=InteractionType(interaction_type),
        direction=InteractionDirection(direction) if direction else None,
        subject=subject,
        content=content,
    ))
    console.print(f"[green]✓ Logged {interaction.type.value} #{interaction.id}[/green] for contact #{contact_id}")


@cli.command("add-opportunity")
@click.argument("contact_id", type=int)
@click.argument("name")
@click.option("--value", "-v", help="Estimated deal value")
@click.option("--urgency", "-u", type=click.Choice([u.value for u in Urgency]), default="normal")
@click.option("--stage", type=click.Choice([s.value for s in OpportunityStage]), default="new_lead")
@click.option("--close-in-days", type=int, help="Expected close, in days from now")
@click.option("--db", "db_path", help="Custom database path")
def add_opportunity(contact_id: int, name: str, value: Optional[str], urgency: str, stage: str,
                    close_in_days: Optional[int], db_path: Optional[str]):
    """Attach an opportunity to a contact."""
    db = get_db(db_path)
    if not db.get_contact(contact_id):
        console.print(f"[red]Contact #{contact_id} not found[/red]")
        return

    expected_close = datetime.now() + timedelta(days=close_in_days) if close_in_days is not None else None
    opportunity = db.add_opportunity(Opportunity(
        contact_id=contact_id,
        name=name,
        stage=OpportunityStage(stage),
        value=value,
        urgency=Urgency(urgency),
        expected_close_date=expected_close,
    ))
    console.print(f"[green]✓ Added opportunity #{opportunity.id}[/green] {opportunity.name}")


# ============================================================================
# SCORING
# ============================================================================

@cli.command()
@click.argument("contact_id", type=int)
@click.option("--apply-temperature", is_flag=True, help="Also store the computed temperature")
@click.option("--db", "db_path", help="Custom database path")
def score(contact_id: int, apply_temperature: bool, db_path: Optional[str]):
    """Score one contact and explain the result."""
    db = get_db(db_path)
    scorer = get_scorer()
    result = db.score_contact(contact_id, scorer, apply_temperature=apply_temperature)

    if not result:
        console.print(f"[red]Contact #{contact_id} not found[/red]")
        return

    contact = db.get_contact(contact_id)
    console.print(Panel(
        scorer.explain(result),
        title=f"#{contact_id} {contact.display_name} - {result.summary}"
    ))
    if not apply_temperature and contact.lead_temperature != result.temperature:
        console.print(
            f"[dim]Stored temperature is {contact.lead_temperature.value}; "
            f"use --apply-temperature to set {result.temperature.value}[/dim]"
        )


@cli.command("score-all")
@click.option("--apply-temperature", is_flag=True, help="Also store the computed temperatures")
@click.option("--db", "db_path", help="Custom database path")
def score_all(apply_temperature: bool, db_path: Optional[str]):
    """Score all contacts in the database."""
    db = get_db(db_path)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console
    ) as progress:
        progress.add_task("Scoring contacts...", total=None)
        results = db.score_all_contacts(get_scorer(), apply_temperature=apply_temperature)

    counts = {"hot": 0, "warm": 0, "cold": 0}
    for result in results.values():
        counts[result.temperature.value] += 1

    console.print(Panel.fit(
        f"[green]✓ Scored {len(results)} contacts[/green]\n\n"
        f"[bold]Computed temperatures:[/bold]\n"
        f"  Hot:  [red]{counts['hot']}[/red]\n"
        f"  Warm: [yellow]{counts['warm']}[/yellow]\n"
        f"  Cold: [blue]{counts['cold']}[/blue]"
        + ("" if apply_temperature else "\n\n[dim]Temperatures not stored (use --apply-temperature)[/dim]"),
        title="Scoring Complete"
    ))


@cli.command()
@click.option("--limit", "-n", default=20, help="Number of contacts to show")
@click.option("--db", "db_path", help="Custom database path")
def show(limit: int, db_path: Optional[str]):
    """Display contacts sorted by score."""
    db = get_db(db_path)
    contacts = db.get_contacts(limit=limit)

    if not contacts:
        console.print("[yellow]No contacts found.[/yellow]")
        return

    table = Table(title=f"Contacts ({len(contacts)})")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Score", justify="right", style="bold")
    table.add_column("Temp", justify="center")
    table.add_column("Name", style="cyan", max_width=25)
    table.add_column("Email", max_width=30)
    table.add_column("Source")

    for contact in contacts:
        table.add_row(
            str(contact.id),
            str(contact.lead_score),
            _temperature_label(contact.lead_temperature.value),
            contact.full_name[:25],
            (contact.email or "")[:30],
            contact.lead_source or "",
        )

    console.print(table)


@cli.command()
@click.argument("contact_id", type=int, required=False)
@click.option("--db", "db_path", help="Custom database path")
def duplicates(contact_id: Optional[int], db_path: Optional[str]):
    """List likely duplicate contacts (for one contact, or across all)."""
    db = get_db(db_path)
    contacts = db.get_contacts()
    detector = DuplicateDetector()

    if contact_id is not None:
        contact = db.get_contact(contact_id)
        if not contact:
            console.print(f"[red]Contact #{contact_id} not found[/red]")
            return
        targets = [contact]
    else:
        targets = contacts

    pairs = []
    seen = set()
    for contact in targets:
        for match in detector.find_duplicates(contact, contacts):
            key = tuple(sorted((contact.id, match.id)))
            if key in seen:
                continue
            seen.add(key)
            pairs.append((contact, match, detector.match_score(contact, match)))

    if not pairs:
        console.print("[green]No duplicates found.[/green]")
        return

    table = Table(title=f"Possible duplicates ({len(pairs)})")
    table.add_column("Contact", style="cyan")
    table.add_column("Matches", style="cyan")
    table.add_column("Score", justify="right", style="bold")

    for contact, match, match_score in pairs:
        table.add_row(
            f"#{contact.id} {contact.full_name}",
            f"#{match.id} {match.full_name}",
            str(match_score),
        )

    console.print(table)


# ============================================================================
# SEQUENCES
# ============================================================================

@cli.command()
def sequences():
    """Show the sequence catalog with enrollment counts."""
    tracker = get_tracker(dry_run=True)

    table = Table(title="Sequences")
    table.add_column("ID", style="cyan")
    table.add_column("Trigger")
    table.add_column("Steps", justify="right")
    table.add_column("Active", justify="right", style="green")
    table.add_column("Completed", justify="right")
    table.add_column("Completion", justify="right")

    for stats in tracker.sequence_overview():
        table.add_row(
            stats["sequence_id"],
            stats["trigger"],
            str(stats["steps"]),
            str(stats["active"]),
            str(stats["completed"]),
            f"{stats['completion_rate']}%",
        )

    console.print(table)


@cli.command()
@click.argument("contact_id", type=int)
@click.argument("sequence_id")
@click.option("--db", "db_path", help="Custom database path")
def enroll(contact_id: int, sequence_id: str, db_path: Optional[str]):
    """Enroll a contact in a sequence."""
    db = get_db(db_path)
    if not db.get_contact(contact_id):
        console.print(f"[red]Contact #{contact_id} not found[/red]")
        return

    enrollment = get_tracker().enroll(contact_id, sequence_id)
    if not enrollment:
        console.print(
            f"[yellow]Not enrolled:[/yellow] sequence '{sequence_id}' is unavailable "
            f"or contact #{contact_id} is already active in it"
        )
        return

    console.print(f"[green]✓ Enrolled[/green] {enrollment.id}")


@cli.command()
@click.argument("contact_id", type=int)
@click.argument("trigger", type=click.Choice([t.value for t in SequenceTrigger]))
@click.option("--db", "db_path", help="Custom database path")
def trigger(contact_id: int, trigger: str, db_path: Optional[str]):
    """Fire a business event and enroll the contact in matching sequences."""
    db = get_db(db_path)
    contact = db.get_contact(contact_id)
    if not contact:
        console.print(f"[red]Contact #{contact_id} not found[/red]")
        return

    enrollments = get_tracker().auto_enroll(contact, trigger)
    if not enrollments:
        console.print(f"[yellow]No new enrollments for {trigger}[/yellow]")
        return

    for enrollment in enrollments:
        console.print(f"[green]✓ Enrolled[/green] {enrollment.id}")


@cli.command("enrollments")
@click.option("--contact", "contact_id", type=int, help="Only this contact")
@click.option("--status", type=click.Choice([s.value for s in EnrollmentStatus]), help="Filter by status")
def list_enrollments(contact_id: Optional[int], status: Optional[str]):
    """List enrollments."""
    store = get_tracker(dry_run=True).store
    if contact_id is not None:
        records = store.for_contact(contact_id)
    else:
        records = store.all()
    if status:
        records = [e for e in records if e.status.value == status]

    if not records:
        console.print("[yellow]No enrollments found.[/yellow]")
        return

    table = Table(title=f"Enrollments ({len(records)})")
    table.add_column("ID", style="dim")
    table.add_column("Contact", justify="right")
    table.add_column("Sequence", style="cyan")
    table.add_column("Step", justify="right")
    table.add_column("Status", justify="center")
    table.add_column("Started")
    table.add_column("Last sent")

    for e in sorted(records, key=lambda e: e.started_at):
        color = STATUS_COLORS.get(e.status.value, "")
        table.add_row(
            e.id,
            str(e.contact_id),
            e.sequence_id,
            str(e.current_step),
            f"[{color}]{e.status.value}[/{color}]",
            e.started_at.strftime("%Y-%m-%d %H:%M"),
            e.last_sent_at.strftime("%Y-%m-%d %H:%M") if e.last_sent_at else "",
        )

    console.print(table)


def _transition(action: str, enrollment_id: str):
    tracker = get_tracker()
    if getattr(tracker, action)(enrollment_id):
        enrollment = tracker.get_enrollment(enrollment_id)
        console.print(f"[green]✓ {enrollment_id} is now {enrollment.status.value}[/green]")
    else:
        console.print(f"[red]Cannot {action} {enrollment_id}[/red]")


@cli.command()
@click.argument("enrollment_id")
def pause(enrollment_id: str):
    """Pause an active enrollment."""
    _transition("pause", enrollment_id)


@cli.command()
@click.argument("enrollment_id")
def resume(enrollment_id: str):
    """Resume a paused enrollment."""
    _transition("resume", enrollment_id)


@cli.command()
@click.argument("enrollment_id")
def cancel(enrollment_id: str):
    """Cancel an active or paused enrollment."""
    _transition("cancel", enrollment_id)


@cli.command()
@click.option("--dry-run", is_flag=True, help="Record messages instead of sending them; enrollments are not saved")
@click.option("--workers", "-w", type=int, help="Parallel workers (default from TB_TICK_WORKERS)")
@click.option("--db", "db_path", help="Custom database path")
def tick(dry_run: bool, workers: Optional[int], db_path: Optional[str]):
    """Send every sequence step that is due now."""
    db = get_db(db_path)
    tracker = get_tracker(dry_run=dry_run)
    results = tracker.process_all(db.contacts_by_id(), max_workers=workers or settings.tick_workers)

    console.print(Panel.fit(
        f"Processed: [cyan]{results['processed']}[/cyan]\n"
        f"Sent:      [green]{results['sent']}[/green]\n"
        f"Waiting:   [dim]{results['waiting']}[/dim]\n"
        f"Skipped:   [yellow]{results['skipped']}[/yellow]\n"
        f"Failed:    [red]{results['failed']}[/red]",
        title="Tick" + (" (dry run)" if dry_run else "")
    ))


@cli.command("run-scheduler")
@click.option("--interval", "-i", type=int, help="Seconds between ticks (default from TB_TICK_INTERVAL)")
@click.option("--dry-run", is_flag=True, help="Record messages instead of sending them; enrollments are not saved")
@click.option("--db", "db_path", help="Custom database path")
def run_scheduler(interval: Optional[int], dry_run: bool, db_path: Optional[str]):
    """Run ticks on an interval until interrupted."""
    db = get_db(db_path)
    scheduler = SequenceScheduler(
        get_tracker(dry_run=dry_run),
        db.contacts_by_id,
        interval_seconds=interval or settings.tick_interval,
        max_workers=settings.tick_workers,
    )

    console.print(f"[green]Scheduler running every {scheduler.interval_seconds}s[/green] (Ctrl+C to stop)")
    scheduler.start()
    try:
        while scheduler.running:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopping scheduler...[/yellow]")
    finally:
        scheduler.stop()


# ============================================================================
# STATS
# ============================================================================

@cli.command()
@click.option("--db", "db_path", help="Custom database path")
def stats(db_path: Optional[str]):
    """Show CRM and sequence statistics."""
    db = get_db(db_path)
    db_stats = db.get_stats()
    store = get_tracker(dry_run=True).store

    by_status = {s.value: len(store.all(s)) for s in EnrollmentStatus}

    console.print(Panel.fit(
        f"[bold]Contacts:[/bold] {db_stats['total_contacts']}\n"
        f"  Hot:  [red]{db_stats['by_temperature'].get('hot', 0)}[/red]\n"
        f"  Warm: [yellow]{db_stats['by_temperature'].get('warm', 0)}[/yellow]\n"
        f"  Cold: [blue]{db_stats['by_temperature'].get('cold', 0)}[/blue]\n"
        f"[bold]Score:[/bold] avg {db_stats['score_avg']}, max {db_stats['score_max']}\n"
        f"[bold]Interactions:[/bold] {db_stats['interactions']}\n"
        f"[bold]Opportunities:[/bold] {db_stats['opportunities']}\n\n"
        f"[bold]Enrollments:[/bold] {len(store)}\n"
        + "\n".join(f"  {status}: {count}" for status, count in by_status.items()),
        title="Stats"
    ))


def main():
    cli()


if __name__ == "__main__":
    main()
