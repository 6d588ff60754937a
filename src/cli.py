"""Command Line Interface for the Intake-Relay pipeline.

This module provides a CLI using Typer for syncing form exports into the
record store and inspecting what was stored.
"""

import logging
import math
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from src.adapters.sources import get_source
from src.domain.enums import IngestionStatus
from src.domain.hl7.encoder import MessageEncoder, MessageHeader
from src.domain.hl7.segment_layout import split_segments
from src.domain.ports import IngestionError, StorageError
from src.domain.services.record_store import RecordStore
from src.domain.services.row_extractor import RowExtractor, read_records
from src.domain.services.schema_detector import CANONICAL_FIELDS, detect_columns
from src.infrastructure.logging_config import setup_logging
from src.infrastructure.settings import APP_VERSION, settings
from src.main import create_orchestrator, create_storage_adapter

# Initialize Typer app and Rich console
app = typer.Typer(
    name="intake-relay",
    help="Intake-Relay: Clinical Form Intake Pipeline",
    add_completion=False
)
console = Console()

TRIAGE_STYLES = {"P1": "bold red", "P2": "yellow", "P3": "cyan", "P4": "green"}


def open_store() -> RecordStore:
    """Open the configured record store, exiting with code 1 on failure."""
    try:
        return RecordStore(create_storage_adapter())
    except (ValueError, StorageError) as e:
        console.print(f"[red]✗[/red] Failed to open record store: {str(e)}")
        raise typer.Exit(code=1)


@app.command()
def ingest(
    location: str = typer.Argument(..., help="Published sheet URL or CSV file path"),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Fetch timeout in seconds"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Sync every response in a form export into the record store.

    Examples:
        intake-relay ingest responses.csv
        intake-relay ingest "https://docs.google.com/spreadsheets/d/<id>/pub?output=csv"
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        console.print("[dim]Verbose logging enabled[/dim]")

    store = open_store()

    console.print(f"\n[bold blue]{settings.app_name}[/bold blue]")
    console.print(f"[dim]Source:[/dim] {location}")
    console.print(f"[dim]Storage:[/dim] {settings.storage_config.storage_type}")
    console.print()

    try:
        source = get_source(location, timeout=timeout if timeout is not None else settings.fetch_timeout)
        with console.status("[bold green]Syncing responses..."):
            result = create_orchestrator(store).ingest_from(source)
    finally:
        store.storage.close()

    if result.is_failure():
        console.print(f"[red]✗[/red] Error: {result.error}")
        raise typer.Exit(code=1)

    summary = result.value
    summary_table = Table(show_header=False, box=None, padding=(0, 2))
    summary_table.add_row("Ingested:", f"[green]{summary.ingested:,}[/green]")
    summary_table.add_row("Failed:", f"[red]{summary.failed:,}[/red]" if summary.failed else "0")
    summary_table.add_row("Skipped (blank):", f"{summary.skipped:,}")
    summary_table.add_row("Ingestion ID:", summary.ingestion_id)
    console.print(summary_table)

    if summary.failed:
        console.print(f"\n[yellow]⚠[/yellow] {summary.message}")
        raise typer.Exit(code=1)
    console.print(f"\n[green]✓[/green] {summary.message}")


@app.command()
def preview(
    location: str = typer.Argument(..., help="Published sheet URL or CSV file path"),
    rows: int = typer.Option(1, "--rows", "-n", min=0, help="Number of rows to encode"),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Fetch timeout in seconds"),
) -> None:
    """Show the detected column mapping and the wire messages the first rows
    would produce, without writing anything to the store.
    """
    try:
        source = get_source(location, timeout=timeout if timeout is not None else settings.fetch_timeout)
        records = read_records(source.fetch())
        header = next(records, None)
        if header is None or header.is_blank:
            console.print("[red]✗[/red] Source is empty")
            raise typer.Exit(code=1)
        if header.cells is None:
            console.print(f"[red]✗[/red] Unreadable header row: {header.error}")
            raise typer.Exit(code=1)
        column_map = detect_columns(header.cells)
    except IngestionError as e:
        console.print(f"[red]✗[/red] {str(e)}")
        raise typer.Exit(code=1)

    mapping_table = Table(title="Column Mapping", show_header=True, header_style="bold")
    mapping_table.add_column("Field", style="cyan")
    mapping_table.add_column("Column", justify="right")
    mapping_table.add_column("Header")
    for field_name in CANONICAL_FIELDS:
        index = column_map[field_name]
        mapping_table.add_row(
            field_name,
            "-" if index is None else str(index),
            column_map.header_for(field_name) or "[dim]unresolved[/dim]",
        )
    console.print(mapping_table)

    extractor = RowExtractor(column_map)
    encoder = MessageEncoder(header=MessageHeader(**settings.messaging_config.model_dump()))
    shown = 0
    for record in records:
        if shown >= rows:
            break
        try:
            row = extractor.extract(record)
        except IngestionError as e:
            console.print(f"[yellow]⚠[/yellow] Row {record.line_number}: {str(e)}")
            continue
        if row is None:
            continue
        shown += 1
        console.print(f"\n[bold]Row {record.line_number}[/bold] ({row.full_name})")
        for segment in split_segments(encoder.encode(row)):
            console.print(segment.line, markup=False, highlight=False)


@app.command()
def patients() -> None:
    """List stored patients."""
    store = open_store()
    try:
        records = store.list_patients()
    finally:
        store.storage.close()

    table = Table(title=f"Patients ({len(records)})", show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Gender")
    table.add_column("Born")
    table.add_column("Triage", justify="center")
    table.add_column("Version", justify="right")
    table.add_column("Last Updated")
    for patient in records:
        triage_style = TRIAGE_STYLES.get(patient.triage_level, "")
        table.add_row(
            patient.id,
            patient.display_name,
            patient.gender.value,
            patient.birth_date.isoformat() if patient.birth_date else "",
            f"[{triage_style}]{patient.triage_level}[/{triage_style}]" if triage_style else patient.triage_level,
            str(patient.version),
            patient.last_updated.strftime("%Y-%m-%d %H:%M:%S"),
        )
    console.print(table)


@app.command()
def patient(
    patient_id: str = typer.Argument(..., help="Patient id, e.g. p-1234"),
    exact: bool = typer.Option(False, "--exact", help="Match encounters/observations by exact reference"),
) -> None:
    """Show one patient with their encounters and observations."""
    store = open_store()
    try:
        record = store.get_patient(patient_id)
        if record is None:
            console.print(f"[red]✗[/red] Patient not found: {patient_id}")
            raise typer.Exit(code=1)
        encounters = store.encounters_for_patient(patient_id, exact=exact)
        observations = store.observations_for_patient(patient_id, exact=exact)
    finally:
        store.storage.close()

    info_table = Table(show_header=False, box=None, padding=(0, 2))
    info_table.add_row("ID:", record.id)
    info_table.add_row("Name:", record.display_name)
    info_table.add_row("Gender:", record.gender.value)
    info_table.add_row("Born:", record.birth_date.isoformat() if record.birth_date else "")
    info_table.add_row("Email:", record.email or "")
    info_table.add_row("Phone:", record.phone or "")
    info_table.add_row("Triage:", record.triage_level)
    info_table.add_row("Version:", str(record.version))
    console.print(info_table)

    encounter_table = Table(title=f"Encounters ({len(encounters)})", show_header=True, header_style="bold")
    encounter_table.add_column("ID", style="cyan")
    encounter_table.add_column("Status")
    encounter_table.add_column("Start")
    encounter_table.add_column("Reason")
    for encounter in encounters:
        encounter_table.add_row(
            encounter.id,
            encounter.status.value,
            encounter.period_start.strftime("%Y-%m-%d %H:%M:%S"),
            encounter.reason_text,
        )
    console.print(encounter_table)

    observation_table = Table(title=f"Observations ({len(observations)})", show_header=True, header_style="bold")
    observation_table.add_column("Code", style="cyan")
    observation_table.add_column("Name")
    observation_table.add_column("Value", justify="right")
    observation_table.add_column("Unit")
    for observation in observations:
        observation_table.add_row(
            observation.code.code,
            observation.code_text,
            "n/a" if math.isnan(observation.value) else f"{observation.value:g}",
            observation.unit,
        )
    console.print(observation_table)


@app.command()
def logs(
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Number of entries to show"),
    failed_only: bool = typer.Option(False, "--failed", help="Only show failed entries"),
) -> None:
    """Show ingestion log entries, most recent first."""
    store = open_store()
    try:
        entries = store.list_logs()
    finally:
        store.storage.close()

    if failed_only:
        entries = [e for e in entries if e.status == IngestionStatus.FAILED]

    table = Table(title="Ingestion Log", show_header=True, header_style="bold")
    table.add_column("Time")
    table.add_column("Source")
    table.add_column("Status")
    table.add_column("Patient")
    table.add_column("Snippet", overflow="fold")
    for entry in entries[:limit]:
        status = "[green]Success[/green]" if entry.status == IngestionStatus.SUCCESS else f"[red]{entry.status.value}[/red]"
        table.add_row(
            entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            entry.source.value,
            status,
            entry.patient_reference or "",
            entry.raw_snippet.splitlines()[0][:80] if entry.raw_snippet else "",
        )
    console.print(table)


@app.command()
def reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete every stored record and log, leaving only the demo patient."""
    if not yes:
        typer.confirm("This deletes all patients, encounters, observations and logs. Continue?", abort=True)

    store = open_store()
    try:
        store.reset()
    finally:
        store.storage.close()
    console.print("[green]✓[/green] Store reset")


@app.callback(invoke_without_command=True)
def main_callback(
    version: bool = typer.Option(False, "--version", help="Show version information")
) -> None:
    """Intake-Relay: Clinical Form Intake Pipeline."""
    setup_logging(use_json=settings.log_json, log_level=settings.log_level)
    if version:
        console.print(f"{settings.app_name} v{APP_VERSION}")
        raise typer.Exit()


if __name__ == "__main__":
    app()
