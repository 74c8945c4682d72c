# maritime_ledger/cli/main.py
"""
CLI for registering vessels and sailors, logging voyages and auditing vessel histories.
"""

import os
import json
import time
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from maritime_ledger.core.canon import canonical_json_str
from maritime_ledger.core.errors import LedgerError
from maritime_ledger.core.principal import validate_principal
from maritime_ledger.core.types import Identity
from maritime_ledger.storage import SQLiteStorage
from maritime_ledger.storage.sqlite import DB_PATH_ENV
from maritime_ledger.system import MaritimeLedger
from maritime_ledger.verify.verifier import LedgerVerifier

CALLER_ENV = "MARITIME_LEDGER_CALLER"

DEFAULT_VESSEL_META = "ipfs://default-vessel"
DEFAULT_SAILOR_META = "ipfs://default-sailor"
DEFAULT_PROOF = "ipfs://proof"
DEFAULT_DESCRIPTION = "No description"

app = typer.Typer(
    name="maritime-ledger",
    help="Register vessels and sailors, log voyages and audit vessel histories",
    add_completion=False,
    no_args_is_help=True,
)
vessel_app = typer.Typer(help="Vessel registry", no_args_is_help=True)
sailor_app = typer.Typer(help="Sailor registry", no_args_is_help=True)
voyage_app = typer.Typer(help="Voyage log", no_args_is_help=True)
app.add_typer(vessel_app, name="vessel")
app.add_typer(sailor_app, name="sailor")
app.add_typer(voyage_app, name="voyage")

console = Console()


def get_db_path(db_flag: Optional[Path] = None) -> Path:
    """Resolve DB path in this order:
    1. --db flag
    2. MARITIME_LEDGER_DB_PATH environment variable
    3. Default: ~/.maritime-ledger/ledger.db
    """
    if db_flag:
        path = db_flag.resolve()
    else:
        env_path = os.environ.get(DB_PATH_ENV)
        if env_path:
            path = Path(env_path).resolve()
        else:
            path = Path.home() / ".maritime-ledger" / "ledger.db"

    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def open_ledger(ctx: typer.Context, db: Optional[Path], must_exist: bool = False) -> MaritimeLedger:
    db_path = get_db_path(db or (ctx.obj or {}).get("db"))

    if must_exist and not db_path.exists():
        console.print(f"[red]Database file not found: {db_path}[/]")
        console.print("[yellow]To get started:[/]")
        console.print("  • Register a vessel first: maritime-ledger vessel register --caller <address>")
        console.print(f"  • Or point to an existing ledger: export {DB_PATH_ENV}=/path/to/ledger.db")
        raise typer.Exit(1)

    try:
        return MaritimeLedger(storage=SQLiteStorage(db_path))
    except (sqlite3.Error, OSError) as e:
        console.print(f"[red]Failed to open database: {str(e)}[/]")
        console.print("[yellow]The file may be corrupted or not a valid SQLite DB.[/]")
        raise typer.Exit(1)


def fail(error: Exception) -> NoReturn:
    console.print(f"[red]Error: {escape(str(error))}[/]")
    raise typer.Exit(1)


def format_timestamp(ts: int) -> str:
    # timestamps are stored as supplied, so they may not fit a datetime
    try:
        return datetime.fromtimestamp(ts, timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
    except (ValueError, OverflowError, OSError):
        return f"{ts} (out of range)"


def print_identity(identity: Identity, title: str) -> None:
    console.print(f"[green]✓ {title}[/]")
    console.print(f"   ID: {identity.id} | Owner: {escape(identity.owner)}")
    console.print(f"   Metadata: {escape(identity.metadata_ref)}")


@app.callback()
def main(
    ctx: typer.Context,
    db: Optional[Path] = typer.Option(
        None,
        "--db",
        help=f"Path to SQLite database (overrides {DB_PATH_ENV} env var)",
    ),
):
    """Manage the maritime voyage ledger."""
    ctx.obj = {"db": db}


@vessel_app.command("register")
def vessel_register(
    ctx: typer.Context,
    caller: str = typer.Option(..., "--caller", envvar=CALLER_ENV, help="Principal submitting the request"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner principal (default: caller)"),
    metadata: str = typer.Option("", "--metadata", "-m", help="Vessel metadata URI, e.g. ipfs://bafy..."),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """Register a vessel and print its new ID."""
    with open_ledger(ctx, db) as ledger:
        try:
            validate_principal(caller)
            vessel = ledger.create_vessel(owner or caller, metadata or DEFAULT_VESSEL_META)
        except LedgerError as e:
            fail(e)
    print_identity(vessel, "Vessel registered")


@sailor_app.command("register")
def sailor_register(
    ctx: typer.Context,
    caller: str = typer.Option(..., "--caller", envvar=CALLER_ENV, help="Principal submitting the request"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Sailor wallet principal (default: caller)"),
    metadata: str = typer.Option("", "--metadata", "-m", help="Sailor metadata URI"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """Register a sailor and print the new ID."""
    with open_ledger(ctx, db) as ledger:
        try:
            validate_principal(caller)
            sailor = ledger.create_sailor(owner or caller, metadata or DEFAULT_SAILOR_META)
        except LedgerError as e:
            fail(e)
    print_identity(sailor, "Sailor registered")


@vessel_app.command("show")
def vessel_show(
    ctx: typer.Context,
    vessel_id: int = typer.Argument(..., help="Vessel ID"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """Show a registered vessel."""
    with open_ledger(ctx, db, must_exist=True) as ledger:
        try:
            vessel = ledger.get_vessel(vessel_id)
        except LedgerError as e:
            fail(e)
    print_identity(vessel, f"Vessel {vessel_id}")


@sailor_app.command("show")
def sailor_show(
    ctx: typer.Context,
    sailor_id: int = typer.Argument(..., help="Sailor ID"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """Show a registered sailor."""
    with open_ledger(ctx, db, must_exist=True) as ledger:
        try:
            sailor = ledger.get_sailor(sailor_id)
        except LedgerError as e:
            fail(e)
    print_identity(sailor, f"Sailor {sailor_id}")


@vessel_app.command("list")
def vessel_list(
    ctx: typer.Context,
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """List registered vessels with voyage counts and last voyage date."""
    with open_ledger(ctx, db, must_exist=True) as ledger:
        vessels = ledger.vessels.list()
        if not vessels:
            console.print("[yellow]No vessels registered yet.[/]")
            return

        table = Table(title="Registered Vessels")
        table.add_column("ID")
        table.add_column("Owner")
        table.add_column("Voyages")
        table.add_column("Last Voyage")

        for vessel in vessels:
            count = ledger.storage.get_voyage_count(vessel.id)
            last_ts = ledger.storage.get_latest_timestamp(vessel.id)
            table.add_row(
                str(vessel.id),
                escape(vessel.owner),
                str(count),
                format_timestamp(last_ts) if last_ts is not None else "—",
            )

    console.print(table)


@voyage_app.command("log")
def voyage_log(
    ctx: typer.Context,
    vessel_id: int = typer.Option(..., "--vessel", help="Vessel ID"),
    sailor_id: int = typer.Option(..., "--sailor", help="Sailor ID"),
    caller: str = typer.Option(..., "--caller", envvar=CALLER_ENV, help="Principal submitting the request"),
    description: str = typer.Option("", "--description", "-d", help="Voyage description"),
    proof: str = typer.Option("", "--proof", help="GPS/log proof URI"),
    timestamp: Optional[int] = typer.Option(None, "--timestamp", help="Seconds since epoch (default: now)"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """Log a voyage. The caller must own the vessel."""
    ts = timestamp if timestamp is not None else int(time.time())

    with open_ledger(ctx, db, must_exist=True) as ledger:
        try:
            entry = ledger.log_voyage(
                caller,
                vessel_id,
                sailor_id,
                proof or DEFAULT_PROOF,
                description or DEFAULT_DESCRIPTION,
                ts,
            )
        except (LedgerError, ValueError) as e:
            fail(e)

    console.print(f"[green]✓ Voyage logged successfully at timestamp {entry.timestamp}.[/]")
    console.print(f"   Vessel ID: {entry.vessel_id} | Sailor ID: {entry.sailor_id} | Entry #{entry.sequence + 1}")


@app.command()
def history(
    ctx: typer.Context,
    vessel_id: int = typer.Argument(..., help="Vessel ID to audit"),
    strict: bool = typer.Option(False, "--strict", help="Fail if the vessel was never registered"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """Read a vessel's voyage history, oldest first."""
    with open_ledger(ctx, db, must_exist=True) as ledger:
        try:
            entries = ledger.get_vessel_history(vessel_id, strict=strict)
        except LedgerError as e:
            fail(e)

    if not entries:
        console.print("[yellow]No voyages found for this vessel.[/]")
        return

    console.print(f"\nFound {len(entries)} voyage(s):")
    for entry in entries:
        console.print(f"\n   \\[Voyage #{entry.sequence + 1}]")
        console.print(f"   Date:        {format_timestamp(entry.timestamp)}")
        console.print(f"   Sailor ID:   {entry.sailor_id}")
        console.print(f"   Description: {escape(entry.description)}")
        console.print(f"   Proof Hash:  {escape(entry.evidence_ref)}")


@app.command()
def verify(
    ctx: typer.Context,
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """Verify the integrity of the stored ledger (ids, references, positions, events)."""
    db_path = get_db_path(db or (ctx.obj or {}).get("db"))

    if not db_path.exists():
        console.print(f"[red]Database file not found: {db_path}[/]")
        raise typer.Exit(1)

    try:
        storage = SQLiteStorage(db_path)
    except (sqlite3.Error, OSError) as e:
        console.print(f"[red]Failed to open database: {str(e)}[/]")
        raise typer.Exit(1)

    with storage:
        result = LedgerVerifier().verify_from_storage(storage)

    if result.is_valid:
        console.print("[green]✓ Ledger is valid[/]")
        console.print(f"  {result.message}")
    else:
        console.print("[red]✗ Ledger verification failed[/]")
        for failure in result.failures:
            console.print(f"  • \\[{failure.index}] {failure.category}: {escape(failure.message)}")
        raise typer.Exit(1)


@app.command()
def export(
    ctx: typer.Context,
    vessel_id: int = typer.Argument(..., help="Vessel ID to export"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file (default: vessel-<id>.jsonl)"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """Export a vessel history as JSONL (one voyage per line)."""
    with open_ledger(ctx, db, must_exist=True) as ledger:
        entries = ledger.get_vessel_history(vessel_id)

    if not entries:
        console.print(f"[yellow]No voyages found for vessel {vessel_id}[/]")
        raise typer.Exit(0)

    out_path = output or Path(f"vessel-{vessel_id}.jsonl")
    with open(out_path, "w", encoding="utf-8") as f:
        for entry in entries:
            f.write(canonical_json_str(entry.to_dict()))
            f.write("\n")

    console.print(f"[green]Exported {len(entries)} voyages to {out_path}[/]")
    console.print("Format: JSONL — one voyage per line")


@app.command()
def events(
    ctx: typer.Context,
    name: Optional[str] = typer.Option(None, "--name", help="Only VesselRegistered, SailorRegistered or VoyageLogged"),
    since: int = typer.Option(0, "--since", help="Only events after this sequence number"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """List recorded ledger events."""
    with open_ledger(ctx, db, must_exist=True) as ledger:
        found = ledger.query_events(name=name, since=since)

    if not found:
        console.print("[yellow]No events recorded.[/]")
        return

    table = Table(title="Ledger Events")
    table.add_column("Seq")
    table.add_column("Event")
    table.add_column("Payload")
    for event in found:
        table.add_row(str(event.seq), event.name, escape(json.dumps(dict(event.payload), sort_keys=True)))

    console.print(table)


if __name__ == "__main__":
    app()
