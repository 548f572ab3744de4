"""
Ingestion CLI Commands
======================

CLI commands for importing churches from providers into the directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import typer
import yaml
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from church_directory.config import get_settings
from church_directory.core.schema import BatchLocation, IngestionOptions, IngestionResult, SearchParams
from church_directory.db.engine import get_session, init_db
from church_directory.ingestion.service import ChurchIngestionService, IngestionConfig
from church_directory.providers.base import ProviderError
from church_directory.providers.manager import ProviderManager

console = Console()
ingest_app = typer.Typer(help="Church import commands")


def load_locations(path: Path) -> list[BatchLocation]:
    """
    Load batch locations from a YAML file.

    The file is either a list of `{city, state, radius_miles?}` entries or a
    mapping with such a list under `locations`.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file has no usable locations.
    """
    path = Path(path).expanduser().resolve()
    if not path.exists():
        raise FileNotFoundError(f"Locations file not found: {path}")

    with open(path) as f:
        data: Any = yaml.safe_load(f)

    if isinstance(data, dict):
        data = data.get("locations")
    if not isinstance(data, list) or not data:
        raise ValueError(f"No locations found in {path}")

    return [BatchLocation.model_validate(entry) for entry in data]


def _manager() -> ProviderManager:
    return ProviderManager.from_settings(get_settings())


def _display_result(result: IngestionResult) -> None:
    """Print an import result summary and any per-record errors."""
    rprint("\n[bold]Import Result:[/bold]")
    rprint(f"  Imported: [green]{result.imported}[/green]")
    if result.updated:
        rprint(f"  Updated: {result.updated}")
    rprint(f"  Skipped: {result.skipped}")
    if result.errors:
        rprint(f"  Errors: [red]{result.errors}[/red]")
        for failure in result.error_details[:10]:
            rprint(f"    • {failure.name}: {failure.error}")
        if len(result.error_details) > 10:
            rprint(f"    ... and {len(result.error_details) - 10} more")

    if result.churches:
        table = Table(title="Churches")
        table.add_column("Name", style="bold")
        table.add_column("Slug")
        table.add_column("ID", style="dim")
        for church in result.churches[:25]:
            table.add_row(church.name, church.slug, church.id)
        console.print(table)
        if len(result.churches) > 25:
            rprint(f"[dim]... and {len(result.churches) - 25} more[/dim]")


@ingest_app.command("import")
def import_location(
    city: Optional[str] = typer.Option(None, "--city", "-c", help="City name"),
    state: Optional[str] = typer.Option(None, "--state", "-s", help="State name or abbreviation"),
    lat: Optional[float] = typer.Option(None, "--lat", help="Latitude"),
    lng: Optional[float] = typer.Option(None, "--lng", help="Longitude"),
    radius: Optional[float] = typer.Option(None, "--radius", "-r", help="Radius in miles"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Provider name"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Maximum records to fetch"),
    update_existing: bool = typer.Option(False, "--update-existing", help="Update churches already stored"),
    no_queue: bool = typer.Option(False, "--no-queue", help="Do not queue new churches for enrichment"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be imported without writing"),
) -> None:
    """
    Import churches near a city/state or coordinates.

    Examples:
        church-directory ingest import --city Austin --state TX
        church-directory ingest import --lat 30.27 --lng -97.74 --radius 10 -p openstreetmap
    """
    params = SearchParams(city=city, state=state, lat=lat, lng=lng, radius_miles=radius, limit=limit)
    if not params.has_city_state and not params.has_coordinates:
        rprint("[red]Error:[/red] Must provide either --city/--state or --lat/--lng")
        raise typer.Exit(1)

    options = IngestionOptions(
        update_existing=update_existing,
        queue_enrichment=not no_queue,
        dry_run=dry_run,
    )

    settings = get_settings()
    manager = _manager()
    init_db()

    rprint(f"\n[bold]Importing churches for:[/bold] {params.describe()}")
    rprint(f"  Provider: {provider or manager.default_provider}")
    if dry_run:
        rprint("  [yellow]Dry run: nothing will be written[/yellow]")

    try:
        with get_session() as session:
            service = ChurchIngestionService(session, manager, IngestionConfig.from_settings(settings))
            with console.status("[bold blue]Importing...[/bold blue]"):
                result = service.import_from_provider(params, provider, options)
    except ProviderError as e:
        rprint(f"\n[red]Error:[/red] {e}")
        rprint(f"Available providers: {', '.join(manager.list_available()) or 'none'}")
        raise typer.Exit(1)
    finally:
        manager.close()

    _display_result(result)


@ingest_app.command("batch")
def import_batch(
    locations_file: Path = typer.Argument(..., help="YAML file listing city/state locations"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Provider name"),
    limit: int = typer.Option(50, "--limit", "-l", help="Maximum records per location"),
    delay: Optional[float] = typer.Option(None, "--delay", help="Seconds to wait between locations"),
    no_queue: bool = typer.Option(False, "--no-queue", help="Do not queue new churches for enrichment"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be imported without writing"),
) -> None:
    """
    Import churches for every location in a YAML file.

    Examples:
        church-directory ingest batch config/locations.example.yaml
        church-directory ingest batch cities.yaml --provider openstreetmap --dry-run
    """
    try:
        locations = load_locations(locations_file)
    except (FileNotFoundError, ValueError) as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    settings = get_settings()
    manager = _manager()
    init_db()

    rprint(f"\n[bold]Batch import of {len(locations)} locations[/bold]")
    try:
        with get_session() as session:
            service = ChurchIngestionService(session, manager, IngestionConfig.from_settings(settings))
            with console.status("[bold blue]Importing...[/bold blue]"):
                batch = service.import_batch(
                    locations,
                    provider=provider,
                    limit_per_location=limit,
                    options=IngestionOptions(queue_enrichment=not no_queue, dry_run=dry_run),
                    delay_seconds=delay,
                )
    except (ProviderError, ValueError) as e:
        rprint(f"\n[red]Error:[/red] {e}")
        raise typer.Exit(1)
    finally:
        manager.close()

    table = Table(title="Batch Import")
    table.add_column("Location", style="bold")
    table.add_column("Imported", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Errors", justify="right")
    for loc in batch.results:
        if loc.success and loc.result:
            table.add_row(loc.location, str(loc.result.imported), str(loc.result.skipped), str(loc.result.errors))
        else:
            table.add_row(loc.location, "-", "-", f"[red]{loc.error}[/red]")
    console.print(table)

    rprint(
        f"\nTotal: [green]{batch.total_imported}[/green] imported, "
        f"{batch.total_skipped} skipped, {batch.total_errors} errors"
    )


@ingest_app.command("single")
def import_single(
    source_id: str = typer.Argument(..., help="Provider id, e.g. a Google place id or 'node/123'"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Provider name"),
    no_queue: bool = typer.Option(False, "--no-queue", help="Do not queue for enrichment"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Fetch without writing"),
) -> None:
    """
    Import (or refresh) one church by its provider id.

    Examples:
        church-directory ingest single ChIJN1t_tDeuEmsRUsoyG83frY4
        church-directory ingest single node/123456 -p openstreetmap
    """
    manager = _manager()
    init_db()

    try:
        with get_session() as session:
            service = ChurchIngestionService(session, manager)
            result = service.import_single_church(
                source_id,
                provider,
                IngestionOptions(queue_enrichment=not no_queue, dry_run=dry_run),
            )
    except ProviderError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    finally:
        manager.close()

    if not result.success:
        rprint(f"[red]Error:[/red] {result.error}")
        raise typer.Exit(1)

    church = result.church
    rprint(f"[green]Imported:[/green] {church.name} ({church.slug}) [dim]{church.id}[/dim]")


@ingest_app.command("providers")
def list_providers() -> None:
    """
    List configured church data providers.

    Examples:
        church-directory ingest providers
    """
    manager = _manager()
    available = manager.list_available()

    if not available:
        rprint("[yellow]No providers configured[/yellow]")
        rprint("\nSet GOOGLE_PLACES_API_KEY or OSM_USER_AGENT in .env")
        return

    table = Table(title="Church Data Providers")
    table.add_column("Name", style="bold")
    table.add_column("Default")
    table.add_column("Lookup by id")

    for name in available:
        info = manager.get_provider(name).get_info()
        default = "[green]yes[/green]" if name == manager.default_provider else ""
        table.add_row(name, default, "yes" if info.get("supports_lookup") else "no")

    console.print(table)
    manager.close()


@ingest_app.command("stats")
def show_stats() -> None:
    """
    Show listing counts by source and pending enrichment.

    Examples:
        church-directory ingest stats
    """
    manager = _manager()
    init_db()

    with get_session() as session:
        stats = ChurchIngestionService(session, manager).get_stats()
    manager.close()

    rprint("\n[bold]Directory Statistics[/bold]")
    rprint(f"  Total churches: {stats['total_churches']}")
    rprint(f"  Pending enrichment: {stats['pending_enrichment']}")

    by_source: dict[str, int] = stats["by_source"]  # type: ignore[assignment]
    if by_source:
        table = Table(title="By Source")
        table.add_column("Source", style="bold")
        table.add_column("Count", justify="right")
        for source, count in sorted(by_source.items()):
            table.add_row(source, str(count))
        console.print(table)
