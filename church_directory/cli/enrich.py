"""
Enrichment CLI Commands
=======================

CLI commands for working through the AI enrichment queue.
"""

from __future__ import annotations

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from church_directory.config import get_settings
from church_directory.core.schema import EnrichmentResult
from church_directory.db.engine import get_session, init_db
from church_directory.db.repositories import EnrichmentQueueRepository
from church_directory.services.ai.client import select_ai_client
from church_directory.services.enrichment import ChurchEnrichmentService, EnrichmentConfig
from church_directory.services.website import WebsiteFetcher

console = Console()
enrich_app = typer.Typer(help="AI enrichment commands")


def _build_service(session) -> tuple[ChurchEnrichmentService, WebsiteFetcher]:
    settings = get_settings()
    ai_client = select_ai_client(settings)
    if ai_client is None:
        rprint("[red]Error:[/red] No AI provider configured")
        rprint("Set ANTHROPIC_API_KEY or OPENAI_API_KEY in .env")
        raise typer.Exit(1)

    fetcher = WebsiteFetcher(
        contact_email=settings.contact_email,
        timeout=settings.website_timeout_seconds,
    )
    service = ChurchEnrichmentService(
        session,
        ai_client,
        fetcher=fetcher,
        config=EnrichmentConfig.from_settings(settings),
    )
    return service, fetcher


def _display_results(results: list[EnrichmentResult]) -> None:
    table = Table(title="Enrichment Results")
    table.add_column("Church ID", style="dim")
    table.add_column("Status")
    table.add_column("Fields / Error")

    for r in results:
        if r.success:
            table.add_row(r.church_id, "[green]completed[/green]", ", ".join(r.enriched_fields) or "-")
        else:
            table.add_row(r.church_id, "[red]failed[/red]", r.error or "")

    console.print(table)


@enrich_app.command("run")
def run_queue(
    batch_size: int = typer.Option(10, "--batch-size", "-b", help="Rows to process (max 50)"),
) -> None:
    """
    Process the next batch of pending churches.

    Examples:
        church-directory enrich run
        church-directory enrich run --batch-size 25
    """
    init_db()
    with get_session() as session:
        service, fetcher = _build_service(session)
        try:
            with console.status("[bold blue]Enriching...[/bold blue]"):
                results = service.process_queue(batch_size)
        finally:
            fetcher.close()

    if not results:
        rprint("[yellow]No pending churches in the queue[/yellow]")
        return

    _display_results(results)
    successful = sum(1 for r in results if r.success)
    rprint(f"\nProcessed {len(results)}: [green]{successful} ok[/green], [red]{len(results) - successful} failed[/red]")


@enrich_app.command("church")
def enrich_one(
    church_id: str = typer.Argument(..., help="Church ID"),
) -> None:
    """
    Enrich a single church by ID.

    Examples:
        church-directory enrich church 3f1c...
    """
    init_db()
    with get_session() as session:
        service, fetcher = _build_service(session)
        try:
            result = service.enrich_church(church_id)
        finally:
            fetcher.close()

    _display_results([result])
    if not result.success:
        raise typer.Exit(1)


@enrich_app.command("stats")
def queue_stats() -> None:
    """
    Show enrichment queue counts.

    Examples:
        church-directory enrich stats
    """
    init_db()
    with get_session() as session:
        stats = EnrichmentQueueRepository(session).stats()

    table = Table(title="Enrichment Queue")
    table.add_column("Status", style="bold")
    table.add_column("Count", justify="right")
    table.add_row("pending", str(stats.pending))
    table.add_row("processing", str(stats.processing))
    table.add_row("completed", str(stats.completed))
    table.add_row("failed", str(stats.failed))
    console.print(table)


@enrich_app.command("retry-failed")
def retry_failed(
    limit: int = typer.Option(100, "--limit", "-l", help="Maximum rows to reset"),
) -> None:
    """
    Move failed churches back to pending.

    Examples:
        church-directory enrich retry-failed --limit 20
    """
    init_db()
    with get_session() as session:
        count = EnrichmentQueueRepository(session).retry_failed(limit)
        session.commit()

    rprint(f"[green]Reset {count} failed rows to pending[/green]")
