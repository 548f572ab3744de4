"""Church Directory CLI using Typer."""

import logging
from pathlib import Path

import typer
from dotenv import load_dotenv

from church_directory import __version__
from church_directory.cli.enrich import enrich_app
from church_directory.cli.ingest import ingest_app

# Load .env file from current directory or project root
_env_paths = [
    Path.cwd() / ".env",
    Path(__file__).parent.parent.parent / ".env",
]
for _env_path in _env_paths:
    if _env_path.exists():
        load_dotenv(_env_path)
        break

app = typer.Typer(
    name="church-directory",
    help="Church Directory - church ingestion, deduplication and AI enrichment",
    add_completion=False,
)
app.add_typer(ingest_app, name="ingest")
app.add_typer(enrich_app, name="enrich")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _check_ai_config() -> None:
    """Check and display AI configuration status."""
    from church_directory.config import get_settings

    settings = get_settings()
    if settings.anthropic_api_key:
        typer.echo("  AI Provider: Anthropic (configured)")
    elif settings.openai_api_key:
        typer.echo("  AI Provider: OpenAI (configured)")
    else:
        typer.echo("  AI Provider: Not configured (enrichment disabled)")
        typer.echo("  Tip: Set ANTHROPIC_API_KEY or OPENAI_API_KEY in .env file to enable enrichment")


@app.command()
def run(
    host: str = typer.Option("127.0.0.1", "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(
        False, "--reload", "-r", help="Enable auto-reload for development"
    ),
) -> None:
    """Start the admin API server."""
    import uvicorn

    typer.echo(f"Starting Church Directory admin API on http://{host}:{port}")
    _check_ai_config()
    typer.echo("Press Ctrl+C to stop the server")
    typer.echo("")

    uvicorn.run(
        "church_directory.web.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


@app.command()
def init_db() -> None:
    """Initialize the database (create tables)."""
    from church_directory.db.engine import init_db as db_init

    typer.echo("Initializing database...")
    db_init()
    typer.echo("Database initialized successfully!")


@app.command()
def version() -> None:
    """Show the Church Directory version."""
    typer.echo(f"Church Directory v{__version__}")


@app.command()
def check_config() -> None:
    """Check the current configuration status."""
    from church_directory.config import get_settings
    from church_directory.providers.manager import ProviderManager

    typer.echo("Church Directory Configuration")
    typer.echo("=" * 40)

    # Check .env file
    env_found = False
    for _env_path in _env_paths:
        if _env_path.exists():
            typer.echo(f"  .env file: {_env_path}")
            env_found = True
            break
    if not env_found:
        typer.echo("  .env file: Not found")

    settings = get_settings()
    typer.echo(f"  Admin API key: {'set' if settings.admin_api_key else 'NOT SET (admin API disabled)'}")

    manager = ProviderManager.from_settings(settings)
    available = manager.list_available()
    typer.echo(f"  Providers: {', '.join(available) or 'none'} (default: {manager.default_provider})")
    manager.close()

    _check_ai_config()

    # Check database
    from church_directory.db.engine import get_database_url

    db_url = get_database_url()
    typer.echo(f"  Database: {db_url}")


if __name__ == "__main__":
    app()
