"""FastAPI application factory for Church Directory."""

from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from church_directory import __version__
from church_directory.db.engine import init_db

# Load .env file from project root
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Church Directory",
        description="Admin API for church ingestion and AI enrichment",
        version=__version__,
    )

    # Initialize database tables
    init_db()

    # Include routers (import here to avoid circular imports)
    from church_directory.web.routes import admin

    app.include_router(admin.router)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
