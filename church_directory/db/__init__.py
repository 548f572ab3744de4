"""Database initialization and persistence layer."""

from church_directory.db.engine import (
    create_db_engine,
    get_database_url,
    get_engine,
    get_session,
    get_session_factory,
    init_db,
    reset_engine,
)
from church_directory.db.models import (
    Base,
    ChurchDB,
    EnrichmentQueueDB,
)
from church_directory.db.repositories import (
    ChurchRepository,
    EnrichmentQueueRepository,
)

__all__ = [
    # Engine
    "create_db_engine",
    "get_database_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_db",
    "reset_engine",
    # Models
    "Base",
    "ChurchDB",
    "EnrichmentQueueDB",
    # Repositories
    "ChurchRepository",
    "EnrichmentQueueRepository",
]
