"""
Engine and session setup for the suburb cache database.

The cache is a single table, so the usual deployment is a local SQLite file
next to the data directory. Any SQLAlchemy URL works via DATABASE_URL.
"""

from pathlib import Path

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session, DeclarativeBase
from sqlalchemy.pool import StaticPool

from nbn_lookup.config import settings
from nbn_lookup.logging_config import get_logger
from nbn_lookup.exceptions import DatabaseConnectionError

logger = get_logger(__name__)

# Milliseconds SQLite waits on a locked file before failing a cache write
SQLITE_BUSY_TIMEOUT_MS = 5000


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


def sqlite_file(url: str) -> Path | None:
    """Filesystem path of a file-backed SQLite URL, or None for anything else."""
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return None
    database = parsed.database
    if not database or database == ":memory:" or database.startswith("file:"):
        return None
    return Path(database)


def _redact(url: str) -> str:
    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return "<unparseable url>"


def create_db_engine(database_url: str | None = None) -> Engine:
    """
    Create and verify the cache database engine.

    SQLite URLs share one connection (the service touches the cache only
    from its event loop); file databases get their parent directory created
    and run in WAL mode.

    Args:
        database_url: Override the URL from settings. Tests pass in-memory URLs.

    Raises:
        DatabaseConnectionError: If the URL is invalid or the database
            does not answer.
    """
    url = database_url or settings.database.url

    try:
        backend = make_url(url).get_backend_name()
        path = sqlite_file(url)
        if backend == "sqlite":
            if path is not None:
                path.parent.mkdir(parents=True, exist_ok=True)
            engine = create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=False,
            )

            @event.listens_for(engine, "connect")
            def _set_sqlite_pragma(dbapi_conn, connection_record):
                cursor = dbapi_conn.cursor()
                if path is not None:
                    cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
                cursor.close()
        else:
            engine = create_engine(url, pool_pre_ping=True, echo=False)

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    except (SQLAlchemyError, OSError) as e:
        raise DatabaseConnectionError(
            message=f"Failed to open cache database: {e}",
            details={"url": _redact(url)},
        ) from e

    logger.info("Cache database ready: %s", path if path is not None else backend)
    return engine


def create_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    """
    Session factory for cache access.

    Rows are converted to plain entries right after loading, so objects are
    not expired on commit.
    """
    if engine is None:
        engine = create_db_engine()
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine | None = None) -> Engine:
    """Create the cache table if missing and return the engine."""
    if engine is None:
        engine = create_db_engine()

    # Register the models with Base.metadata
    import nbn_lookup.data.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.debug("Cache schema ensured")
    return engine


def open_cache_database(database_url: str | None = None) -> sessionmaker[Session]:
    """Engine + schema + session factory in one step, as the service needs them."""
    return create_session_factory(init_db(create_db_engine(database_url)))
