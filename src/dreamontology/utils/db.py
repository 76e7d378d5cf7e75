import time
from typing import Optional

from sqlalchemy import event, make_url
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from dreamontology.config import Settings
from dreamontology.core.logging import get_logger

logger = get_logger(__name__)


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def enable_sqlite_unicode_lower(engine: Engine) -> Engine:
    """
    Replace SQLite's ASCII-only lower() on every new connection, so
    case-insensitive search folds accented text like str.lower() and Postgres do.
    """
    @event.listens_for(engine, "connect")
    def _register_lower(dbapi_connection, connection_record):
        dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)

    return engine


def create_db_engine(database_url: str, settings: Optional[Settings] = None) -> Engine:
    """
    Build the engine (and its connection pool) for `database_url`.

    Pool behaviour:
    - pool_size/max_overflow bound the number of checked-out connections
    - pool_timeout bounds how long a caller waits for one; exhaustion raises
      instead of hanging
    - pool_pre_ping drops stale connections before use
    """
    settings = settings or Settings()

    if database_url.startswith("sqlite"):
        # Local/dev only. In-memory SQLite must share one connection.
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
        engine = enable_sqlite_unicode_lower(create_engine(database_url, echo=False, **kwargs))
        logger.info("database_engine_configured", dialect="sqlite")
        return engine

    url = make_url(database_url)
    connect_args = {}
    if url.get_backend_name() == "postgresql":
        if url.drivername == "postgresql":
            # psycopg2 is the installed driver
            url = url.set(drivername="postgresql+psycopg2")
        connect_args["connect_timeout"] = max(1, int(settings.db_pool_timeout))

    engine = create_engine(
        url,
        echo=False,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_recycle=settings.db_pool_recycle,
        connect_args=connect_args,
    )

    logger.info(
        "database_engine_configured",
        dialect=engine.dialect.name,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=settings.db_pool_pre_ping,
    )
    return engine


def init_db(engine: Engine, max_retries: int = 5, retry_delay: float = 2.0) -> None:
    """
    Creates the `symbols` and `symbol_sets` tables and their category indexes
    if they do not exist yet. Safe to run repeatedly.

    Retries while the database is still coming up (docker-compose start order).
    """
    # Register tables on the metadata
    from dreamontology.schema import tables  # noqa: F401

    for i in range(max_retries):
        try:
            logger.info("connecting_to_database", attempt=i + 1)
            SQLModel.metadata.create_all(engine)
            logger.info("database_initialized", status="success")
            return
        except Exception as e:
            logger.error("database_connection_failed", error=str(e), attempt=i + 1)
            if i < max_retries - 1:
                logger.info("retrying_connection", delay=retry_delay)
                time.sleep(retry_delay)
            else:
                logger.critical("initialization_failed")
                raise
