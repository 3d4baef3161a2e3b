"""SQLModel database engine and session management."""

import logging

from sqlalchemy import text
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from harvester.config import settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str):
    """Create an engine; SQLite needs check_same_thread=False for the worker pool."""
    connect_args = {}
    kwargs = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_size"] = 25
        kwargs["max_overflow"] = 10
        kwargs["pool_pre_ping"] = True

    return create_engine(database_url, echo=False, connect_args=connect_args, **kwargs)


engine = build_engine(settings.database_url)


def create_db_and_tables():
    """Create all tables. Called on startup."""
    import harvester.models  # noqa: F401  (registers tables on SQLModel.metadata)

    SQLModel.metadata.create_all(engine)


def check_connection():
    """Fail fast if the database is unreachable."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    logger.info(f"[db] connected ({engine.dialect.name})")


def get_session() -> Session:
    """Dependency that yields a database session."""
    with Session(engine) as session:
        yield session
