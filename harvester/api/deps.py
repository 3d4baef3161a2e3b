"""Shared API dependencies."""

from fastapi import Depends
from sqlalchemy.engine import Engine

from harvester.database import engine
from harvester.services.fill_store import FillStore


def get_engine() -> Engine:
    return engine


def get_store(db_engine: Engine = Depends(get_engine)) -> FillStore:
    """FillStore bound to the application engine (overridable in tests)."""
    return FillStore(db_engine)
