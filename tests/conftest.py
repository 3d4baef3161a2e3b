"""Test configuration and fixtures."""

import os

# Must be set before harvester.config is imported anywhere
os.environ["HC_DATABASE_URL"] = "sqlite://"
os.environ.setdefault("HC_HARVEST_INTERVAL_MINUTES", "0")

import pytest
from sqlmodel import SQLModel

import harvester.models  # noqa: F401  (registers tables)
from harvester.database import build_engine
from harvester.models.fill import TraderFill
from harvester.schemas.fill import Fill
from harvester.services.fill_store import FillStore

ADDRESS = "0x1111111111111111111111111111111111111111"


@pytest.fixture(name="engine")
def engine_fixture():
    """Fresh in-memory SQLite database per test."""
    engine = build_engine("sqlite://")
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="store")
def store_fixture(engine):
    return FillStore(engine)


def make_fill(tid: int, time: int, coin: str = "BTC", **overrides) -> Fill:
    """API-shaped fill with sensible defaults."""
    data = {
        "coin": coin,
        "px": "100.0",
        "sz": "1.0",
        "side": "B",
        "time": time,
        "startPosition": "0.0",
        "dir": "Open Long",
        "closedPnl": "0.0",
        "hash": f"0x{tid:064x}",
        "oid": tid * 10,
        "crossed": False,
        "fee": "0.01",
        "tid": tid,
        "cloid": None,
        "feeToken": "USDC",
    }
    data.update(overrides)
    return Fill.model_validate(data)


def make_trader_fill(tid: int, time: int, dir: str, px: str, sz: str, coin: str = "BTC", **overrides) -> TraderFill:
    """Stored-fill row for reconstruction tests."""
    values = dict(
        address=ADDRESS,
        coin=coin,
        px=px,
        sz=sz,
        side="B" if dir in ("Open Long", "Close Short") else "A",
        time=time,
        start_position="0",
        dir=dir,
        closed_pnl="0",
        hash=f"0x{tid:064x}",
        oid=tid,
        crossed=False,
        fee="0",
        tid=tid,
        fee_token="USDC",
    )
    values.update(overrides)
    return TraderFill(**values)
