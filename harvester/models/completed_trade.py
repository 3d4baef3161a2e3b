"""CompletedTrade model — a round trip rebuilt from an address's fills.

Rows are derived data: every rebuild deletes and reinserts all trades of an
address, so nothing else should write to this table.
"""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column
from sqlmodel import SQLModel, Field


class CompletedTrade(SQLModel, table=True):
    __tablename__ = "completed_trade"

    id: int | None = Field(default=None, primary_key=True)
    address: str = Field(max_length=42, index=True)
    coin: str = Field(max_length=20)
    margin_mode: str = Field(max_length=20)  # "isolated" / "cross"
    direction: str = Field(max_length=10)  # "long" / "short"
    size: float  # peak position size
    entry_price: float
    close_price: float
    start_time: int = Field(sa_column=Column(BigInteger, nullable=False))  # ms
    end_time: int = Field(sa_column=Column(BigInteger, nullable=False))  # ms
    total_fee: float = 0.0
    pnl: float = 0.0  # sum of closedPnl
    fill_count: int = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
