"""TraderFill model — one execution, stored verbatim from userFillsByTime."""

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column
from sqlmodel import SQLModel, Field


class TraderFill(SQLModel, table=True):
    __tablename__ = "trader_fill"

    id: int | None = Field(default=None, primary_key=True)
    address: str = Field(max_length=42, index=True)
    coin: str = Field(max_length=20)
    # Numeric fields stay as the exchange's decimal strings
    px: str
    sz: str
    side: str = Field(max_length=2)  # "A" (ask) / "B" (bid)
    time: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))  # ms
    start_position: str | None = None
    dir: str | None = Field(default=None, max_length=20)  # "Open Long", "Close Short", ...
    closed_pnl: str | None = None
    hash: str = Field(max_length=66)
    oid: int = Field(sa_column=Column(BigInteger, nullable=False))
    crossed: bool = False
    fee: str | None = None
    tid: int = Field(sa_column=Column(BigInteger, nullable=False, unique=True))
    cloid: str | None = Field(default=None, max_length=66)
    fee_token: str | None = Field(default=None, max_length=10)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
