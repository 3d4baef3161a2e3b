"""Trader model — a tracked account whose fills are harvested."""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


class Trader(SQLModel, table=True):
    __tablename__ = "trader"

    id: int | None = Field(default=None, primary_key=True)
    address: str = Field(max_length=42, unique=True, index=True)
    display_name: str = ""
    account_value: str | None = None  # decimal string as reported by the leaderboard
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
