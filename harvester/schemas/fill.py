"""Pydantic schemas for Hyperliquid fill payloads."""

from pydantic import BaseModel, ConfigDict, Field


class Fill(BaseModel):
    """One row of a userFillsByTime response.

    Numeric fields are kept as the exchange's decimal strings; they are only
    parsed when trades are rebuilt.
    """

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    coin: str
    px: str
    sz: str
    side: str
    time: int
    start_position: str | None = Field(default=None, alias="startPosition")
    dir: str | None = None
    closed_pnl: str | None = Field(default=None, alias="closedPnl")
    hash: str = ""
    oid: int = 0
    crossed: bool = False
    fee: str | None = None
    tid: int
    cloid: str | None = None
    fee_token: str | None = Field(default=None, alias="feeToken")

    def to_row(self, address: str) -> dict:
        """Column values for a trader_fill insert."""
        row = self.model_dump()
        row["address"] = address
        return row
