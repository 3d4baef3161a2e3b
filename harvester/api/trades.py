"""Completed trade API."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session, select

from harvester.api.deps import get_store
from harvester.engine.trades import rebuild_completed_trades
from harvester.models.completed_trade import CompletedTrade
from harvester.services.fill_store import FillStore

router = APIRouter(prefix="/api/trades", tags=["trades"])


@router.get("")
def list_trades(
    address: str | None = None,
    coin: str | None = None,
    limit: int = Query(default=50, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    store: FillStore = Depends(get_store),
):
    stmt = select(CompletedTrade).order_by(CompletedTrade.end_time.desc())
    if address is not None:
        stmt = stmt.where(CompletedTrade.address == address)
    if coin is not None:
        stmt = stmt.where(CompletedTrade.coin == coin)
    stmt = stmt.offset(offset).limit(limit)
    with Session(store.engine) as session:
        return session.exec(stmt).all()


@router.get("/{trade_id}")
def get_trade(trade_id: int, store: FillStore = Depends(get_store)):
    with Session(store.engine) as session:
        trade = session.get(CompletedTrade, trade_id)
    if not trade:
        raise HTTPException(status_code=404, detail="Trade not found")
    return trade


@router.post("/{address}/rebuild")
def rebuild_trades(address: str, store: FillStore = Depends(get_store)):
    """Recompute an address's completed trades from its stored fills."""
    count = rebuild_completed_trades(store, address)
    return {"address": address, "trades": count}
