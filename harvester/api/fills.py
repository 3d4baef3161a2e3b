"""Harvested fills API."""

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select

from harvester.api.deps import get_store
from harvester.models.fill import TraderFill
from harvester.services.fill_store import FillStore

router = APIRouter(prefix="/api/fills", tags=["fills"])


@router.get("")
def list_fills(
    address: str,
    coin: str | None = None,
    limit: int = Query(default=100, ge=1, le=2000),
    offset: int = Query(default=0, ge=0),
    store: FillStore = Depends(get_store),
):
    stmt = select(TraderFill).where(TraderFill.address == address).order_by(TraderFill.time.desc())
    if coin is not None:
        stmt = stmt.where(TraderFill.coin == coin)
    stmt = stmt.offset(offset).limit(limit)
    with Session(store.engine) as session:
        return session.exec(stmt).all()


@router.get("/latest")
def latest_fill(address: str, store: FillStore = Depends(get_store)):
    return {"address": address, "latest_time": store.latest_fill_time(address)}
