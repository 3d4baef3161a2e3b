"""Fill and completed-trade persistence.

All writes that can see the same natural key twice (re-harvested fills) are
insert-or-ignore, so replaying a harvest never raises and never duplicates.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, Sequence

from sqlalchemy import delete, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlmodel import Session, select

from harvester.models.completed_trade import CompletedTrade
from harvester.models.fill import TraderFill
from harvester.models.proxy import ProxyPool
from harvester.models.trader import Trader
from harvester.schemas.fill import Fill
from harvester.utils.constants import PROXY_ENABLED

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class FillStore:
    def __init__(self, engine):
        self.engine = engine
        insert = _DIALECT_INSERTS.get(engine.dialect.name)
        if insert is None:
            raise ValueError(f"Unsupported database dialect for upserts: {engine.dialect.name}")
        self._insert = insert

    # -- addresses / proxies -------------------------------------------------

    def load_tracked_addresses(self) -> list[str]:
        with Session(self.engine) as session:
            return list(session.exec(select(Trader.address).order_by(Trader.id)).all())

    def load_enabled_proxies(self) -> list[ProxyPool]:
        with Session(self.engine) as session:
            stmt = select(ProxyPool).where(ProxyPool.status == PROXY_ENABLED).order_by(ProxyPool.id)
            return list(session.exec(stmt).all())

    def add_trader(self, address: str, display_name: str = "") -> bool:
        """Track an address. Returns False if it was already tracked."""
        with Session(self.engine) as session:
            stmt = self._insert(Trader).values(
                address=address,
                display_name=display_name,
                created_at=datetime.now(timezone.utc),
                updated_at=datetime.now(timezone.utc),
            ).on_conflict_do_nothing(index_elements=["address"])
            result = session.exec(stmt)
            session.commit()
            return result.rowcount > 0

    def add_proxy(self, host: str, port: str, username: str = "", password: str = "", remark: str = "") -> ProxyPool:
        proxy = ProxyPool(host=host, port=port, username=username, password=password, remark=remark)
        with Session(self.engine) as session:
            session.add(proxy)
            session.commit()
            session.refresh(proxy)
        return proxy

    # -- fills ---------------------------------------------------------------

    def latest_fill_time(self, address: str) -> int | None:
        """Timestamp (ms) of the newest stored fill for address, or None."""
        with Session(self.engine) as session:
            return session.exec(
                select(func.max(TraderFill.time)).where(TraderFill.address == address)
            ).one()

    def upsert_fills_ignoring_duplicates(self, address: str, fills: Sequence[Fill], batch_size: int = 500) -> int:
        """Insert fills in batches, skipping any tid already stored.

        Returns the number of rows actually inserted. Batches go oldest first and
        a failing batch is logged and re-raised, so no later batch is written
        and the newest stored time never moves past the lost fills.
        """
        saved = 0
        now = datetime.now(timezone.utc)
        for i in range(0, len(fills), batch_size):
            rows = [{**f.to_row(address), "created_at": now} for f in fills[i:i + batch_size]]
            stmt = self._insert(TraderFill).values(rows).on_conflict_do_nothing(index_elements=["tid"])
            try:
                with Session(self.engine) as session:
                    result = session.exec(stmt)
                    session.commit()
            except Exception as e:
                logger.error(f"[fills] save error for {address[:10]} batch {i // batch_size}: {e}")
                raise
            saved += max(result.rowcount, 0)
        return saved

    def load_all_fills(self, address: str) -> list[TraderFill]:
        """Every stored fill for address, oldest first (ties broken by tid)."""
        with Session(self.engine) as session:
            stmt = (
                select(TraderFill)
                .where(TraderFill.address == address)
                .order_by(TraderFill.time, TraderFill.tid)
            )
            return list(session.exec(stmt).all())

    # -- completed trades ----------------------------------------------------

    def replace_completed_trades(self, address: str, trades: Iterable[CompletedTrade]):
        """Swap an address's completed trades in one transaction.

        On any failure the transaction rolls back and the previous set stays visible.
        """
        with Session(self.engine, expire_on_commit=False) as session:
            with session.begin():
                session.exec(delete(CompletedTrade).where(CompletedTrade.address == address))
                session.add_all(list(trades))

    def load_completed_trades(self, address: str) -> list[CompletedTrade]:
        with Session(self.engine) as session:
            stmt = (
                select(CompletedTrade)
                .where(CompletedTrade.address == address)
                .order_by(CompletedTrade.start_time, CompletedTrade.id)
            )
            return list(session.exec(stmt).all())
