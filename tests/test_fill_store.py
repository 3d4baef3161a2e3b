"""Tests for FillStore persistence semantics."""

import pytest
from sqlalchemy.exc import IntegrityError

from harvester.models.completed_trade import CompletedTrade
from harvester.engine.fills_worker import FillsWorker
from harvester.services.proxy_directory import ProxyDirectory

from conftest import ADDRESS, make_fill


def _trade(**overrides) -> CompletedTrade:
    values = dict(
        address=ADDRESS, coin="BTC", margin_mode="isolated", direction="long",
        size=1.0, entry_price=100.0, close_price=110.0, start_time=1, end_time=2,
        total_fee=0.1, pnl=10.0, fill_count=2,
    )
    values.update(overrides)
    return CompletedTrade(**values)


def test_same_fill_twice_is_stored_once(store):
    fill = make_fill(42, 1_000)

    assert store.upsert_fills_ignoring_duplicates(ADDRESS, [fill]) == 1
    assert store.upsert_fills_ignoring_duplicates(ADDRESS, [fill]) == 0

    assert [f.tid for f in store.load_all_fills(ADDRESS)] == [42]


def test_batches_count_only_new_rows(store):
    store.upsert_fills_ignoring_duplicates(ADDRESS, [make_fill(i, i) for i in range(5)])

    saved = store.upsert_fills_ignoring_duplicates(
        ADDRESS, [make_fill(i, i) for i in range(12)], batch_size=4
    )

    assert saved == 7
    assert len(store.load_all_fills(ADDRESS)) == 12


def test_failing_batch_raises_and_stops_later_batches(store, caplog):
    # coin is NOT NULL, so the middle batch is rejected by the database
    broken = make_fill(2, 2_000).model_copy(update={"coin": None})
    fills = [make_fill(1, 1_000), broken, make_fill(3, 3_000)]

    with pytest.raises(IntegrityError):
        store.upsert_fills_ignoring_duplicates(ADDRESS, fills, batch_size=1)

    assert [f.tid for f in store.load_all_fills(ADDRESS)] == [1]
    assert store.latest_fill_time(ADDRESS) == 1_000
    assert "save error" in caplog.text


def test_stored_fill_keeps_exchange_strings(store):
    store.upsert_fills_ignoring_duplicates(ADDRESS, [make_fill(1, 1, px="0.000012345678", closedPnl="-1.5")])
    [row] = store.load_all_fills(ADDRESS)
    assert row.px == "0.000012345678"
    assert row.closed_pnl == "-1.5"
    assert row.fee_token == "USDC"


def test_latest_fill_time(store):
    assert store.latest_fill_time(ADDRESS) is None

    store.upsert_fills_ignoring_duplicates(ADDRESS, [make_fill(1, 1_700_000_000_000), make_fill(2, 1_700_000_000_500)])
    store.upsert_fills_ignoring_duplicates("0xother", [make_fill(3, 1_800_000_000_000)])

    assert store.latest_fill_time(ADDRESS) == 1_700_000_000_500


def test_load_all_fills_orders_by_time_then_tid(store):
    store.upsert_fills_ignoring_duplicates(ADDRESS, [make_fill(3, 20), make_fill(2, 10), make_fill(1, 20)])
    assert [(f.time, f.tid) for f in store.load_all_fills(ADDRESS)] == [(10, 2), (20, 1), (20, 3)]


def test_replace_completed_trades(store):
    store.replace_completed_trades(ADDRESS, [_trade(), _trade(start_time=3, end_time=4)])
    store.replace_completed_trades("0xother", [_trade(address="0xother")])

    store.replace_completed_trades(ADDRESS, [_trade(coin="ETH")])

    assert [t.coin for t in store.load_completed_trades(ADDRESS)] == ["ETH"]
    assert len(store.load_completed_trades("0xother")) == 1


def test_failed_replace_keeps_previous_trades(store):
    store.replace_completed_trades(ADDRESS, [_trade(), _trade(start_time=3, end_time=4)])

    with pytest.raises(Exception):
        store.replace_completed_trades(ADDRESS, [_trade(coin="ETH"), _trade(coin=None)])

    assert [t.coin for t in store.load_completed_trades(ADDRESS)] == ["BTC", "BTC"]


def test_tracked_addresses_and_proxies(store):
    assert store.add_trader("0xbbb", "second") is True
    assert store.add_trader("0xaaa") is True
    assert store.add_trader("0xbbb") is False
    assert store.load_tracked_addresses() == ["0xbbb", "0xaaa"]

    store.add_proxy("10.0.0.1", "8080")
    disabled = store.add_proxy("10.0.0.2", "8080")
    from sqlmodel import Session
    with Session(store.engine) as session:
        row = session.get(type(disabled), disabled.id)
        row.status = 0
        session.add(row)
        session.commit()

    directory = ProxyDirectory.from_store(store)
    assert len(directory) == 1
    assert directory.for_worker(7).host == "10.0.0.1"


class _PagedClient:
    def __init__(self, fills):
        self.fills = fills

    def fetch_fills_by_time(self, address, start_ms, end_ms):
        return [f for f in self.fills if start_ms <= f.time <= end_ms]


def test_second_harvest_saves_zero_new_fills(store):
    fills = [make_fill(i, 2_000 + i) for i in range(30)]
    pool = FillsWorker(
        store=store,
        proxies=ProxyDirectory(),
        client_factory=lambda proxy_url: _PagedClient(fills),
        workers=1,
        delay=0,
        default_start_ms=1_000,
        clock=lambda: 10_000,
    )

    first = pool.run([ADDRESS])
    second = pool.run([ADDRESS])

    assert first.fills_saved == 30
    assert second.fills_saved == 0
    assert len(store.load_all_fills(ADDRESS)) == 30
