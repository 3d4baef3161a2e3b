"""Completed-trade reconstruction from stored fills.

Fills of one address are grouped by coin and replayed oldest first:

- "Open Long" / "Open Short" opens or adds to the position
- "Close Long" / "Close Short" reduces it; when it is back to zero, one
  CompletedTrade is emitted
- anything else (liquidation tags, spot buys/sells, ...) is ignored

A close with no open position before it is an orphan (history starts in the
middle of a position) and is skipped.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable

from harvester.models.completed_trade import CompletedTrade
from harvester.utils.constants import CLOSE_DIRS, MARGIN_CROSS, MARGIN_ISOLATED, OPEN_DIRS

logger = logging.getLogger(__name__)

# A position counts as flat once its remaining size is at or below this
CLOSED_SIZE_TOLERANCE = Decimal("1e-12")

PRICE_QUANT = Decimal("1e-8")
MONEY_QUANT = Decimal("1e-6")
ZERO = Decimal(0)


@dataclass
class PositionState:
    direction: str  # "long" / "short"
    start_time: int
    size: Decimal = ZERO
    max_size: Decimal = ZERO
    cost_basis: Decimal = ZERO  # sum of open px * sz
    open_size: Decimal = ZERO
    close_value: Decimal = ZERO  # sum of close px * sz
    close_size: Decimal = ZERO
    total_fee: Decimal = ZERO
    pnl: Decimal = ZERO
    end_time: int = 0
    fill_count: int = 0


def _dec(value) -> Decimal:
    if value is None or value == "":
        return ZERO
    d = Decimal(str(value))
    if not d.is_finite():
        raise InvalidOperation(f"non-finite value {value!r}")
    return d


def _round(value: Decimal, quant: Decimal) -> float:
    return float(value.quantize(quant, rounding=ROUND_HALF_UP))


def _safe_divide(a: Decimal, b: Decimal) -> Decimal:
    if b == 0:
        return ZERO
    return a / b


def detect_margin_mode(fills: Iterable) -> str:
    """cross if any fill of the address was crossed, isolated otherwise."""
    return MARGIN_CROSS if any(f.crossed for f in fills) else MARGIN_ISOLATED


def _to_trade(address: str, coin: str, margin_mode: str, state: PositionState) -> CompletedTrade:
    return CompletedTrade(
        address=address,
        coin=coin,
        margin_mode=margin_mode,
        direction=state.direction,
        size=_round(state.max_size, PRICE_QUANT),
        entry_price=_round(_safe_divide(state.cost_basis, state.open_size), PRICE_QUANT),
        close_price=_round(_safe_divide(state.close_value, state.close_size), PRICE_QUANT),
        start_time=state.start_time,
        end_time=state.end_time,
        total_fee=_round(state.total_fee, MONEY_QUANT),
        pnl=_round(state.pnl, MONEY_QUANT),
        fill_count=state.fill_count,
    )


def build_for_coin(address: str, coin: str, fills: list, margin_mode: str) -> list[CompletedTrade]:
    """Replay one coin's fills (already in time order) through the position state machine."""
    result = []
    state: PositionState | None = None

    for f in fills:
        is_open = f.dir in OPEN_DIRS
        is_close = f.dir in CLOSE_DIRS
        if not is_open and not is_close:
            continue

        try:
            px = _dec(f.px)
            sz = _dec(f.sz)
            fee = _dec(f.fee)
            closed_pnl = _dec(f.closed_pnl)
        except (InvalidOperation, ValueError) as e:
            logger.warning(f"[trades] {address[:10]} {coin}: skipping fill tid={f.tid} with bad numbers: {e}")
            continue

        if is_open:
            if state is None:
                state = PositionState(direction=OPEN_DIRS[f.dir], start_time=f.time)

            state.size += sz
            if state.size > state.max_size:
                state.max_size = state.size
            state.cost_basis += px * sz
            state.open_size += sz
            state.total_fee += fee
            state.pnl += closed_pnl
            state.fill_count += 1
            continue

        if state is None:
            continue

        state.size -= sz
        state.close_value += px * sz
        state.close_size += sz
        state.total_fee += fee
        state.pnl += closed_pnl
        state.end_time = f.time
        state.fill_count += 1

        if state.size <= CLOSED_SIZE_TOLERANCE:
            result.append(_to_trade(address, coin, margin_mode, state))
            state = None

    return result


def build_completed_trades(address: str, fills: Iterable) -> list[CompletedTrade]:
    """Rebuild every completed trade of an address from its full fill history."""
    ordered = sorted(fills, key=lambda f: (f.time, f.tid))
    if not ordered:
        return []

    margin_mode = detect_margin_mode(ordered)
    grouped = defaultdict(list)
    for f in ordered:
        grouped[f.coin].append(f)

    trades = []
    for coin, coin_fills in grouped.items():
        trades.extend(build_for_coin(address, coin, coin_fills, margin_mode))
    trades.sort(key=lambda t: (t.start_time, t.coin))
    return trades


def rebuild_completed_trades(store, address: str) -> int:
    """Replace an address's completed trades with a fresh rebuild. Returns the trade count."""
    fills = store.load_all_fills(address)
    trades = build_completed_trades(address, fills)
    store.replace_completed_trades(address, trades)
    if fills:
        logger.info(f"[trades] {address[:10]}: rebuilt {len(trades)} completed trades from {len(fills)} fills")
    return len(trades)


def rebuild_all_completed_trades(store, addresses: list[str] | None = None) -> dict:
    """Rebuild trades for many addresses; one failing address never stops the rest."""
    if addresses is None:
        addresses = store.load_tracked_addresses()

    result = {"addresses": 0, "trades": 0, "errors": []}
    for address in addresses:
        try:
            result["trades"] += rebuild_completed_trades(store, address)
            result["addresses"] += 1
        except Exception as e:
            error_msg = f"Failed to rebuild trades for {address}: {e}"
            logger.error(error_msg)
            result["errors"].append(error_msg)
    logger.info(
        f"[trades] rebuilt {result['trades']} trades for {result['addresses']} traders, "
        f"{len(result['errors'])} errors"
    )
    return result
