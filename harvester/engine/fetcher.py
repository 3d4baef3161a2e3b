"""Adaptive time-range fill fetcher.

userFillsByTime silently truncates every answer at FILLS_PAGE_LIMIT rows. When
a range comes back full, it is split into calendar buckets one granularity
finer (month → week → day → hour → 10 minutes) and only the buckets that are
still full get split again.

Buckets are half-open [start, end) and each one starts where the previous
one ended, so at every level the buckets tile the parent range exactly.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from dateutil.relativedelta import relativedelta

from harvester.services.hyperliquid_client import RateLimitedError
from harvester.utils.constants import FILLS_PAGE_LIMIT

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# (name, step, label format) from coarsest to finest; the last entry is the floor
GRANULARITIES = (
    ("month", relativedelta(months=1), "%Y-%m"),
    ("week", relativedelta(weeks=1), "%m-%d"),
    ("day", relativedelta(days=1), "%m-%d"),
    ("hour", relativedelta(hours=1), "%H:%M"),
    ("10min", relativedelta(minutes=10), "%H:%M"),
)
FLOOR_LEVEL = len(GRANULARITIES) - 1


@dataclass
class FetchStats:
    calls: int = 0
    splits: int = 0
    failed_buckets: int = 0
    rate_limited: int = 0
    truncated_buckets: int = 0  # floor buckets accepted while still full


def ms_to_datetime(ms: int) -> datetime:
    return EPOCH + timedelta(milliseconds=ms)


def datetime_to_ms(dt: datetime) -> int:
    return (dt - EPOCH) // timedelta(milliseconds=1)


def split_range(start_ms: int, end_ms: int, level: int) -> list[tuple[int, int]]:
    """Split [start_ms, end_ms) into consecutive buckets of GRANULARITIES[level].

    Buckets are stepped from start_ms with calendar arithmetic in UTC, so a
    month bucket is a calendar month long; the last bucket is clipped to end_ms.
    """
    step = GRANULARITIES[level][1]
    buckets = []
    cur = ms_to_datetime(start_ms)
    cur_ms = start_ms
    while cur_ms < end_ms:
        nxt = cur + step
        nxt_ms = min(datetime_to_ms(nxt), end_ms)
        buckets.append((cur_ms, nxt_ms))
        cur, cur_ms = nxt, nxt_ms
    return buckets


def _within(fills, start_ms: int, end_ms: int):
    # The API treats endTime as inclusive; a fill on a bucket edge belongs to the later bucket
    return [f for f in fills if start_ms <= f.time < end_ms]


def _sleep(delay: float):
    if delay > 0:
        time.sleep(delay)


def fetch_all_fills(
    client,
    address: str,
    start_ms: int,
    end_ms: int,
    delay: float = 0.0,
    limit: int = FILLS_PAGE_LIMIT,
    stats: FetchStats | None = None,
) -> list:
    """Return every fill of address in [start_ms, end_ms), oldest bucket first.

    A failed first call abandons the whole range (the caller retries on its next
    run). Below that, a failed bucket is logged and contributes nothing while
    its siblings carry on.
    """
    stats = stats if stats is not None else FetchStats()
    tag = address[:10]

    stats.calls += 1
    try:
        fills = client.fetch_fills_by_time(address, start_ms, end_ms)
    except RateLimitedError as e:
        stats.rate_limited += 1
        logger.warning(f"[fills] probe rate limited for {tag}: {e}")
        return []
    except Exception as e:
        logger.error(f"[fills] probe error for {tag}: {e}")
        return []

    if not fills:
        return []
    if len(fills) < limit:
        return _within(fills, start_ms, end_ms)

    logger.info(f"[fills] {tag}: hit {limit} limit, splitting by {GRANULARITIES[0][0]}")
    stats.splits += 1

    collected = []
    # LIFO work-list; children are pushed reversed so buckets pop in time order
    stack = [(s, e, 0) for s, e in reversed(split_range(start_ms, end_ms, 0))]
    while stack:
        b_start, b_end, level = stack.pop()
        name, _, label_fmt = GRANULARITIES[level]
        label = ms_to_datetime(b_start).strftime(label_fmt)

        _sleep(delay)
        stats.calls += 1
        try:
            fills = client.fetch_fills_by_time(address, b_start, b_end)
        except RateLimitedError as e:
            stats.rate_limited += 1
            stats.failed_buckets += 1
            logger.warning(f"[fills] {name} rate limited {tag} [{label}]: {e}")
            continue
        except Exception as e:
            stats.failed_buckets += 1
            logger.error(f"[fills] {name} error {tag} [{label}]: {e}")
            continue

        if len(fills) >= limit:
            if level < FLOOR_LEVEL:
                finer = GRANULARITIES[level + 1][0]
                logger.info(f"[fills] {tag} {name} {label} hit limit, split by {finer}")
                stats.splits += 1
                stack.extend((s, e, level + 1) for s, e in reversed(split_range(b_start, b_end, level + 1)))
                continue
            stats.truncated_buckets += 1
            logger.warning(
                f"[fills] WARNING {tag} {name} {label} still at limit ({len(fills)}), cannot split further"
            )

        collected.extend(_within(fills, b_start, b_end))

    logger.debug(
        f"[fills] {tag}: {len(collected)} fills from {stats.calls} calls "
        f"({stats.failed_buckets} failed, {stats.truncated_buckets} truncated)"
    )
    return collected
