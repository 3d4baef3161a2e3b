"""Fill harvest worker pool.

A fixed number of threads drain one pre-filled queue of addresses. Each
worker owns a single HyperliquidClient bound to one proxy for the whole run
and resumes every address from its newest stored fill.
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable

from harvester.engine.fetcher import FetchStats, fetch_all_fills
from harvester.services.proxy_directory import ProxyDirectory
from harvester.utils.constants import FILLS_PAGE_LIMIT

logger = logging.getLogger(__name__)


@dataclass
class HarvestResult:
    processed: int
    fills_saved: int
    failed: int
    skipped: int = 0


class Counter:
    """Integer counter that many worker threads can bump at once."""

    def __init__(self, value: int = 0):
        self._value = value
        self._lock = threading.Lock()

    def add(self, n: int = 1) -> int:
        with self._lock:
            self._value += n
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


def now_ms() -> int:
    return int(time.time() * 1000)


class FillsWorker:
    def __init__(
        self,
        store,
        proxies: ProxyDirectory,
        client_factory: Callable,
        workers: int = 10,
        delay: float = 0.2,
        default_start_ms: int = 0,
        batch_size: int = 500,
        progress_every: int = 50,
        limit: int = FILLS_PAGE_LIMIT,
        clock: Callable[[], int] = now_ms,
    ):
        self.store = store
        self.proxies = proxies
        self.client_factory = client_factory
        self.workers = max(1, workers)
        self.delay = delay
        self.default_start_ms = default_start_ms
        self.batch_size = batch_size
        self.progress_every = max(1, progress_every)
        self.limit = limit
        self.clock = clock

    def run(self, addresses: list[str] | None = None) -> HarvestResult:
        """Harvest every address once; returns totals when the queue is drained."""
        if addresses is None:
            addresses = self.store.load_tracked_addresses()
        total = len(addresses)
        logger.info(f"[fills] total {total} traders to fetch with {self.workers} workers")

        # Filled completely before any worker starts; an empty queue means the run is over
        addr_queue: queue.Queue = queue.Queue(maxsize=max(total, 1))
        for address in addresses:
            addr_queue.put_nowait(address)

        done, saved, failed, skipped = Counter(), Counter(), Counter(), Counter()
        threads = [
            threading.Thread(
                target=self._worker,
                args=(idx, addr_queue, done, saved, failed, skipped, total),
                name=f"fills-worker-{idx}",
                daemon=True,
            )
            for idx in range(self.workers)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        result = HarvestResult(
            processed=done.value,
            fills_saved=saved.value,
            failed=failed.value,
            skipped=skipped.value,
        )
        logger.info(
            f"[fills] all done. {result.processed} traders processed, {result.fills_saved} fills saved, "
            f"{result.failed} failed, {result.skipped} already current"
        )
        return result

    def _worker(self, worker_idx, addr_queue, done, saved, failed, skipped, total):
        proxy = self.proxies.for_worker(worker_idx)
        try:
            client = self.client_factory(proxy.url if proxy else None)
        except Exception as e:
            logger.error(f"[fills] worker {worker_idx}: create client error: {e}")
            return
        logger.debug(f"[fills] worker {worker_idx} using {proxy or 'direct connection'}")

        try:
            while True:
                try:
                    address = addr_queue.get_nowait()
                except queue.Empty:
                    return

                try:
                    n = self.process_one(client, address)
                    if n is None:
                        skipped.add()
                    else:
                        saved.add(n)
                except Exception as e:
                    failed.add()
                    logger.error(f"[fills] worker {worker_idx}: {address[:10]} failed: {e}", exc_info=True)

                cur = done.add()
                if cur % self.progress_every == 0 or cur == total:
                    logger.info(f"[fills] progress: {cur}/{total} traders, {saved.value} fills saved")
        finally:
            close = getattr(client, "close", None)
            if close is not None:
                close()

    def process_one(self, client, address: str) -> int | None:
        """Fetch and store new fills for one address.

        Returns the number of newly stored fills, or None when the address is
        already up to date.
        """
        latest = self.store.latest_fill_time(address)
        # +1 ms so the newest stored fill is not fetched again
        start_ms = latest + 1 if latest is not None else self.default_start_ms
        end_ms = self.clock()
        if start_ms >= end_ms:
            return None

        stats = FetchStats()
        fills = fetch_all_fills(
            client, address, start_ms, end_ms,
            delay=self.delay, limit=self.limit, stats=stats,
        )
        if stats.truncated_buckets:
            logger.warning(f"[fills] {address[:10]}: {stats.truncated_buckets} buckets may be missing fills")
        if not fills:
            return 0

        return self.store.upsert_fills_ignoring_duplicates(address, fills, batch_size=self.batch_size)


def run_fills_harvest(workers: int | None = None, delay_ms: int | None = None) -> HarvestResult:
    """Build a pool from settings and harvest every tracked trader once.

    Store and proxy loading failures propagate: nothing runs against an
    unreachable database.
    """
    from harvester.config import settings
    from harvester.database import engine
    from harvester.services.fill_store import FillStore
    from harvester.services.hyperliquid_client import create_client

    store = FillStore(engine)
    proxies = ProxyDirectory.from_store(store)
    workers = workers if workers is not None else settings.fills_workers
    delay_ms = delay_ms if delay_ms is not None else settings.fills_delay_ms
    logger.info(f"[fills] {len(proxies)} proxies loaded, {workers} workers, {delay_ms}ms delay")

    pool = FillsWorker(
        store=store,
        proxies=proxies,
        client_factory=create_client,
        workers=workers,
        delay=delay_ms / 1000,
        default_start_ms=settings.default_start_ms,
        batch_size=settings.fills_batch_size,
        progress_every=settings.progress_every,
        limit=settings.fills_page_limit,
    )
    return pool.run()
