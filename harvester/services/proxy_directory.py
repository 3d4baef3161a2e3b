"""Proxy directory — a frozen snapshot of egress identities for one run.

Proxies are loaded once when a run starts and never change afterwards, so
workers can read the directory concurrently without locking.
"""

import logging
from dataclasses import dataclass
from typing import Iterable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProxyEndpoint:
    host: str
    port: str
    username: str = ""
    password: str = ""

    @property
    def url(self) -> str:
        if self.username:
            return f"http://{self.username}:{self.password}@{self.host}:{self.port}"
        return f"http://{self.host}:{self.port}"

    def __str__(self) -> str:
        # Never log credentials
        return f"{self.host}:{self.port}"


class ProxyDirectory:
    """Hands each worker a fixed proxy: worker_index mod directory size."""

    def __init__(self, proxies: Iterable[ProxyEndpoint] = ()):
        self._proxies = tuple(proxies)

    @classmethod
    def from_store(cls, store) -> "ProxyDirectory":
        """Load enabled proxies; a store failure propagates and aborts the run."""
        rows = store.load_enabled_proxies()
        directory = cls(
            ProxyEndpoint(host=r.host, port=r.port, username=r.username or "", password=r.password or "")
            for r in rows
        )
        logger.info(f"[proxy] loaded {len(directory)} active proxies")
        return directory

    def __len__(self) -> int:
        return len(self._proxies)

    def for_worker(self, worker_index: int) -> ProxyEndpoint | None:
        """Proxy bound to a worker for the whole run, or None for direct connectivity."""
        if not self._proxies:
            return None
        return self._proxies[worker_index % len(self._proxies)]
