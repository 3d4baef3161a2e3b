"""Hyperliquid info API client.

One instance owns one requests session, optionally routed through a single
proxy for its whole lifetime. Harvest workers never share an instance.
"""

import logging

import requests
from hyperliquid.api import API
from hyperliquid.utils.error import ClientError, ServerError
from pydantic import ValidationError

from harvester.config import settings
from harvester.schemas.fill import Fill
from harvester.utils.constants import (
    INFO_USER_FILLS_BY_TIME,
    INFO_PORTFOLIO,
    INFO_CLEARINGHOUSE_STATE,
    INFO_SPOT_CLEARINGHOUSE_STATE,
)

logger = logging.getLogger(__name__)


class HyperliquidError(Exception):
    """Transport failure, non-success status or undecodable body."""


class RateLimitedError(HyperliquidError):
    """The API answered 429."""


class HyperliquidClient(API):
    """Thin wrapper over the SDK's API session for the read-only info calls."""

    def __init__(
        self,
        proxy_url: str | None = None,
        base_url: str | None = None,
        leaderboard_url: str | None = None,
        timeout: float | None = None,
    ):
        super().__init__(
            base_url=base_url or settings.api_url,
            timeout=timeout if timeout is not None else settings.request_timeout,
        )
        self.leaderboard_url = leaderboard_url or settings.leaderboard_url
        self.proxy_url = proxy_url
        if proxy_url:
            self.session.proxies.update({"http": proxy_url, "https": proxy_url})

    def _info(self, payload: dict):
        """POST to /info and translate every failure into HyperliquidError."""
        try:
            result = self.post("/info", payload)
        except ClientError as e:
            if e.status_code == 429:
                raise RateLimitedError("rate limited (429)") from e
            raise HyperliquidError(f"unexpected status {e.status_code}: {e.error_message}") from e
        except ServerError as e:
            raise HyperliquidError(f"unexpected status {e.status_code}: {e.message}") from e
        except requests.RequestException as e:
            raise HyperliquidError(f"{payload['type']} request failed: {e}") from e

        # The SDK returns {"error": ...} instead of raising when the body is not JSON
        if isinstance(result, dict) and set(result) == {"error"}:
            raise HyperliquidError(str(result["error"]))
        return result

    def fetch_fills_by_time(self, address: str, start_ms: int, end_ms: int) -> list[Fill]:
        """One page of fills in [start_ms, end_ms], oldest first, capped at the page limit."""
        raw = self._info({
            "type": INFO_USER_FILLS_BY_TIME,
            "user": address,
            "startTime": start_ms,
            "endTime": end_ms,
        })
        if not isinstance(raw, list):
            raise HyperliquidError(f"unexpected fills payload for {address}: {type(raw).__name__}")
        try:
            return [Fill.model_validate(item) for item in raw]
        except ValidationError as e:
            raise HyperliquidError(f"unmarshal fills for {address}: {e}") from e

    def fetch_leaderboard(self) -> dict:
        """Full leaderboard snapshot (served from a separate stats host)."""
        try:
            response = self.session.get(self.leaderboard_url, timeout=self.timeout)
            if response.status_code == 429:
                raise RateLimitedError("rate limited (429)")
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise HyperliquidError(f"fetch leaderboard: {e}") from e
        except ValueError as e:
            raise HyperliquidError(f"unmarshal leaderboard: {e}") from e

    def fetch_portfolio(self, address: str):
        return self._info({"type": INFO_PORTFOLIO, "user": address})

    def fetch_clearinghouse_state(self, address: str) -> dict:
        return self._info({"type": INFO_CLEARINGHOUSE_STATE, "user": address})

    def fetch_spot_clearinghouse_state(self, address: str) -> dict:
        return self._info({"type": INFO_SPOT_CLEARINGHOUSE_STATE, "user": address})

    def close(self):
        self.session.close()


def create_client(proxy_url: str | None = None) -> HyperliquidClient:
    """Default client factory used by the worker pool."""
    return HyperliquidClient(proxy_url=proxy_url)
