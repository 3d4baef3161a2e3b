"""Tests for the Hyperliquid info client error translation and decoding."""

from unittest.mock import MagicMock, patch

import pytest
import requests
from hyperliquid.utils.error import ClientError, ServerError

from harvester.services.hyperliquid_client import (
    HyperliquidClient,
    HyperliquidError,
    RateLimitedError,
    create_client,
)

from conftest import ADDRESS

RAW_FILL = {
    "coin": "ETH",
    "px": "3012.5",
    "sz": "0.25",
    "side": "B",
    "time": 1_704_067_200_123,
    "startPosition": "0.0",
    "dir": "Open Long",
    "closedPnl": "0.0",
    "hash": "0xabc",
    "oid": 9001,
    "crossed": True,
    "fee": "0.301",
    "tid": 123456789012,
    "feeToken": "USDC",
}


def _client(**kwargs) -> HyperliquidClient:
    return HyperliquidClient(base_url="https://api.test", leaderboard_url="https://stats.test/lb", timeout=5, **kwargs)


def test_proxy_is_bound_to_the_session():
    client = _client(proxy_url="http://u:p@10.0.0.1:8080")
    assert client.session.proxies["https"] == "http://u:p@10.0.0.1:8080"
    assert client.session.proxies["http"] == "http://u:p@10.0.0.1:8080"


def test_direct_client_has_no_proxy():
    client = _client()
    assert client.proxy_url is None
    assert "https" not in client.session.proxies


def test_create_client_uses_settings():
    client = create_client("http://10.0.0.9:3128")
    assert client.proxy_url == "http://10.0.0.9:3128"
    assert client.timeout == 60.0


def test_fetch_fills_by_time_sends_request_and_decodes():
    client = _client()
    with patch.object(client, "post", return_value=[RAW_FILL]) as post:
        [fill] = client.fetch_fills_by_time(ADDRESS, 1, 2)

    post.assert_called_once_with(
        "/info", {"type": "userFillsByTime", "user": ADDRESS, "startTime": 1, "endTime": 2}
    )
    assert fill.coin == "ETH"
    assert fill.closed_pnl == "0.0"
    assert fill.fee_token == "USDC"
    assert fill.crossed is True
    assert fill.tid == 123456789012


def test_rate_limit_is_a_distinct_error():
    client = _client()
    with patch.object(client, "post", side_effect=ClientError(429, None, "Too Many Requests", None, {})):
        with pytest.raises(RateLimitedError):
            client.fetch_fills_by_time(ADDRESS, 1, 2)


@pytest.mark.parametrize("error", [
    ClientError(400, None, "bad request", None, {}),
    ServerError(502, "bad gateway"),
    requests.ConnectionError("proxy refused"),
    requests.Timeout("read timed out"),
])
def test_other_failures_are_plain_hyperliquid_errors(error):
    client = _client()
    with patch.object(client, "post", side_effect=error):
        with pytest.raises(HyperliquidError) as exc_info:
            client.fetch_fills_by_time(ADDRESS, 1, 2)
    assert not isinstance(exc_info.value, RateLimitedError)


def test_undecodable_body_is_an_error():
    client = _client()
    with patch.object(client, "post", return_value={"error": "Could not parse JSON: <html>"}):
        with pytest.raises(HyperliquidError):
            client.fetch_fills_by_time(ADDRESS, 1, 2)


def test_malformed_fill_is_an_error():
    client = _client()
    with patch.object(client, "post", return_value=[{"coin": "ETH"}]):
        with pytest.raises(HyperliquidError):
            client.fetch_fills_by_time(ADDRESS, 1, 2)


def test_state_queries_use_type_discriminator():
    client = _client()
    with patch.object(client, "post", return_value={"assetPositions": []}) as post:
        client.fetch_clearinghouse_state(ADDRESS)
        client.fetch_spot_clearinghouse_state(ADDRESS)
        client.fetch_portfolio(ADDRESS)

    sent = [c.args[1]["type"] for c in post.call_args_list]
    assert sent == ["clearinghouseState", "spotClearinghouseState", "portfolio"]


def test_fetch_leaderboard_uses_stats_host():
    client = _client()
    response = MagicMock(status_code=200)
    response.json.return_value = {"leaderboardRows": []}
    client.session = MagicMock()
    client.session.get.return_value = response

    assert client.fetch_leaderboard() == {"leaderboardRows": []}
    client.session.get.assert_called_once_with("https://stats.test/lb", timeout=5)


def test_fetch_leaderboard_rate_limited():
    client = _client()
    client.session = MagicMock()
    client.session.get.return_value = MagicMock(status_code=429)

    with pytest.raises(RateLimitedError):
        client.fetch_leaderboard()
