"""Database models."""

from harvester.models.trader import Trader
from harvester.models.fill import TraderFill
from harvester.models.completed_trade import CompletedTrade
from harvester.models.proxy import ProxyPool

__all__ = [
    "Trader",
    "TraderFill",
    "CompletedTrade",
    "ProxyPool",
]
