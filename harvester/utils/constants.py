"""Hyperliquid API constants and fill direction tags."""

# Request discriminators for the multiplexed /info endpoint
INFO_USER_FILLS_BY_TIME = "userFillsByTime"
INFO_PORTFOLIO = "portfolio"
INFO_CLEARINGHOUSE_STATE = "clearinghouseState"
INFO_SPOT_CLEARINGHOUSE_STATE = "spotClearinghouseState"

# userFillsByTime returns at most this many rows per call
FILLS_PAGE_LIMIT = 2000

DIR_OPEN_LONG = "Open Long"
DIR_OPEN_SHORT = "Open Short"
DIR_CLOSE_LONG = "Close Long"
DIR_CLOSE_SHORT = "Close Short"

OPEN_DIRS = {DIR_OPEN_LONG: "long", DIR_OPEN_SHORT: "short"}
CLOSE_DIRS = {DIR_CLOSE_LONG: "long", DIR_CLOSE_SHORT: "short"}

MARGIN_CROSS = "cross"
MARGIN_ISOLATED = "isolated"

PROXY_ENABLED = 1
PROXY_DISABLED = 0
