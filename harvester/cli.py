"""CLI for harvest runs and admin operations.

Usage:
    python -m harvester.cli harvest [--workers N] [--delay-ms MS] [--no-rebuild]
    python -m harvester.cli rebuild-trades [ADDRESS ...]
    python -m harvester.cli add-trader ADDRESS [DISPLAY_NAME]
    python -m harvester.cli add-proxy HOST PORT [USERNAME PASSWORD]
"""

import argparse
import logging
import sys

from harvester.database import engine, check_connection, create_db_and_tables
from harvester.services.fill_store import FillStore
from harvester.utils.logging import setup_logging

logger = logging.getLogger("harvester.cli")


def harvest(args):
    from harvester.engine.fills_worker import run_fills_harvest
    from harvester.engine.trades import rebuild_all_completed_trades

    result = run_fills_harvest(workers=args.workers, delay_ms=args.delay_ms)
    print(
        f"{result.processed} traders processed, {result.fills_saved} fills saved, "
        f"{result.failed} failed, {result.skipped} already current"
    )
    if not args.no_rebuild:
        rebuilt = rebuild_all_completed_trades(FillStore(engine))
        print(f"{rebuilt['trades']} completed trades rebuilt, {len(rebuilt['errors'])} errors")
    return 0 if result.failed == 0 else 2


def rebuild_trades(args):
    from harvester.engine.trades import rebuild_all_completed_trades

    result = rebuild_all_completed_trades(FillStore(engine), args.addresses or None)
    print(f"{result['trades']} completed trades rebuilt for {result['addresses']} traders")
    for error in result["errors"]:
        print(error)
    return 0 if not result["errors"] else 2


def add_trader(args):
    if FillStore(engine).add_trader(args.address, args.display_name):
        print(f"Tracking {args.address}")
    else:
        print(f"{args.address} is already tracked")
    return 0


def add_proxy(args):
    if bool(args.username) != bool(args.password):
        print("Username and password must be given together.")
        return 1
    proxy = FillStore(engine).add_proxy(args.host, args.port, args.username or "", args.password or "")
    print(f"Proxy {proxy.id} added ({proxy.host}:{proxy.port})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m harvester.cli")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("harvest", help="fetch new fills for every tracked trader")
    p.add_argument("--workers", type=int, default=None, help="concurrent workers (default: HC_FILLS_WORKERS)")
    p.add_argument("--delay-ms", type=int, default=None, help="pause before each API call (default: HC_FILLS_DELAY_MS)")
    p.add_argument("--no-rebuild", action="store_true", help="skip the completed-trade rebuild afterwards")
    p.set_defaults(func=harvest)

    p = sub.add_parser("rebuild-trades", help="rebuild completed trades from stored fills")
    p.add_argument("addresses", nargs="*", help="addresses to rebuild (default: all tracked)")
    p.set_defaults(func=rebuild_trades)

    p = sub.add_parser("add-trader", help="track an address")
    p.add_argument("address")
    p.add_argument("display_name", nargs="?", default="")
    p.set_defaults(func=add_trader)

    p = sub.add_parser("add-proxy", help="add an enabled proxy to the pool")
    p.add_argument("host")
    p.add_argument("port")
    p.add_argument("username", nargs="?")
    p.add_argument("password", nargs="?")
    p.set_defaults(func=add_proxy)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    try:
        check_connection()
    except Exception as e:
        logger.error(f"Database unreachable: {e}")
        return 1
    create_db_and_tables()

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
