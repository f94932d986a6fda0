#!/usr/bin/env python
"""A command-line utility to check an exchange configuration end to end.

The probe loads one exchange's settings, initializes its adapter and calls
the read-only operations: latest price, order book depth and, when asked,
wallet balances. It never places or cancels orders, so it is safe to run
against a live account before starting a trading engine.

Usage:
    python scripts/probe_exchange.py <CONFIG> <EXCHANGE> <MARKET> [--balances]
    python scripts/probe_exchange.py --store-credentials <EXCHANGE>

Example:
    python scripts/probe_exchange.py exchanges.toml bittrex BTC-LTC --balances
"""

import argparse
import getpass
import sys
from pathlib import Path

from loguru import logger

from cryptogateway import ExchangeError, create_adapter
from cryptogateway.config import load_exchange_config, set_api_credentials
from cryptogateway.logging_config import setup_logging


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Probe an exchange adapter with read-only calls."
    )
    parser.add_argument("config", nargs="?", type=Path, help="TOML config file.")
    parser.add_argument("exchange", help="Exchange name, e.g. 'bittrex'.")
    parser.add_argument("market", nargs="?", help="Market id, e.g. 'BTC-LTC'.")
    parser.add_argument(
        "--balances", action="store_true", help="Also fetch wallet balances."
    )
    parser.add_argument(
        "--store-credentials",
        action="store_true",
        help="Prompt for an API key and secret and store them in the keyring.",
    )
    parser.add_argument("--log-level", default="INFO", help="Console log level.")
    parser.add_argument("--log-dir", type=Path, help="Write JSON logs here too.")
    return parser.parse_args(argv)


def _store_credentials(exchange: str) -> int:
    api_key = input(f"{exchange} API key: ").strip()
    api_secret = getpass.getpass(f"{exchange} API secret: ").strip()
    if not api_key or not api_secret:
        print("Both the API key and the secret are required.")
        return 1
    set_api_credentials(exchange, api_key, api_secret)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Runs the probe.

    Returns:
        0 on success, 1 on a configuration problem or failed call.
    """
    args = _parse_args(argv)
    setup_logging(console_level=args.log_level, log_dir=args.log_dir)

    if args.store_credentials:
        return _store_credentials(args.exchange)

    if args.config is None or args.market is None:
        print("A config file and a market id are required.")
        return 1

    try:
        config = load_exchange_config(args.config, args.exchange)
        with create_adapter(config) as adapter:
            print(f"--- {adapter.impl_name} ---")
            price = adapter.get_latest_market_price(args.market)
            print(f"Last price on {args.market}: {price}")

            book = adapter.get_market_orders(args.market)
            print(
                f"Order book depth: {len(book.buy_orders)} bids, "
                f"{len(book.sell_orders)} asks"
            )
            if book.buy_orders and book.sell_orders:
                print(
                    f"Best bid {book.buy_orders[0].price}, "
                    f"best ask {book.sell_orders[0].price}"
                )

            buy_fee = adapter.get_percentage_of_buy_order_taken_for_exchange_fee(
                args.market
            )
            sell_fee = adapter.get_percentage_of_sell_order_taken_for_exchange_fee(
                args.market
            )
            print(f"Fees: buy {buy_fee}, sell {sell_fee}")

            if args.balances:
                balances = adapter.get_balance_info()
                for currency, available in sorted(balances.available.items()):
                    on_hold = balances.on_hold.get(currency, 0)
                    print(f"  {currency}: {available} available, {on_hold} on hold")
    except ExchangeError as e:
        logger.error(f"Probe failed ({e.kind.value}): {e}")
        return 1

    logger.success("Probe completed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
