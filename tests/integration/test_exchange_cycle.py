"""Runs a full trading cycle against each supported exchange's canned API.

Each cycle goes through `create_adapter`, exactly as a trading engine would,
and only talks to the adapter through the `TradingApi` protocol.
"""

from decimal import Decimal

import httpx
import pytest
from support import RecordingHandler, make_config

from cryptogateway import ExchangeError, TradingApi, create_adapter
from cryptogateway.adapters import SCHEMAS
from cryptogateway.config import ExchangeConfig, NetworkConfig
from cryptogateway.errors import ConfigurationError, ErrorKind
from cryptogateway.models import OrderType


def _bittrex_routes(handler: RecordingHandler) -> None:
    def ok(result: object) -> dict:
        return {"success": True, "message": "", "result": result}

    handler.add_json("getorderbook", ok({"buy": [[99, 1]], "sell": [[101, 2]]}))
    handler.add_json("getticker", ok({"Last": 100}))
    handler.add_json(
        "getbalances", ok([{"Currency": "BTC", "Available": 3, "Pending": 1}])
    )
    handler.add_json("buylimit", ok({"uuid": "order-1"}))
    handler.add_json(
        "getopenorders",
        ok(
            [
                {
                    "OrderUuid": "order-1",
                    "Exchange": "BTC-LTC",
                    "OrderType": "LIMIT_BUY",
                    "Quantity": 1,
                    "QuantityRemaining": 1,
                    "Limit": 99,
                    "Opened": "2017-01-01T00:00:00.123",
                }
            ]
        ),
    )
    handler.add_json("market/cancel", ok(None))


def _poloniex_routes(handler: RecordingHandler) -> None:
    handler.add_json(
        "command=returnOrderBook", {"asks": [["101", 2]], "bids": [["99", 1]]}
    )
    handler.add_json("command=returnTicker", {"BTC_LTC": {"last": "100"}})
    handler.add_json(
        "command=returnCompleteBalances",
        {"BTC": {"available": "3", "onOrders": "1"}},
    )
    handler.add_json("command=buy&", {"orderNumber": "order-1"})
    handler.add_json(
        "command=returnOpenOrders",
        [
            {
                "orderNumber": "order-1",
                "type": "buy",
                "rate": "99",
                "amount": "1",
                "date": "2017-01-01 00:00:00",
            }
        ],
    )
    handler.add_json("command=cancelOrder", {"success": 1})


CASES = [
    pytest.param("bittrex", "BTC-LTC", _bittrex_routes, id="bittrex"),
    pytest.param("poloniex", "BTC_LTC", _poloniex_routes, id="poloniex"),
]


@pytest.mark.parametrize(("exchange", "market_id", "routes"), CASES)
def test_full_trading_cycle(exchange: str, market_id: str, routes) -> None:
    handler = RecordingHandler()
    routes(handler)
    client = httpx.Client(transport=httpx.MockTransport(handler))

    api: TradingApi = create_adapter(make_config(exchange), http_client=client)
    assert isinstance(api, TradingApi)

    book = api.get_market_orders(market_id)
    assert book.sell_orders[0].price == Decimal(101)
    assert book.buy_orders[0].price == Decimal(99)

    assert api.get_latest_market_price(market_id) == Decimal(100)

    balances = api.get_balance_info()
    assert balances.available["BTC"] == Decimal(3)
    assert balances.on_hold["BTC"] == Decimal(1)

    fee = api.get_percentage_of_buy_order_taken_for_exchange_fee(market_id)
    assert fee == Decimal("0.0025")

    order_id = api.create_order(market_id, OrderType.BUY, Decimal(1), Decimal(99))
    assert order_id == "order-1"

    open_orders = api.get_your_open_orders(market_id)
    assert [o.id for o in open_orders] == [order_id]
    assert open_orders[0].total == Decimal(99)

    assert api.cancel_order(order_id, market_id) is True


@pytest.mark.parametrize("exchange", sorted(SCHEMAS))
def test_engine_can_branch_on_error_kind(exchange: str) -> None:
    """A trading loop retries network failures and stops on everything else."""

    def unavailable(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="Service Unavailable")

    client = httpx.Client(transport=httpx.MockTransport(unavailable))
    network = NetworkConfig(non_fatal_http_status_codes=frozenset({503}))
    api = create_adapter(make_config(exchange, network=network), http_client=client)

    with pytest.raises(ExchangeError) as exc_info:
        api.get_balance_info()

    assert exc_info.value.kind is ErrorKind.NETWORK
    assert exc_info.value.retryable


def test_unknown_exchange_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match="Unsupported exchange"):
        create_adapter(ExchangeConfig(exchange_name="mtgox"))


def test_exchange_name_lookup_is_case_insensitive() -> None:
    client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    api = create_adapter(make_config("Bittrex"), http_client=client)
    assert api.venue_name == "bittrex"
