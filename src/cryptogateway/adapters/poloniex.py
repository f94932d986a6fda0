from decimal import Decimal
from typing import Any, NamedTuple
from urllib.parse import urlencode

from cryptogateway.adapters.base import (
    AuthContext,
    CallArgs,
    Endpoint,
    ExchangeSchema,
    Operation,
    PreparedRequest,
    no_params,
)
from cryptogateway.errors import TradingApiError
from cryptogateway.models import (
    BalanceInfo,
    MarketOrder,
    MarketOrderBook,
    OpenOrder,
    OrderType,
)
from cryptogateway.signing import milliseconds_nonce_seed
from cryptogateway.utils.numbers import to_decimal
from cryptogateway.utils.time import parse_exchange_timestamp

_BASE_API_URL: str = "https://poloniex.com"

_PUBLIC_PATH = "public"
_TRADING_PATH = "tradingApi"

# Levels requested per side of the order book.
ORDER_BOOK_DEPTH = 50

DATE_FORMATS: tuple[str, ...] = ("%Y-%m-%d %H:%M:%S.%f", "%Y-%m-%d %H:%M:%S")

_ORDER_TYPES: dict[str, OrderType] = {
    "buy": OrderType.BUY,
    "sell": OrderType.SELL,
}


class PoloniexLevel(NamedTuple):
    price: Decimal
    quantity: Decimal


PoloniexBook = tuple[list[PoloniexLevel], list[PoloniexLevel]]


class PoloniexOpenOrder(NamedTuple):
    order_number: str
    type: str
    rate: Decimal
    amount: Decimal
    starting_amount: Decimal
    date: str


class PoloniexBalance(NamedTuple):
    available: Decimal
    on_orders: Decimal


def normalize(document: Any) -> Any:
    """Wraps a Poloniex reply in the generic envelope shape.

    Poloniex has no envelope: failures are reported as {"error": "..."} and
    anything else is the result itself.
    """
    if isinstance(document, dict) and "error" in document:
        return {"success": False, "message": document["error"], "result": None}
    return {"success": True, "message": None, "result": document}


# --- Result shapes ---


def _decode_levels(rows: Any) -> list[PoloniexLevel]:
    return [PoloniexLevel(to_decimal(price), to_decimal(qty)) for price, qty in rows]


def decode_order_book(result: Any) -> PoloniexBook:
    """Returns (asks, bids)."""
    return _decode_levels(result["asks"]), _decode_levels(result["bids"])


def decode_open_orders(result: Any) -> list[PoloniexOpenOrder]:
    return [
        PoloniexOpenOrder(
            order_number=str(entry["orderNumber"]),
            type=str(entry["type"]),
            rate=to_decimal(entry["rate"]),
            amount=to_decimal(entry["amount"]),
            starting_amount=to_decimal(entry.get("startingAmount", entry["amount"])),
            date=entry["date"],
        )
        for entry in result
    ]


def decode_order_number(result: Any) -> str:
    return str(result["orderNumber"])


def decode_balances(result: Any) -> dict[str, PoloniexBalance]:
    return {
        currency: PoloniexBalance(
            to_decimal(entry["available"]), to_decimal(entry["onOrders"])
        )
        for currency, entry in result.items()
    }


# --- Domain mapping ---


def to_market_order_book(
    book: PoloniexBook, market_id: str | None
) -> MarketOrderBook:
    asks, bids = book
    return MarketOrderBook(
        market_id=market_id or "",
        sell_orders=[MarketOrder(OrderType.SELL, a.price, a.quantity) for a in asks],
        buy_orders=[MarketOrder(OrderType.BUY, b.price, b.quantity) for b in bids],
    )


def to_open_orders(
    orders: list[PoloniexOpenOrder], market_id: str | None
) -> list[OpenOrder]:
    open_orders = []
    for order in orders:
        order_type = _ORDER_TYPES.get(order.type)
        if order_type is None:
            err_msg = f"Unrecognised order type received. Value: {order.type}"
            raise TradingApiError(err_msg)
        try:
            created_at = parse_exchange_timestamp(order.date, DATE_FORMATS)
        except ValueError as e:
            raise TradingApiError(str(e)) from e

        open_orders.append(
            OpenOrder(
                id=order.order_number,
                created_at=created_at,
                market_id=market_id or "",
                type=order_type,
                price=order.rate,
                quantity_remaining=order.amount,
                original_quantity=order.starting_amount,
            )
        )
    return open_orders


def to_last_price(tickers: Any, market_id: str | None) -> Decimal:
    # returnTicker answers for every market at once.
    ticker = tickers.get(market_id) if market_id else None
    if ticker is None:
        err_msg = f"No ticker returned for market '{market_id}'."
        raise TradingApiError(err_msg)
    return to_decimal(ticker["last"])


def to_cancelled(result: Any, _market_id: str | None) -> bool:
    return str(result.get("success")) == "1"


def to_balance_info(
    balances: dict[str, PoloniexBalance], _market_id: str | None
) -> BalanceInfo:
    return BalanceInfo(
        available={c: b.available for c, b in balances.items()},
        on_hold={c: b.on_orders for c, b in balances.items()},
    )


def _unchanged(value: Any, _market_id: str | None) -> Any:
    return value


# --- Request building ---


def _pair_params(args: CallArgs) -> dict[str, str]:
    return {"currencyPair": args.market_id or ""}


def _order_book_params(args: CallArgs) -> dict[str, str]:
    return {"currencyPair": args.market_id or "", "depth": str(ORDER_BOOK_DEPTH)}


def _limit_order_params(args: CallArgs) -> dict[str, str]:
    return {
        "currencyPair": args.market_id or "",
        "rate": args.price or "",
        "amount": args.quantity or "",
    }


def _cancel_params(args: CallArgs) -> dict[str, str]:
    return {"orderNumber": args.order_id or ""}


def build_public_request(
    endpoint: Endpoint[Any], params: dict[str, str]
) -> PreparedRequest:
    query = urlencode({"command": endpoint.name, **params})
    return PreparedRequest(
        url=f"{_BASE_API_URL}/{endpoint.path}?{query}", method="GET"
    )


def build_canonical_body(
    endpoint: Endpoint[Any], params: dict[str, str], nonce: int
) -> str:
    """Builds the form body that is both signed and sent: command, params, nonce."""
    return urlencode({"command": endpoint.name, **params, "nonce": str(nonce)})


def build_private_request(
    endpoint: Endpoint[Any], params: dict[str, str], auth: AuthContext
) -> PreparedRequest:
    body = build_canonical_body(endpoint, params, auth.nonce)
    return PreparedRequest(
        url=f"{_BASE_API_URL}/{endpoint.path}",
        method="POST",
        body=body,
        headers={
            "Content-Type": "application/x-www-form-urlencoded",
            "Key": auth.api_key,
            "Sign": auth.sign(body),
        },
    )


POLONIEX = ExchangeSchema(
    name="poloniex",
    impl_name="Poloniex Public and Trading API",
    endpoints={
        Operation.MARKET_ORDERS: Endpoint(
            name="returnOrderBook",
            path=_PUBLIC_PATH,
            build_params=_order_book_params,
            shape=decode_order_book,
            to_domain=to_market_order_book,
        ),
        Operation.OPEN_ORDERS: Endpoint(
            name="returnOpenOrders",
            path=_TRADING_PATH,
            build_params=_pair_params,
            shape=decode_open_orders,
            to_domain=to_open_orders,
            private=True,
        ),
        Operation.CREATE_BUY_ORDER: Endpoint(
            name="buy",
            path=_TRADING_PATH,
            build_params=_limit_order_params,
            shape=decode_order_number,
            to_domain=_unchanged,
            private=True,
        ),
        Operation.CREATE_SELL_ORDER: Endpoint(
            name="sell",
            path=_TRADING_PATH,
            build_params=_limit_order_params,
            shape=decode_order_number,
            to_domain=_unchanged,
            private=True,
        ),
        Operation.CANCEL_ORDER: Endpoint(
            name="cancelOrder",
            path=_TRADING_PATH,
            build_params=_cancel_params,
            to_domain=to_cancelled,
            private=True,
        ),
        Operation.TICKER: Endpoint(
            name="returnTicker",
            path=_PUBLIC_PATH,
            build_params=no_params,
            to_domain=to_last_price,
        ),
        Operation.BALANCES: Endpoint(
            name="returnCompleteBalances",
            path=_TRADING_PATH,
            build_params=no_params,
            shape=decode_balances,
            to_domain=to_balance_info,
            private=True,
        ),
    },
    prepare_public=build_public_request,
    prepare_private=build_private_request,
    normalize=normalize,
    nonce_seed=milliseconds_nonce_seed,
)
