from dataclasses import dataclass
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
from cryptogateway.signing import seconds_nonce_seed
from cryptogateway.utils.numbers import to_decimal
from cryptogateway.utils.time import parse_exchange_timestamp

_BASE_API_URL: str = "https://bittrex.com/api/v1.1"

_PUBLIC_PATH = "public"
_ACCOUNT_PATH = "account"
_MARKET_PATH = "market"

# Bittrex reports UTC times, usually with milliseconds but not always.
DATE_FORMATS: tuple[str, ...] = ("%Y-%m-%dT%H:%M:%S.%f", "%Y-%m-%dT%H:%M:%S")

_ORDER_TYPES: dict[str, OrderType] = {
    "LIMIT_BUY": OrderType.BUY,
    "LIMIT_SELL": OrderType.SELL,
}


# --- Native records ---


class BittrexLevel(NamedTuple):
    price: Decimal
    quantity: Decimal


@dataclass(frozen=True)
class BittrexOrderBook:
    buy: list[BittrexLevel]
    sell: list[BittrexLevel]


@dataclass(frozen=True)
class BittrexOpenOrder:
    order_uuid: str
    exchange: str
    order_type: str
    quantity: Decimal
    quantity_remaining: Decimal
    limit: Decimal
    opened: str


@dataclass(frozen=True)
class BittrexBalance:
    currency: str
    available: Decimal
    pending: Decimal


# --- Result shapes ---


def _decode_level(row: Any) -> BittrexLevel:
    # Rows arrive either as [price, quantity] or as {"Rate": .., "Quantity": ..}.
    if isinstance(row, dict):
        return BittrexLevel(to_decimal(row["Rate"]), to_decimal(row["Quantity"]))
    price, quantity = row
    return BittrexLevel(to_decimal(price), to_decimal(quantity))


def decode_order_book(result: Any) -> BittrexOrderBook:
    return BittrexOrderBook(
        buy=[_decode_level(row) for row in result["buy"] or []],
        sell=[_decode_level(row) for row in result["sell"] or []],
    )


def _decode_open_order(
    entry: dict[str, Any], order_id: str | None = None
) -> BittrexOpenOrder:
    return BittrexOpenOrder(
        order_uuid=str(order_id if order_id is not None else entry["OrderUuid"]),
        exchange=str(entry["Exchange"]),
        order_type=str(entry["OrderType"]),
        quantity=to_decimal(entry["Quantity"]),
        quantity_remaining=to_decimal(entry["QuantityRemaining"]),
        limit=to_decimal(entry["Limit"]),
        opened=entry["Opened"],
    )


def decode_open_orders(result: Any) -> list[BittrexOpenOrder]:
    # Older API revisions wrap the orders as {"open": {order_id: order}}.
    if isinstance(result, dict):
        return [
            _decode_open_order(entry, order_id)
            for order_id, entry in result["open"].items()
        ]
    return [_decode_open_order(entry) for entry in result]


def decode_order_id(result: Any) -> str:
    order_id = result["uuid"]
    if not order_id:
        err_msg = "Order id is empty."
        raise ValueError(err_msg)
    return str(order_id)


def decode_last_price(result: Any) -> Decimal:
    return to_decimal(result["Last"])


def decode_balances(result: Any) -> list[BittrexBalance]:
    return [
        BittrexBalance(
            currency=str(entry["Currency"]),
            available=to_decimal(entry["Available"]),
            pending=to_decimal(entry["Pending"]),
        )
        for entry in result
    ]


# --- Domain mapping ---


def to_market_order_book(
    book: BittrexOrderBook, market_id: str | None
) -> MarketOrderBook:
    return MarketOrderBook(
        market_id=market_id or "",
        sell_orders=[
            MarketOrder(OrderType.SELL, level.price, level.quantity)
            for level in book.sell
        ],
        buy_orders=[
            MarketOrder(OrderType.BUY, level.price, level.quantity)
            for level in book.buy
        ],
    )


def to_open_orders(
    orders: list[BittrexOpenOrder], market_id: str | None
) -> list[OpenOrder]:
    open_orders = []
    for order in orders:
        if market_id is not None and order.exchange.lower() != market_id.lower():
            continue

        order_type = _ORDER_TYPES.get(order.order_type)
        if order_type is None:
            err_msg = f"Unrecognised order type received. Value: {order.order_type}"
            raise TradingApiError(err_msg)

        try:
            created_at = parse_exchange_timestamp(order.opened, DATE_FORMATS)
        except ValueError as e:
            raise TradingApiError(str(e)) from e

        # Bittrex documents a 'cost' field for the order value, but it is always 0.
        open_orders.append(
            OpenOrder(
                id=order.order_uuid,
                created_at=created_at,
                market_id=market_id or order.exchange,
                type=order_type,
                price=order.limit,
                quantity_remaining=order.quantity_remaining,
                original_quantity=order.quantity,
            )
        )
    return open_orders


def to_balance_info(
    balances: list[BittrexBalance], _market_id: str | None
) -> BalanceInfo:
    return BalanceInfo(
        available={b.currency: b.available for b in balances},
        on_hold={b.currency: b.pending for b in balances},
    )


def _unchanged(value: Any, _market_id: str | None) -> Any:
    return value


def _cancelled(_result: Any, _market_id: str | None) -> bool:
    return True


# --- Request building ---


def _market_params(args: CallArgs) -> dict[str, str]:
    return {"market": args.market_id or ""}


def _order_book_params(args: CallArgs) -> dict[str, str]:
    # Both sides of the book in one call.
    return {"market": args.market_id or "", "type": "both"}


def _limit_order_params(args: CallArgs) -> dict[str, str]:
    return {
        "market": args.market_id or "",
        "quantity": args.quantity or "",
        "rate": args.price or "",
    }


def _cancel_params(args: CallArgs) -> dict[str, str]:
    return {"uuid": args.order_id or ""}


def build_public_request(
    endpoint: Endpoint[Any], params: dict[str, str]
) -> PreparedRequest:
    url = f"{_BASE_API_URL}/{endpoint.path}/{endpoint.name}"
    if params:
        url += "?" + urlencode(params)
    return PreparedRequest(
        url=url,
        method="GET",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )


def build_canonical_url(
    endpoint: Endpoint[Any], params: dict[str, str], api_key: str, nonce: int
) -> str:
    """Builds the exact URL that is both signed and requested.

    The nonce and API key are appended after the call's own parameters, in
    that order, so the same inputs always produce the same string.
    """
    query = {**params, "nonce": str(nonce), "apikey": api_key}
    return f"{_BASE_API_URL}/{endpoint.path}/{endpoint.name}?{urlencode(query)}"


def build_private_request(
    endpoint: Endpoint[Any], params: dict[str, str], auth: AuthContext
) -> PreparedRequest:
    url = build_canonical_url(endpoint, params, auth.api_key, auth.nonce)
    return PreparedRequest(
        url=url,
        method="POST",
        body="",
        headers={"apisign": auth.sign(url)},
    )


BITTREX = ExchangeSchema(
    name="bittrex",
    impl_name="Bittrex API v1.1",
    endpoints={
        Operation.MARKET_ORDERS: Endpoint(
            name="getorderbook",
            path=_PUBLIC_PATH,
            build_params=_order_book_params,
            shape=decode_order_book,
            to_domain=to_market_order_book,
        ),
        Operation.OPEN_ORDERS: Endpoint(
            name="getopenorders",
            path=_MARKET_PATH,
            build_params=_market_params,
            shape=decode_open_orders,
            to_domain=to_open_orders,
            private=True,
        ),
        Operation.CREATE_BUY_ORDER: Endpoint(
            name="buylimit",
            path=_MARKET_PATH,
            build_params=_limit_order_params,
            shape=decode_order_id,
            to_domain=_unchanged,
            private=True,
        ),
        Operation.CREATE_SELL_ORDER: Endpoint(
            name="selllimit",
            path=_MARKET_PATH,
            build_params=_limit_order_params,
            shape=decode_order_id,
            to_domain=_unchanged,
            private=True,
        ),
        Operation.CANCEL_ORDER: Endpoint(
            name="cancel",
            path=_MARKET_PATH,
            build_params=_cancel_params,
            to_domain=_cancelled,
            private=True,
            requires_result=False,
        ),
        Operation.TICKER: Endpoint(
            name="getticker",
            path=_PUBLIC_PATH,
            build_params=_market_params,
            shape=decode_last_price,
            to_domain=_unchanged,
        ),
        Operation.BALANCES: Endpoint(
            name="getbalances",
            path=_ACCOUNT_PATH,
            build_params=no_params,
            shape=decode_balances,
            to_domain=to_balance_info,
            private=True,
        ),
    },
    prepare_public=build_public_request,
    prepare_private=build_private_request,
    nonce_seed=seconds_nonce_seed,
)
