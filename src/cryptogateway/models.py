"""Canonical, exchange-independent value objects returned by every adapter."""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal


class OrderType(enum.Enum):
    """The side of an order."""

    BUY = "Buy"
    SELL = "Sell"


@dataclass(frozen=True)
class MarketOrder:
    """A single price level in an order book.

    `total` is derived as `price * quantity` unless given explicitly.
    """

    type: OrderType
    price: Decimal
    quantity: Decimal
    total: Decimal | None = None

    def __post_init__(self) -> None:
        if self.total is None:
            object.__setattr__(self, "total", self.price * self.quantity)


@dataclass(frozen=True)
class MarketOrderBook:
    """Both sides of an order book, in the order the exchange returned them."""

    market_id: str
    sell_orders: list[MarketOrder] = field(default_factory=list)
    buy_orders: list[MarketOrder] = field(default_factory=list)


@dataclass(frozen=True)
class OpenOrder:
    """One of the caller's own orders that has not yet been filled or cancelled.

    Several exchanges report the order value as zero, so `total` falls back
    to `price * original_quantity` when it is not supplied.
    """

    id: str
    created_at: datetime
    market_id: str
    type: OrderType
    price: Decimal
    quantity_remaining: Decimal
    original_quantity: Decimal
    total: Decimal | None = None

    def __post_init__(self) -> None:
        if self.total is None:
            object.__setattr__(self, "total", self.price * self.original_quantity)


@dataclass(frozen=True)
class BalanceInfo:
    """Wallet balances keyed by currency code.

    `on_hold` is empty for exchanges that do not report reserved funds.
    """

    available: dict[str, Decimal] = field(default_factory=dict)
    on_hold: dict[str, Decimal] = field(default_factory=dict)
