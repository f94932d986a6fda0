from decimal import Decimal
from typing import Protocol, runtime_checkable

from cryptogateway.models import BalanceInfo, MarketOrderBook, OpenOrder, OrderType


@runtime_checkable
class TradingApi(Protocol):
    """The operations a trading engine or strategy may call on an exchange.

    Every exchange adapter implements exactly this set, with the same
    signatures and contracts, so callers never depend on which exchange they
    are talking to. Any operation may raise `NetworkError` (transient, the
    caller may retry on a later cycle) or `TradingApiError` (fatal for that
    call). `create_order` and `cancel_order` raise `InvalidArgument` for bad
    input before anything is sent.
    """

    @property
    def impl_name(self) -> str:
        """A human-readable name for the exchange API implementation."""
        ...

    def get_market_orders(self, market_id: str) -> MarketOrderBook:
        """Returns the current buy and sell side of the market's order book."""
        ...

    def get_your_open_orders(self, market_id: str) -> list[OpenOrder]:
        """Returns the caller's unfilled orders on the given market."""
        ...

    def create_order(
        self,
        market_id: str,
        order_type: OrderType | str,
        quantity: Decimal,
        price: Decimal,
    ) -> str:
        """Places a limit order and returns the exchange's id for it."""
        ...

    def cancel_order(self, order_id: str, market_id: str) -> bool:
        """Cancels an order. Returns True if the exchange accepted the request."""
        ...

    def get_latest_market_price(self, market_id: str) -> Decimal:
        """Returns the price of the last trade on the market."""
        ...

    def get_balance_info(self) -> BalanceInfo:
        """Returns available and on-hold balances for every wallet currency."""
        ...

    def get_percentage_of_buy_order_taken_for_exchange_fee(
        self, market_id: str
    ) -> Decimal:
        """Returns the buy fee as a fraction, e.g. 0.0025 for 0.25%."""
        ...

    def get_percentage_of_sell_order_taken_for_exchange_fee(
        self, market_id: str
    ) -> Decimal:
        """Returns the sell fee as a fraction, e.g. 0.0025 for 0.25%."""
        ...
