import enum
import threading
import types
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Generic, Self, TypeVar

import httpx
from loguru import logger

from cryptogateway.config import ExchangeConfig, NetworkConfig
from cryptogateway.envelope import Normalizer, decode
from cryptogateway.errors import (
    ConfigurationError,
    DecodeError,
    InvalidArgument,
    TradingApiError,
)
from cryptogateway.models import BalanceInfo, MarketOrderBook, OpenOrder, OrderType
from cryptogateway.signing import HmacSigner, NonceSequence, seconds_nonce_seed
from cryptogateway.transport import HttpTransport, RawResponse, classify
from cryptogateway.utils.numbers import fee_fraction, format_amount, to_decimal

T = TypeVar("T")

# --- Config item names ---
KEY_PROPERTY_NAME = "key"
SECRET_PROPERTY_NAME = "secret"
BUY_FEE_PROPERTY_NAME = "buy-fee"
SELL_FEE_PROPERTY_NAME = "sell-fee"


class AdapterState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class Operation(enum.Enum):
    """Façade operations that reach the exchange, valued by their description."""

    MARKET_ORDERS = "get Market Order Book"
    OPEN_ORDERS = "get Open Orders"
    CREATE_BUY_ORDER = "add Buy Order"
    CREATE_SELL_ORDER = "add Sell Order"
    CANCEL_ORDER = "cancel Order"
    TICKER = "get Ticker"
    BALANCES = "get Balance"


@dataclass(frozen=True)
class CallArgs:
    """The caller's arguments for one operation, already validated and formatted."""

    market_id: str | None = None
    order_id: str | None = None
    quantity: str | None = None
    price: str | None = None


@dataclass(frozen=True)
class AuthContext:
    """What a schema needs to authenticate one private request."""

    api_key: str
    nonce: int
    sign: Callable[[str], str]


@dataclass(frozen=True)
class PreparedRequest:
    """A request ready for the transport, exactly as it will be sent."""

    url: str
    method: str
    body: str | None = None
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Endpoint(Generic[T]):
    """One exchange API call and how its reply maps into the domain model.

    Attributes:
        name: The exchange's name for the call, e.g. 'getorderbook'.
        path: Where the call lives, relative to the exchange's base URL.
        build_params: Builds the logical query parameters from the call args.
        to_domain: Maps the decoded native result into the domain model. It
            receives the result and the market id of the call.
        shape: Decodes the raw JSON result into the exchange-native record.
        private: Whether the call must be authenticated.
        requires_result: Whether a null result is an error.
    """

    name: str
    path: str
    build_params: Callable[[CallArgs], dict[str, str]]
    to_domain: Callable[[Any, str | None], T]
    shape: Callable[[Any], Any] | None = None
    private: bool = False
    requires_result: bool = True


@dataclass(frozen=True)
class ExchangeSchema:
    """Everything that differs between exchanges, as data plus small functions.

    Attributes:
        name: A unique, lowercase identifier for the exchange.
        impl_name: A human-readable name for the API implementation.
        endpoints: One Endpoint per operation the exchange supports.
        prepare_public: Builds an unauthenticated request.
        prepare_private: Injects nonce and key, builds the canonical request
            string, signs it and attaches the signature.
        normalize: Maps the exchange's reply into the generic envelope shape.
        nonce_seed: Produces the first nonce at initialization.
        signing_algorithm: The hashlib name of the HMAC digest.
    """

    name: str
    impl_name: str
    endpoints: Mapping[Operation, Endpoint[Any]]
    prepare_public: Callable[[Endpoint[Any], dict[str, str]], PreparedRequest]
    prepare_private: Callable[
        [Endpoint[Any], dict[str, str], AuthContext], PreparedRequest
    ]
    normalize: Normalizer | None = None
    nonce_seed: Callable[[], int] = seconds_nonce_seed
    signing_algorithm: str = "sha512"


def no_params(_args: CallArgs) -> dict[str, str]:
    return {}


def coerce_order_type(value: Any) -> OrderType:
    """Accepts an OrderType or 'buy'/'sell' in any case."""
    if isinstance(value, OrderType):
        return value
    if isinstance(value, str):
        for order_type in OrderType:
            if value.strip().lower() == order_type.value.lower():
                return order_type
    err_msg = (
        f"Invalid order type: {value!r} - Can only be "
        f"{OrderType.BUY.value} or {OrderType.SELL.value}"
    )
    raise InvalidArgument(err_msg)


def _positive_amount(name: str, value: Any) -> str:
    try:
        amount = to_decimal(value)
    except ValueError as e:
        err_msg = f"Invalid {name}: {value!r}"
        raise InvalidArgument(err_msg) from e
    formatted = format_amount(amount) if amount > 0 else "0"
    if formatted == "0":
        err_msg = f"Invalid {name}: {value!r} - must be at least 0.00000001"
        raise InvalidArgument(err_msg)
    return formatted


def _required_text(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        err_msg = f"Invalid {name}: {value!r} - must be a non-empty string"
        raise InvalidArgument(err_msg)
    return value


class ExchangeAdapter:
    """Drives one exchange's REST API through the uniform Trading API.

    The protocol machinery (signing, nonce issue, transport, classification
    and envelope decoding) lives here once; everything exchange-specific
    comes from the `ExchangeSchema` the adapter is built with.

    An adapter must be initialized exactly once with `init` before use. If
    initialization fails the adapter stays unusable and every call raises
    `ConfigurationError`.

    Usage:
        adapter = ExchangeAdapter(BITTREX)
        adapter.init(config)
        book = adapter.get_market_orders("BTC-LTC")
    """

    def __init__(
        self, schema: ExchangeSchema, http_client: httpx.Client | None = None
    ) -> None:
        """Initializes the adapter.

        Args:
            schema: The exchange's endpoint table and request builders.
            http_client: An optional shared httpx.Client for making REST calls.
                If omitted, one is created at `init` from the network config.
        """
        self.schema = schema
        self.http_client = http_client
        self._state = AdapterState.UNINITIALIZED
        self._state_lock = threading.Lock()
        self._signer = HmacSigner(schema.signing_algorithm)
        self._nonce: NonceSequence | None = None
        self._transport: HttpTransport | None = None
        self._network_config = NetworkConfig()
        self._api_key = ""
        self._buy_fee = Decimal(0)
        self._sell_fee = Decimal(0)

    @property
    def venue_name(self) -> str:
        return self.schema.name

    @property
    def impl_name(self) -> str:
        return self.schema.impl_name

    @property
    def state(self) -> AdapterState:
        return self._state

    # --- Lifecycle ---

    def init(self, config: ExchangeConfig) -> None:
        """Loads configuration and prepares the adapter for use.

        Args:
            config: Credentials, network settings and fee percentages.

        Raises:
            ConfigurationError: If the adapter was already initialized or any
                part of the configuration is missing or invalid.
        """
        with self._state_lock:
            if self._state is not AdapterState.UNINITIALIZED:
                err_msg = (
                    f"[{self.venue_name}] Adapter cannot be initialized "
                    f"from state '{self._state.value}'."
                )
                raise ConfigurationError(err_msg)
            self._state = AdapterState.INITIALIZING

        logger.info(f"[{self.venue_name}] About to initialise adapter: {config}")
        try:
            self._api_key = config.authentication.get(KEY_PROPERTY_NAME)
            secret = config.authentication.get(SECRET_PROPERTY_NAME)
            self._network_config = config.network
            self._buy_fee = self._load_fee(config, BUY_FEE_PROPERTY_NAME)
            self._sell_fee = self._load_fee(config, SELL_FEE_PROPERTY_NAME)
            self._signer.initialize(secret)
            self._nonce = NonceSequence(self.schema.nonce_seed())
            self._transport = HttpTransport(
                config.network, client=self.http_client, venue_name=self.venue_name
            )
        except ConfigurationError:
            self._state = AdapterState.FAILED
            logger.error(f"[{self.venue_name}] Adapter initialization failed.")
            raise

        self._state = AdapterState.READY
        logger.success(f"[{self.venue_name}] Adapter ready ({self.impl_name}).")

    def _load_fee(self, config: ExchangeConfig, name: str) -> Decimal:
        raw_fee = config.other.get(name)
        try:
            fee = fee_fraction(raw_fee)
        except ValueError as e:
            err_msg = f"Config item '{name}' is not a number: {raw_fee!r}"
            raise ConfigurationError(err_msg) from e
        logger.info(f"[{self.venue_name}] {name} % in decimal format: {fee}")
        return fee

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        self.close()

    def _ensure_ready(self) -> tuple[HttpTransport, NonceSequence]:
        """Returns the transport and nonce sequence of a ready adapter."""
        transport, nonces = self._transport, self._nonce
        if (
            self._state is not AdapterState.READY
            or transport is None
            or nonces is None
        ):
            err_msg = (
                f"[{self.venue_name}] Adapter is not ready "
                f"(state: '{self._state.value}')."
            )
            raise ConfigurationError(err_msg)
        return transport, nonces

    # --- Trading API ---

    def get_market_orders(self, market_id: str) -> MarketOrderBook:
        return self._call(Operation.MARKET_ORDERS, CallArgs(market_id=market_id))

    def get_your_open_orders(self, market_id: str) -> list[OpenOrder]:
        return self._call(Operation.OPEN_ORDERS, CallArgs(market_id=market_id))

    def create_order(
        self,
        market_id: str,
        order_type: OrderType | str,
        quantity: Decimal,
        price: Decimal,
    ) -> str:
        side = coerce_order_type(order_type)
        args = CallArgs(
            market_id=_required_text("market id", market_id),
            quantity=_positive_amount("quantity", quantity),
            price=_positive_amount("price", price),
        )
        operation = (
            Operation.CREATE_BUY_ORDER
            if side is OrderType.BUY
            else Operation.CREATE_SELL_ORDER
        )
        return self._call(operation, args)

    def cancel_order(self, order_id: str, market_id: str) -> bool:
        args = CallArgs(
            market_id=market_id, order_id=_required_text("order id", order_id)
        )
        return self._call(Operation.CANCEL_ORDER, args)

    def get_latest_market_price(self, market_id: str) -> Decimal:
        return self._call(Operation.TICKER, CallArgs(market_id=market_id))

    def get_balance_info(self) -> BalanceInfo:
        return self._call(Operation.BALANCES, CallArgs())

    def get_percentage_of_buy_order_taken_for_exchange_fee(
        self, market_id: str
    ) -> Decimal:
        # Most exchanges have no fee endpoint; the configured value is used.
        self._ensure_ready()
        return self._buy_fee

    def get_percentage_of_sell_order_taken_for_exchange_fee(
        self, market_id: str
    ) -> Decimal:
        self._ensure_ready()
        return self._sell_fee

    # --- Protocol machinery ---

    def _prepare(
        self, endpoint: Endpoint[Any], args: CallArgs, nonces: NonceSequence
    ) -> PreparedRequest:
        params = endpoint.build_params(args)
        if not endpoint.private:
            return self.schema.prepare_public(endpoint, params)

        auth = AuthContext(
            api_key=self._api_key,
            nonce=nonces.next_nonce(),
            sign=self._signer.sign,
        )
        return self.schema.prepare_private(endpoint, params, auth)

    def _fail(
        self, operation: Operation, detail: str, response: RawResponse
    ) -> TradingApiError:
        err_msg = f"Failed to {operation.value} on exchange. {detail}"
        logger.error(f"[{self.venue_name}] {err_msg} Response: {response}")
        return TradingApiError(err_msg, response=response)

    def _call(self, operation: Operation, args: CallArgs) -> Any:
        """Runs one operation through the full request/response pipeline."""
        transport, nonces = self._ensure_ready()

        endpoint = self.schema.endpoints.get(operation)
        if endpoint is None:
            err_msg = f"[{self.venue_name}] Operation not supported: {operation.value}"
            raise TradingApiError(err_msg)

        request = self._prepare(endpoint, args, nonces)
        response = classify(
            transport.send(
                request.url, request.method, request.body, request.headers
            ),
            self._network_config,
        )
        logger.debug(f"[{self.venue_name}] {operation.value} response: {response}")

        if not response.is_ok:
            raise self._fail(operation, "Unexpected HTTP status.", response)

        try:
            envelope = decode(
                response.payload, endpoint.shape, normalize=self.schema.normalize
            )
        except DecodeError as e:
            raise self._fail(operation, str(e), response) from e

        if not envelope.success:
            detail = f"Exchange message: {envelope.message}"
            raise self._fail(operation, detail, response)
        if envelope.result is None and endpoint.requires_result:
            raise self._fail(operation, "Result is missing.", response)

        try:
            return endpoint.to_domain(envelope.result, args.market_id)
        except TradingApiError as e:
            raise self._fail(operation, e.message, response) from e
        except (
            AttributeError,
            KeyError,
            IndexError,
            TypeError,
            ValueError,
            InvalidOperation,
        ) as e:
            raise self._fail(operation, f"Unexpected result: {e!r}", response) from e
