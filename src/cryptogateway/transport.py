import types
from dataclasses import dataclass
from typing import Self

import httpx
from loguru import logger

from cryptogateway.config import NetworkConfig
from cryptogateway.errors import NetworkError, TradingApiError
from cryptogateway.logging_config import REDACTED, redact_text

# Headers whose values must never reach a log sink.
_SENSITIVE_HEADERS = frozenset({"apisign", "sign", "key", "apikey"})

# Transport-level failures that are worth retrying on the next trade cycle.
_TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    httpx.ProxyError,
    httpx.UnsupportedProtocol,
    httpx.InvalidURL,
)


@dataclass(frozen=True)
class RawResponse:
    """The uninterpreted result of one HTTP exchange."""

    status_code: int
    payload: str

    @property
    def is_ok(self) -> bool:
        return 200 <= self.status_code < 300

    def __str__(self) -> str:
        return f"RawResponse(status_code={self.status_code}, payload={self.payload!r})"


def _redact_headers(headers: dict[str, str]) -> dict[str, str]:
    return {
        k: (REDACTED if k.lower() in _SENSITIVE_HEADERS else v)
        for k, v in headers.items()
    }


def classify(response: RawResponse, network_config: NetworkConfig) -> RawResponse:
    """Raises NetworkError for responses configured as non-fatal.

    A status code in `non_fatal_http_status_codes` is always transient. A
    non-2xx response whose body mentions one of `non_fatal_error_messages` is
    transient too. Everything else is returned unchanged for the caller to
    interpret.
    """
    if response.status_code in network_config.non_fatal_http_status_codes:
        err_msg = f"Exchange returned non-fatal HTTP status {response.status_code}."
        raise NetworkError(err_msg, response=response)

    if not response.is_ok:
        for message in network_config.non_fatal_error_messages:
            if message and message in response.payload:
                err_msg = f"Exchange returned non-fatal error message '{message}'."
                raise NetworkError(err_msg, response=response)

    return response


class HttpTransport:
    """Sends one HTTP request at a time and reports the raw outcome.

    The transport never retries and never interprets status codes: a 4xx or
    5xx answer is still a `RawResponse`. Only failures to complete the
    exchange at all are raised, as `NetworkError` when they are transient
    (timeouts, refused or reset connections, DNS failures, bad URLs) and as
    `TradingApiError` for anything unexpected.

    Usage:
        with HttpTransport(NetworkConfig(connection_timeout_seconds=10)) as t:
            response = t.send("https://bittrex.com/api/v1.1/public/getticker", "GET")
    """

    def __init__(
        self,
        network_config: NetworkConfig,
        client: httpx.Client | None = None,
        venue_name: str = "exchange",
    ) -> None:
        """Initializes the transport.

        Args:
            network_config: Timeout and non-fatal response settings.
            client: An optional pre-built httpx.Client. When given, its
                lifecycle belongs to the caller.
            venue_name: Used to prefix log messages.
        """
        self.network_config = network_config
        self.venue_name = venue_name
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(network_config.connection_timeout_seconds)
        )

    def send(
        self,
        url: str,
        method: str,
        body: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> RawResponse:
        """Executes a single HTTP request.

        Args:
            url: The absolute URL, including any query string.
            method: The HTTP method, e.g. "GET" or "POST".
            body: The request body, sent as-is.
            headers: Additional request headers.

        Returns:
            The status code and body text, for any HTTP status.

        Raises:
            NetworkError: On a transient transport failure.
            TradingApiError: On any other failure to complete the request.
        """
        headers = headers or {}
        logger.debug(
            f"[{self.venue_name}] {method} {redact_text(url)} "
            f"headers={_redact_headers(headers)}"
        )
        try:
            response = self._client.request(
                method,
                url,
                content=body.encode("utf-8") if body is not None else None,
                headers=headers,
                timeout=self.network_config.connection_timeout_seconds,
            )
        except _TRANSIENT_ERRORS as e:
            err_msg = f"Failed to connect to exchange: {type(e).__name__}: {e}"
            logger.warning(f"[{self.venue_name}] {err_msg}")
            raise NetworkError(err_msg) from e
        except httpx.HTTPError as e:
            err_msg = f"Unexpected transport error: {type(e).__name__}: {e}"
            logger.error(f"[{self.venue_name}] {err_msg}")
            raise TradingApiError(err_msg) from e

        raw = RawResponse(status_code=response.status_code, payload=response.text)
        logger.debug(f"[{self.venue_name}] Received {raw}")
        return raw

    def close(self) -> None:
        """Closes the underlying client if this transport created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        self.close()
