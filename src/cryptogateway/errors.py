import enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cryptogateway.transport import RawResponse


class ErrorKind(enum.Enum):
    """The four ways a call into an exchange adapter can fail."""

    CONFIGURATION = "configuration"
    NETWORK = "network"
    TRADING_API = "trading_api"
    INVALID_ARGUMENT = "invalid_argument"


class ExchangeError(Exception):
    """Base class for every error raised by an exchange adapter.

    Callers may either catch one of the subclasses below or catch this class
    and branch on `kind`. Only `ErrorKind.NETWORK` errors are worth retrying;
    the decision of whether and when to retry belongs to the caller.

    Attributes:
        kind: The category of the failure.
        response: The raw exchange response, when one was received.
    """

    kind: ErrorKind = ErrorKind.TRADING_API

    def __init__(
        self,
        message: str,
        *,
        response: "RawResponse | None" = None,
        kind: ErrorKind | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.response = response
        if kind is not None:
            self.kind = kind

    @property
    def retryable(self) -> bool:
        """True if the failure is transient and the call may be re-invoked."""
        return self.kind is ErrorKind.NETWORK

    def __str__(self) -> str:
        if self.response is None:
            return self.message
        return f"{self.message} Response: {self.response}"


class ConfigurationError(ExchangeError):
    """The adapter cannot reach (or is not in) the ready state."""

    kind = ErrorKind.CONFIGURATION


class NetworkError(ExchangeError):
    """A transient transport failure, or a response configured as non-fatal."""

    kind = ErrorKind.NETWORK


class TradingApiError(ExchangeError):
    """The exchange answered, but the answer is unusable for this call."""

    kind = ErrorKind.TRADING_API


class InvalidArgument(ExchangeError, ValueError):
    """The caller passed an unsupported value; raised before any network call."""

    kind = ErrorKind.INVALID_ARGUMENT


class DecodeError(ValueError):
    """A response body does not fit the generic envelope shape."""
