# src/cryptogateway/__init__.py
"""CryptoGateway: one normalized trading interface over many exchange REST APIs.

The trading engine talks to every exchange through the same `TradingApi`
operations; exchange differences in endpoints, authentication, reply shapes
and field names are absorbed by the adapters.

Key modules:
- `adapters`: The shared adapter and the per-exchange schemas.
- `signing`: HMAC request signing and nonce issue.
- `transport`: HTTP transport and response classification.
- `envelope`: Decoding of `{success, message, result}` replies.
- `models`: Canonical value objects returned to the engine.
- `errors`: The error taxonomy every operation raises from.
"""

import importlib.metadata

from cryptogateway.adapters import create_adapter
from cryptogateway.errors import (
    ConfigurationError,
    ErrorKind,
    ExchangeError,
    InvalidArgument,
    NetworkError,
    TradingApiError,
)
from cryptogateway.trading_api import TradingApi

try:
    __version__: str = importlib.metadata.version("cryptogateway")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0-dev"

__all__ = [
    "ConfigurationError",
    "ErrorKind",
    "ExchangeError",
    "InvalidArgument",
    "NetworkError",
    "TradingApi",
    "TradingApiError",
    "create_adapter",
]
