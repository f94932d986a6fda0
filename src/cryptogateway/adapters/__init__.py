# src/cryptogateway/adapters/__init__.py
"""This package contains the exchange adapters.

A single `ExchangeAdapter` class in `cryptogateway.adapters.base` holds the
protocol machinery shared by every exchange: request signing, nonce issue,
transport, response classification and envelope decoding. Each exchange
module contributes only an `ExchangeSchema`: its endpoints, how requests are
built and signed, and how its payloads map into the domain model.
"""

import httpx

from cryptogateway.adapters.base import ExchangeAdapter, ExchangeSchema
from cryptogateway.adapters.bittrex import BITTREX
from cryptogateway.adapters.poloniex import POLONIEX
from cryptogateway.config import ExchangeConfig
from cryptogateway.errors import ConfigurationError

SCHEMAS: dict[str, ExchangeSchema] = {s.name: s for s in (BITTREX, POLONIEX)}


def create_adapter(
    config: ExchangeConfig, http_client: httpx.Client | None = None
) -> ExchangeAdapter:
    """Builds and initializes the adapter for `config.exchange_name`.

    Raises:
        ConfigurationError: If the exchange is unknown or initialization fails.
    """
    schema = SCHEMAS.get(config.exchange_name.lower())
    if schema is None:
        err_msg = (
            f"Unsupported exchange '{config.exchange_name}'. "
            f"Supported: {sorted(SCHEMAS)}"
        )
        raise ConfigurationError(err_msg)
    adapter = ExchangeAdapter(schema, http_client=http_client)
    adapter.init(config)
    return adapter


__all__ = ["SCHEMAS", "ExchangeAdapter", "ExchangeSchema", "create_adapter"]
