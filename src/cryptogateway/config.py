from dataclasses import dataclass, field
from pathlib import Path
import tomllib
from typing import Any

import keyring
from keyring.errors import KeyringError
from loguru import logger

from cryptogateway.errors import ConfigurationError

# --- Constants ---
APP_NAME = "cryptogateway"

# --- Keyring Service Name ---
KEYRING_SERVICE_NAME = f"{APP_NAME.lower()}-api-keys"

DEFAULT_CONNECTION_TIMEOUT_S = 30.0


# --- Dataclass Models for Exchange Settings ---


@dataclass(frozen=True)
class AuthenticationConfig:
    """Named secrets for an exchange, minimally 'key' and 'secret'."""

    items: dict[str, str] = field(default_factory=dict)

    def get(self, name: str) -> str:
        """Returns a required item, raising if it is missing or blank."""
        value = self.items.get(name)
        if not isinstance(value, str) or not value.strip():
            err_msg = f"Authentication config item '{name}' is missing or empty."
            raise ConfigurationError(err_msg)
        return value

    def __repr__(self) -> str:
        # Values are secrets; only the names are safe to show.
        return f"AuthenticationConfig(items={sorted(self.items)})"

    @classmethod
    def from_keyring(cls, exchange_name: str) -> "AuthenticationConfig":
        """Builds the config from API credentials stored in the system keyring."""
        api_key, api_secret = get_api_credentials(exchange_name)
        items = {}
        if api_key:
            items["key"] = api_key
        if api_secret:
            items["secret"] = api_secret
        return cls(items=items)


@dataclass(frozen=True)
class NetworkConfig:
    """Transport settings, plus the responses the engine treats as transient."""

    connection_timeout_seconds: float = DEFAULT_CONNECTION_TIMEOUT_S
    non_fatal_http_status_codes: frozenset[int] = frozenset()
    non_fatal_error_messages: frozenset[str] = frozenset()

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "NetworkConfig":
        """Builds a NetworkConfig from a parsed TOML table."""
        try:
            timeout = float(
                data.get("connection_timeout_seconds", DEFAULT_CONNECTION_TIMEOUT_S)
            )
            codes = frozenset(
                int(c) for c in data.get("non_fatal_http_status_codes", [])
            )
            messages = frozenset(
                str(m) for m in data.get("non_fatal_error_messages", [])
            )
        except (TypeError, ValueError) as e:
            err_msg = f"Invalid network config: {e}"
            raise ConfigurationError(err_msg) from e
        if timeout <= 0:
            err_msg = "connection_timeout_seconds must be a positive number."
            raise ConfigurationError(err_msg)
        return cls(timeout, codes, messages)


@dataclass(frozen=True)
class OtherConfig:
    """Adapter-specific string settings, e.g. 'buy-fee' and 'sell-fee'."""

    items: dict[str, str] = field(default_factory=dict)

    def get(self, name: str) -> str:
        """Returns a required item, raising if it is missing or blank."""
        value = self.items.get(name)
        if value is None or not str(value).strip():
            err_msg = f"Other config item '{name}' is missing or empty."
            raise ConfigurationError(err_msg)
        return str(value)


@dataclass(frozen=True)
class ExchangeConfig:
    """Root container for everything one adapter needs at initialization."""

    exchange_name: str
    authentication: AuthenticationConfig = field(default_factory=AuthenticationConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    other: OtherConfig = field(default_factory=OtherConfig)


def load_exchange_config(path: Path, exchange_name: str) -> ExchangeConfig:
    """Loads the settings for one exchange from a TOML file.

    The file holds one table per exchange:

        [exchanges.bittrex.authentication]
        key = "..."
        secret = "..."

        [exchanges.bittrex.network]
        connection_timeout_seconds = 20
        non_fatal_http_status_codes = [502, 503, 504]
        non_fatal_error_messages = ["Connection reset"]

        [exchanges.bittrex.other]
        buy-fee = "0.25"
        sell-fee = "0.25"

    If the authentication table is absent, credentials are read from the
    system keyring instead.

    Args:
        path: The path to the configuration file.
        exchange_name: The lower-case name of the exchange (e.g., 'bittrex').

    Returns:
        A populated ExchangeConfig.

    Raises:
        ConfigurationError: If the file is missing, malformed, or has no table
            for the exchange.
    """
    exchange_name = exchange_name.lower()
    logger.info(f"Loading '{exchange_name}' configuration from '{path}'...")

    try:
        with path.open("rb") as f:
            document = tomllib.load(f)
    except FileNotFoundError as e:
        err_msg = f"Configuration file not found: '{path}'."
        raise ConfigurationError(err_msg) from e
    except tomllib.TOMLDecodeError as e:
        err_msg = f"Error decoding TOML from '{path}': {e}"
        raise ConfigurationError(err_msg) from e

    table = document.get("exchanges", {}).get(exchange_name)
    if not isinstance(table, dict):
        err_msg = f"No [exchanges.{exchange_name}] table in '{path}'."
        raise ConfigurationError(err_msg)

    if "authentication" in table:
        authentication = AuthenticationConfig(
            items={k: str(v) for k, v in table["authentication"].items()}
        )
    else:
        logger.debug(f"No credentials in file for '{exchange_name}', using keyring.")
        authentication = AuthenticationConfig.from_keyring(exchange_name)

    config = ExchangeConfig(
        exchange_name=exchange_name,
        authentication=authentication,
        network=NetworkConfig.from_mapping(table.get("network", {})),
        other=OtherConfig(items={k: str(v) for k, v in table.get("other", {}).items()}),
    )
    logger.success(f"Loaded configuration for '{exchange_name}'.")
    return config


# --- Keyring Management ---


def get_api_credentials(exchange_name: str) -> tuple[str | None, str | None]:
    """Retrieves API key and secret for a given exchange from the system keyring.

    Args:
        exchange_name: The lower-case name of the exchange (e.g., 'bittrex').

    Returns:
        A tuple containing (api_key, api_secret). Returns (None, None) if not found.
    """
    exchange_name = exchange_name.lower()
    try:
        api_key = keyring.get_password(KEYRING_SERVICE_NAME, f"{exchange_name}_key")
        api_secret = keyring.get_password(
            KEYRING_SERVICE_NAME, f"{exchange_name}_secret"
        )
        if api_key or api_secret:
            logger.debug(f"Retrieved credentials for '{exchange_name}' from keyring.")
        return api_key, api_secret
    except KeyringError as e:
        logger.error(f"Could not retrieve credentials from keyring: {e}")
        return None, None


def set_api_credentials(exchange_name: str, api_key: str, api_secret: str) -> None:
    """Stores API key and secret for an exchange in the system keyring.

    Args:
        exchange_name: The lower-case name of the exchange.
        api_key: The API key to store.
        api_secret: The API secret to store.
    """
    exchange_name = exchange_name.lower()
    try:
        keyring.set_password(KEYRING_SERVICE_NAME, f"{exchange_name}_key", api_key)
        keyring.set_password(
            KEYRING_SERVICE_NAME, f"{exchange_name}_secret", api_secret
        )
        logger.info(
            f"Successfully stored credentials for '{exchange_name}' in keyring."
        )
    except KeyringError as e:
        logger.error(f"Could not store credentials in keyring: {e}")
