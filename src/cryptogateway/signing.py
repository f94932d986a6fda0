import hashlib
import hmac
import threading
import time

from loguru import logger

from cryptogateway.errors import ConfigurationError


def seconds_nonce_seed() -> int:
    """Seeds a nonce from the current Unix time in whole seconds."""
    return int(time.time())


def milliseconds_nonce_seed() -> int:
    """Seeds a nonce from the current Unix time in milliseconds."""
    return time.time_ns() // 1_000_000


class NonceSequence:
    """A strictly increasing integer counter for authenticated requests.

    Exchanges reject a nonce that is not greater than the last one they saw
    for the same key, so every value handed out must be unique and larger
    than all previous ones. Increments happen under a lock so that the
    sequence stays correct even if an adapter is shared between threads.
    """

    def __init__(self, seed: int) -> None:
        if not isinstance(seed, int) or seed < 0:
            err_msg = f"Nonce seed must be a non-negative integer, got {seed!r}."
            raise ConfigurationError(err_msg)
        self._next = seed
        self._lock = threading.Lock()

    def next_nonce(self) -> int:
        """Returns the current value and advances the counter by one."""
        with self._lock:
            value = self._next
            self._next += 1
        return value

    def peek(self) -> int:
        """Returns the value the next call to `next_nonce` will hand out."""
        with self._lock:
            return self._next


class HmacSigner:
    """Signs canonical request strings with an HMAC keyed by the API secret.

    The keyed context is built once by `initialize` and is never mutated
    afterwards; every `sign` call works on a copy of it, which keeps signing
    a pure function of its input and safe to call from several threads.

    Usage:
        signer = HmacSigner("sha512")
        signer.initialize(api_secret)
        signature = signer.sign("https://bittrex.com/api/v1.1/...")
    """

    def __init__(self, algorithm: str = "sha512") -> None:
        self.algorithm = algorithm
        self._prototype: hmac.HMAC | None = None

    @property
    def is_initialized(self) -> bool:
        return self._prototype is not None

    def initialize(self, secret: str) -> None:
        """Derives the keyed-hash context from the raw secret bytes.

        Args:
            secret: The shared API secret.

        Raises:
            ConfigurationError: If the hash algorithm is unavailable or the
                secret is empty.
        """
        if self.algorithm.lower() not in hashlib.algorithms_available:
            err_msg = (
                f"Failed to set up request signing: hash algorithm "
                f"'{self.algorithm}' is not available."
            )
            logger.error(err_msg)
            raise ConfigurationError(err_msg)
        if not isinstance(secret, str) or not secret:
            err_msg = "Failed to set up request signing: the secret key is empty."
            logger.error(err_msg)
            raise ConfigurationError(err_msg)

        try:
            self._prototype = hmac.new(
                secret.encode("utf-8"), digestmod=self.algorithm.lower()
            )
        except ValueError as e:
            err_msg = f"Failed to set up request signing: {e}"
            logger.error(err_msg)
            raise ConfigurationError(err_msg) from e

    def sign(self, canonical: str) -> str:
        """Returns the lowercase hex digest of `canonical` under the secret key.

        Raises:
            ConfigurationError: If `initialize` has not succeeded.
        """
        if self._prototype is None:
            err_msg = "Request signing has not been initialized."
            raise ConfigurationError(err_msg)
        mac = self._prototype.copy()
        mac.update(canonical.encode("utf-8"))
        return mac.hexdigest()
