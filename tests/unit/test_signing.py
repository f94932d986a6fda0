import threading

import pytest
from pytest_mock import MockerFixture

from cryptogateway.errors import ConfigurationError
from cryptogateway.signing import (
    HmacSigner,
    NonceSequence,
    milliseconds_nonce_seed,
    seconds_nonce_seed,
)

# HMAC-SHA512 of "test" keyed with "testest".
REFERENCE_SIGNATURE = (
    "7333d46949b6001c4acf6ebabab423e00acf67e861e0fb3edb3b1b38e0268969"
    "8d9394b92ab64881cbc6ab641f769cbc8c79a820af9f5694e5d8f225d5e64ff1"
)


@pytest.fixture
def signer() -> HmacSigner:
    """Provides a signer initialized with the reference secret."""
    s = HmacSigner("sha512")
    s.initialize("testest")
    return s


def test_sign_reproduces_reference_digest(signer: HmacSigner) -> None:
    """Tests the signature against a known HMAC-SHA512 value."""
    signature = signer.sign("test")
    assert signature == REFERENCE_SIGNATURE
    assert len(signature) == 128
    assert signature == signature.lower()


def test_sign_is_deterministic(signer: HmacSigner) -> None:
    """The same input must always yield the same signature."""
    url = "https://bittrex.com/api/v1.1/market/getopenorders?nonce=1&apikey=xxx"
    assert signer.sign(url) == signer.sign(url)
    assert signer.sign(url) != signer.sign(url + "0")


def test_sign_before_initialize_raises() -> None:
    s = HmacSigner()
    assert not s.is_initialized
    with pytest.raises(ConfigurationError, match="not been initialized"):
        s.sign("test")


def test_initialize_rejects_empty_secret() -> None:
    with pytest.raises(ConfigurationError, match="secret key is empty"):
        HmacSigner().initialize("")


def test_initialize_rejects_unknown_algorithm() -> None:
    with pytest.raises(ConfigurationError, match="not available"):
        HmacSigner("sha-nonexistent").initialize("testest")


def test_signing_from_many_threads_matches_single_thread(signer: HmacSigner) -> None:
    """Concurrent signing must not corrupt the shared keyed context."""
    messages = [f"request-{i}" for i in range(200)]
    expected = {m: signer.sign(m) for m in messages}
    results: dict[str, str] = {}
    lock = threading.Lock()

    def worker(chunk: list[str]) -> None:
        for m in chunk:
            sig = signer.sign(m)
            with lock:
                results[m] = sig

    threads = [
        threading.Thread(target=worker, args=(messages[i::4],)) for i in range(4)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results == expected


def test_nonce_returns_seed_first_then_increments() -> None:
    nonces = NonceSequence(seed=1000)
    assert nonces.peek() == 1000
    assert nonces.next_nonce() == 1000
    assert nonces.next_nonce() == 1001
    assert nonces.peek() == 1002


def test_nonce_is_strictly_increasing() -> None:
    """N calls yield N strictly increasing values with no repeats."""
    nonces = NonceSequence(seed=seconds_nonce_seed())
    values = [nonces.next_nonce() for _ in range(500)]
    assert len(set(values)) == len(values)
    assert all(a < b for a, b in zip(values, values[1:], strict=False))


def test_nonce_is_unique_under_concurrency() -> None:
    """Values handed out from many threads never repeat."""
    nonces = NonceSequence(seed=0)
    collected: list[int] = []
    lock = threading.Lock()

    def worker() -> None:
        local = [nonces.next_nonce() for _ in range(1000)]
        with lock:
            collected.extend(local)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(collected) == 8000
    assert sorted(collected) == list(range(8000))


@pytest.mark.parametrize("seed", [-1, "1000", 1.5])
def test_nonce_rejects_invalid_seed(seed: object) -> None:
    with pytest.raises(ConfigurationError):
        NonceSequence(seed)  # type: ignore[arg-type]


def test_nonce_seeds_use_current_time(mocker: MockerFixture) -> None:
    mocker.patch("cryptogateway.signing.time.time", return_value=1_500_000_000.75)
    mocker.patch(
        "cryptogateway.signing.time.time_ns", return_value=1_500_000_000_750_000_000
    )
    assert seconds_nonce_seed() == 1_500_000_000
    assert milliseconds_nonce_seed() == 1_500_000_000_750
