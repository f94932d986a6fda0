from pathlib import Path

import pytest
from loguru import logger

from cryptogateway.logging_config import REDACTED, redact_text, setup_logging


@pytest.mark.parametrize(
    ("text", "leaked"),
    [
        (
            "POST https://bittrex.com/api/v1.1/market/getopenorders"
            "?market=BTC-LTC&nonce=1000&apikey=abc123",
            "abc123",
        ),
        ("headers={'apisign': 'deadbeef', 'Accept': '*/*'}", "deadbeef"),
        ("headers={'Key': 'pk-1', 'Sign': 'cafe'}", "pk-1"),
        ("secret=hunter2&nonce=1", "hunter2"),
    ],
)
def test_redact_text_masks_credentials(text: str, leaked: str) -> None:
    redacted = redact_text(text)
    assert leaked not in redacted
    assert REDACTED in redacted


def test_redact_text_leaves_other_parameters() -> None:
    text = "GET https://poloniex.com/public?command=returnTicker&currencyPair=BTC_ETH"
    assert redact_text(text) == text


def test_setup_logging_writes_redacted_file(tmp_path: Path) -> None:
    setup_logging(console_level="WARNING", file_level="DEBUG", log_dir=tmp_path)
    logger.debug("Sending ...&nonce=5&apikey=topsecret")
    logger.complete()
    logger.remove()

    contents = "".join(p.read_text() for p in tmp_path.glob("cryptogateway_*.log"))
    assert "topsecret" not in contents
    assert REDACTED in contents
