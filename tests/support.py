"""Shared test doubles for driving adapters without a network."""

import dataclasses
import json
from collections.abc import Callable
from typing import Any

import httpx

from cryptogateway.adapters.base import ExchangeAdapter, ExchangeSchema
from cryptogateway.config import (
    AuthenticationConfig,
    ExchangeConfig,
    NetworkConfig,
    OtherConfig,
)

TEST_KEY = "xxx"
TEST_SECRET = "testest"
TEST_NONCE_SEED = 1000

Handler = Callable[[httpx.Request], httpx.Response]


class RecordingHandler:
    """A MockTransport handler that records requests and replays canned replies.

    Replies are looked up by a substring of the request URL or body, so a
    test can register e.g. "getticker" or "command=returnTicker".
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: list[tuple[str, Handler]] = []

    def add_json(self, match: str, document: Any, status_code: int = 200) -> None:
        self.add(
            match,
            lambda _request: httpx.Response(status_code, text=json.dumps(document)),
        )

    def add(self, match: str, handler: Handler) -> None:
        self._routes.append((match, handler))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        target = f"{request.url} {request.content.decode('utf-8')}"
        for match, handler in self._routes:
            if match in target:
                return handler(request)
        return httpx.Response(404, text="not found")


def make_config(
    exchange_name: str,
    network: NetworkConfig | None = None,
    buy_fee: str = "0.25",
    sell_fee: str = "0.20",
    secret: str = TEST_SECRET,
) -> ExchangeConfig:
    return ExchangeConfig(
        exchange_name=exchange_name,
        authentication=AuthenticationConfig(items={"key": TEST_KEY, "secret": secret}),
        network=network or NetworkConfig(connection_timeout_seconds=5),
        other=OtherConfig(items={"buy-fee": buy_fee, "sell-fee": sell_fee}),
    )


def make_adapter(
    schema: ExchangeSchema,
    handler: RecordingHandler,
    network: NetworkConfig | None = None,
) -> ExchangeAdapter:
    """Builds a ready adapter whose HTTP traffic goes to `handler`."""
    schema = dataclasses.replace(schema, nonce_seed=lambda: TEST_NONCE_SEED)
    client = httpx.Client(transport=httpx.MockTransport(handler))
    adapter = ExchangeAdapter(schema, http_client=client)
    adapter.init(make_config(schema.name, network=network))
    return adapter
