from collections.abc import Callable

import pytest
from support import RecordingHandler, make_adapter

from cryptogateway.adapters.base import ExchangeAdapter, ExchangeSchema
from cryptogateway.config import NetworkConfig


@pytest.fixture
def handler() -> RecordingHandler:
    """Provides a fresh recording HTTP handler."""
    return RecordingHandler()


@pytest.fixture
def adapter_factory(
    handler: RecordingHandler,
) -> Callable[..., ExchangeAdapter]:
    """Provides a factory for ready adapters wired to the `handler` fixture."""

    def factory(
        schema: ExchangeSchema, network: NetworkConfig | None = None
    ) -> ExchangeAdapter:
        return make_adapter(schema, handler, network=network)

    return factory
