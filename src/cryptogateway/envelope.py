import json
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Generic, TypeVar

from cryptogateway.errors import DecodeError

T = TypeVar("T")

# Maps a raw JSON document into the generic {success, message, result} shape.
Normalizer = Callable[[Any], Any]

_MISSING = object()


@dataclass(frozen=True)
class Envelope(Generic[T]):
    """The generic reply shape every exchange response is decoded into."""

    success: bool
    message: str | None = None
    result: T | None = None


def parse_json(payload: str | bytes) -> Any:
    """Parses a JSON body, keeping every number exact as a Decimal."""
    try:
        return json.loads(payload, parse_float=Decimal)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        err_msg = f"Response body is not valid JSON: {e}"
        raise DecodeError(err_msg) from e


def _coerce_success(value: Any) -> bool:
    # Some exchanges report success as 1/0 or "true"/"false".
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    err_msg = f"Envelope 'success' field is not a boolean: {value!r}"
    raise DecodeError(err_msg)


def decode(
    payload: str | bytes,
    shape: Callable[[Any], T] | None = None,
    *,
    normalize: Normalizer | None = None,
) -> Envelope[T]:
    """Decodes a response body into an Envelope.

    The decoder is deliberately lenient about content it does not need:
    unknown fields are ignored, and an unsuccessful envelope is returned
    rather than raised, because whether `success=false` is an error is up to
    the adapter.

    Args:
        payload: The raw response body.
        shape: A decode function for the result of this particular endpoint.
            It receives the raw JSON result and returns the exchange-native
            record. Only applied to successful, non-null results.
        normalize: An exchange-specific function that turns the raw document
            into a `{success, message, result}` mapping, for exchanges whose
            replies use other field names or have no envelope at all.

    Returns:
        The decoded Envelope.

    Raises:
        DecodeError: If the payload is not JSON, lacks a `success` field, or
            lacks a `result` field while `success` is true, or if `shape`
            rejects the result.
    """
    document = parse_json(payload)
    if normalize is not None:
        document = normalize(document)

    if not isinstance(document, dict):
        err_msg = f"Envelope must be a JSON object, got {type(document).__name__}."
        raise DecodeError(err_msg)
    if "success" not in document:
        err_msg = "Envelope is missing the 'success' field."
        raise DecodeError(err_msg)

    success = _coerce_success(document["success"])
    message = document.get("message")
    result = document.get("result", _MISSING)

    if result is _MISSING:
        if success:
            err_msg = "Envelope is missing the 'result' field."
            raise DecodeError(err_msg)
        result = None

    if success and result is not None and shape is not None:
        try:
            result = shape(result)
        except (
            AttributeError,
            KeyError,
            IndexError,
            TypeError,
            ValueError,
            InvalidOperation,
        ) as e:
            err_msg = f"Envelope result does not have the expected shape: {e!r}"
            raise DecodeError(err_msg) from e

    return Envelope(
        success=success,
        message=str(message) if message is not None else None,
        result=result,
    )
