"""JSON serialization for request bodies and response payloads.

Serialization goes through pydantic_core so Pydantic models, dataclasses,
datetimes and the usual containers can be sent as-is. Deserialization
validates the payload against any type pydantic understands (a model class,
``list[Model]``, ``dict[str, int]``, ...).

Example:
    >>> from httpbuilder.transport.codec import deserialize, serialize
    >>> serialize({"a": 1})
    '{"a":1}'
    >>> deserialize('{"a": 1}', dict[str, int])
    {'a': 1}
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, TypeVar

import pydantic_core
from pydantic import TypeAdapter, ValidationError

from httpbuilder.errors import DeserializationError

T = TypeVar("T")


@dataclass(frozen=True)
class JsonSettings:
    """Options controlling how objects are serialized to JSON.

    Attributes:
        indent: Pretty-print indentation (None for compact output)
        by_alias: Use field aliases of Pydantic models
        exclude_none: Drop fields whose value is None
    """

    indent: int | None = None
    by_alias: bool = True
    exclude_none: bool = False


DEFAULT_JSON_SETTINGS = JsonSettings()


@lru_cache(maxsize=256)
def _adapter(type_: Any) -> TypeAdapter[Any]:
    return TypeAdapter(type_)


def _type_name(type_: Any) -> str:
    return getattr(type_, "__name__", None) or repr(type_)


def serialize(obj: Any, settings: JsonSettings | None = None) -> str:
    """Serialize an object to a JSON string.

    Args:
        obj: Object to serialize
        settings: Serialization options (defaults to compact output by alias)

    Returns:
        JSON text

    Raises:
        pydantic_core.PydanticSerializationError: If the object has no JSON form
    """
    settings = settings or DEFAULT_JSON_SETTINGS
    return pydantic_core.to_json(
        obj,
        indent=settings.indent,
        by_alias=settings.by_alias,
        exclude_none=settings.exclude_none,
    ).decode("utf-8")


def deserialize(data: str | bytes | bytearray, type_: type[T] | Any) -> T:
    """Decode JSON text and validate it as ``type_``.

    Args:
        data: JSON text or bytes
        type_: Target type (model class, generic alias, builtin)

    Returns:
        The validated value

    Raises:
        DeserializationError: If the text is not JSON or does not match the type
    """
    try:
        return _adapter(type_).validate_json(data)
    except ValidationError as e:
        raise DeserializationError(
            _type_name(type_),
            str(e),
            details={"error_count": e.error_count()},
        ) from e
