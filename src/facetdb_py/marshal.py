from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer

from .errors import ValidationError

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def _prepare(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, Mapping):
        return {str(k): _prepare(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_prepare(v) for v in value]
    if isinstance(value, (set, frozenset)):
        if not value:
            return None
        return {_prepare(v) for v in value}
    return value


def _coerce(value: Any) -> Any:
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return int(value)
        return value
    if isinstance(value, dict):
        return {k: _coerce(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_coerce(v) for v in value]
    if isinstance(value, set):
        return {_coerce(v) for v in value}
    return value


def marshal_value(value: Any) -> dict[str, Any]:
    try:
        return _serializer.serialize(_prepare(value))
    except TypeError as err:
        raise ValidationError(f"unsupported attribute value: {value!r}", cause=err) from err


def marshal_item(item: Mapping[str, Any]) -> dict[str, Any]:
    return {name: marshal_value(value) for name, value in item.items()}


def unmarshal_value(av: Mapping[str, Any]) -> Any:
    return _coerce(_deserializer.deserialize(dict(av)))


def unmarshal_item(item: Mapping[str, Any]) -> dict[str, Any]:
    return {name: unmarshal_value(av) for name, av in item.items()}
