from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from .errors import CursorDecodingError, CursorEncodingError


@dataclass(frozen=True)
class SortKeyCondition:
    """A sort key predicate.

    Each value is either a mapping of sort key facets (rendered into a key the
    same way writes render it) or literal key text.
    """

    op: str
    values: tuple[Any, ...]

    @staticmethod
    def eq(value: Any) -> SortKeyCondition:
        return SortKeyCondition(op="=", values=(value,))

    @staticmethod
    def lt(value: Any) -> SortKeyCondition:
        return SortKeyCondition(op="<", values=(value,))

    @staticmethod
    def lte(value: Any) -> SortKeyCondition:
        return SortKeyCondition(op="<=", values=(value,))

    @staticmethod
    def gt(value: Any) -> SortKeyCondition:
        return SortKeyCondition(op=">", values=(value,))

    @staticmethod
    def gte(value: Any) -> SortKeyCondition:
        return SortKeyCondition(op=">=", values=(value,))

    @staticmethod
    def between(low: Any, high: Any) -> SortKeyCondition:
        return SortKeyCondition(op="between", values=(low, high))

    @staticmethod
    def begins_with(prefix: Any) -> SortKeyCondition:
        return SortKeyCondition(op="begins_with", values=(prefix,))


@dataclass(frozen=True)
class Page[T]:
    items: list[T]
    next_cursor: str | None


@dataclass(frozen=True)
class QueryResponse[T]:
    data: list[T]
    cursor: str | None = None


_TEXT_TAGS = frozenset({"S", "N"})
_TEXT_SET_TAGS = frozenset({"SS", "NS"})


def _tagged(av: Any) -> tuple[str, Any]:
    if not isinstance(av, dict) or len(av) != 1:
        raise ValueError("attribute value must be a single-key map")
    tag, value = next(iter(av.items()))
    return str(tag), value


def _binary_to_text(raw: Any) -> str:
    if not isinstance(raw, (bytes, bytearray)):
        raise ValueError("binary value must be bytes")
    return base64.b64encode(bytes(raw)).decode("ascii")


def _text_to_binary(raw: Any) -> bytes:
    if not isinstance(raw, str):
        raise ValueError("binary value must be base64 text")
    return base64.b64decode(raw, validate=True)


def _transcode(av: Any, binary: Callable[[Any], Any]) -> dict[str, Any]:
    """Rewrite one attribute value, converting B/BS payloads with ``binary``.

    The cursor JSON differs from the wire shape only in how binary payloads
    are spelled; every other tag is checked and copied as-is.
    """
    tag, value = _tagged(av)

    if tag in _TEXT_TAGS:
        if not isinstance(value, str):
            raise ValueError(f"{tag} value must be a string")
        return {tag: value}
    if tag == "BOOL":
        if not isinstance(value, bool):
            raise ValueError("BOOL value must be a boolean")
        return {tag: value}
    if tag == "NULL":
        if value is not True:
            raise ValueError("NULL value must be true")
        return {tag: True}
    if tag in _TEXT_SET_TAGS:
        if not isinstance(value, list) or any(not isinstance(v, str) for v in value):
            raise ValueError(f"{tag} value must be a list of strings")
        return {tag: list(value)}
    if tag == "B":
        return {tag: binary(value)}

    if not isinstance(value, (list, dict)):
        raise ValueError(f"unsupported attribute value type: {tag}")
    if tag == "BS" and isinstance(value, list):
        return {tag: [binary(v) for v in value]}
    if tag == "L" and isinstance(value, list):
        return {tag: [_transcode(v, binary) for v in value]}
    if tag == "M" and isinstance(value, dict):
        return {tag: {str(k): _transcode(v, binary) for k, v in value.items()}}
    raise ValueError(f"unsupported attribute value type: {tag}")


def encode_cursor(last_key: Mapping[str, Any] | None) -> str:
    """Render a LastEvaluatedKey as an opaque pagination cursor."""
    if not last_key:
        return ""
    if not isinstance(last_key, Mapping):
        raise CursorEncodingError("last evaluated key must be a map")

    try:
        payload = {str(name): _transcode(av, _binary_to_text) for name, av in last_key.items()}
        text = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    except (ValueError, TypeError) as err:
        raise CursorEncodingError(f"failed to encode cursor: {err}", cause=err) from err
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str | None) -> dict[str, Any]:
    raw = str(cursor or "").strip()
    if not raw:
        return {}

    try:
        text = base64.b64decode(raw, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as err:
        raise CursorDecodingError("cursor is not valid base64", cause=err) from err

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as err:
        raise CursorDecodingError("cursor is not valid JSON", cause=err) from err
    if not isinstance(payload, dict):
        raise CursorDecodingError("cursor must decode to an object")

    try:
        return {str(name): _transcode(av, _text_to_binary) for name, av in payload.items()}
    except ValueError as err:
        raise CursorDecodingError(f"cursor contains an invalid attribute value: {err}", cause=err) from err
