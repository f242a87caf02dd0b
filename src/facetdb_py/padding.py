from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from .model import PaddingSpec, Schema


def pad_value(value: Any, padding: PaddingSpec | None) -> Any:
    if padding is None or padding.length <= 0 or value is None:
        return value

    if isinstance(value, bool):
        text = str(value).lower()
    elif isinstance(value, (float, Decimal)):
        text = str(int(value))
    else:
        text = str(value)

    char = padding.char or "0"
    if len(text) < padding.length:
        return char * (padding.length - len(text)) + text
    return text


def unpad_value(value: Any, padding: PaddingSpec | None) -> Any:
    if padding is None or not isinstance(value, str):
        return value

    char = padding.char or "0"
    stripped = value.lstrip(char) or "0"
    try:
        return int(stripped)
    except ValueError:
        return stripped


def apply_padding(item: Mapping[str, Any], schema: Schema) -> dict[str, Any]:
    out = dict(item)
    for name, attr in schema.attributes.items():
        if attr.padding is None or name not in out:
            continue
        out[name] = pad_value(out[name], attr.padding)
    return out


def remove_padding(item: Mapping[str, Any], schema: Schema) -> dict[str, Any]:
    out = dict(item)
    for name, attr in schema.attributes.items():
        if attr.padding is None or name not in out:
            continue
        out[name] = unpad_value(out[name], attr.padding)
    return out
