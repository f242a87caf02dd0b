"""Attribute write/read transforms and validators.

Transforms are a small closed set of tagged variants rather than arbitrary
callables so that a schema can be described in a document and rebuilt from
it. Anything implementing :class:`AttributeTransform` or
:class:`AttributeValidator` can still be attached to an attribute.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Literal, Protocol


class AttributeTransform(Protocol):
    kind: str

    def on_write(self, value: Any) -> Any: ...

    def on_read(self, value: Any) -> Any: ...


class AttributeValidator(Protocol):
    kind: str

    def check(self, value: Any) -> None: ...


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _normalize_number(value: Decimal) -> int | Decimal:
    if value == value.to_integral_value():
        return int(value)
    return value.normalize()


@dataclass(frozen=True)
class Identity:
    kind: Literal["identity"] = "identity"

    def on_write(self, value: Any) -> Any:
        return value

    def on_read(self, value: Any) -> Any:
        return value


@dataclass(frozen=True)
class NumericScale:
    """Stores ``value * factor`` and reads back ``stored / factor``."""

    factor: int | Decimal
    kind: Literal["numeric_scale"] = "numeric_scale"

    def __post_init__(self) -> None:
        if not _is_number(self.factor) or self.factor == 0:
            raise ValueError("numeric_scale factor must be a non-zero number")

    def on_write(self, value: Any) -> Any:
        if not _is_number(value):
            return value
        return _normalize_number(Decimal(str(value)) * Decimal(str(self.factor)))

    def on_read(self, value: Any) -> Any:
        if not _is_number(value):
            return value
        try:
            return _normalize_number(Decimal(str(value)) / Decimal(str(self.factor)))
        except InvalidOperation:
            return value


@dataclass(frozen=True)
class StringCase:
    casing: Literal["upper", "lower", "none"] = "none"
    kind: Literal["string_case"] = "string_case"

    def __post_init__(self) -> None:
        if self.casing not in {"upper", "lower", "none"}:
            raise ValueError(f"unsupported casing: {self.casing}")

    def on_write(self, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        if self.casing == "upper":
            return value.upper()
        if self.casing == "lower":
            return value.lower()
        return value

    def on_read(self, value: Any) -> Any:
        return value


@dataclass(frozen=True)
class CustomPredicate:
    """Rejects values for which ``predicate`` returns false or raises."""

    predicate: Callable[[Any], bool]
    message: str = "value rejected by validator"
    kind: Literal["custom_predicate"] = "custom_predicate"

    def check(self, value: Any) -> None:
        try:
            ok = self.predicate(value)
        except Exception as err:
            raise ValueError(f"{self.message}: {err}") from err
        if not ok:
            raise ValueError(self.message)


@dataclass(frozen=True)
class Pipeline:
    steps: tuple[AttributeTransform, ...]
    kind: Literal["pipeline"] = "pipeline"

    def on_write(self, value: Any) -> Any:
        for step in self.steps:
            value = step.on_write(value)
        return value

    def on_read(self, value: Any) -> Any:
        for step in reversed(self.steps):
            value = step.on_read(value)
        return value
