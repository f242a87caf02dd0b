from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class FacetLabel:
    name: str
    label: str


@dataclass(frozen=True)
class KeyResult:
    key: str
    fulfilled: bool


@dataclass(frozen=True)
class KeyOptions:
    prefix: str
    is_custom: bool = False
    casing: str | None = None
    postfix: str | None = None
    exclude_label_tail: bool = False
    exclude_postfix: bool = False


def build_labels(facets: Sequence[str]) -> list[FacetLabel]:
    return [FacetLabel(name=facet, label=facet.lower()) for facet in facets]


def partition_key_prefix(service: str) -> str:
    return f"${service.lower()}"


def sort_key_prefix(entity: str, version: str = "") -> str:
    entity = entity.lower()
    if version:
        return f"${entity}_{version}"
    return f"${entity}"


def format_key_casing(key: str, casing: str | None) -> str:
    mode = (casing or "").lower()
    if mode == "upper":
        return key.upper()
    if mode == "lower":
        return key.lower()
    return key


def render_key_value(value: Any) -> str:
    if value is True:
        return "true"
    if value is False:
        return "false"
    return str(value).lower()


def make_key(
    options: KeyOptions,
    labels: Sequence[FacetLabel],
    supplied: Mapping[str, Any],
) -> KeyResult:
    """Render a composite key from ``labels`` in order.

    Facets are never sparse: the first facet without a supplied value ends the
    key. Its label is still written (``#label_``) so the result can be used as
    a ``begins_with`` prefix, unless ``exclude_label_tail`` is set.
    """
    key = options.prefix
    found = 0

    for facet in labels:
        value = supplied.get(facet.name)
        missing = value is None

        if missing and options.exclude_label_tail:
            break

        if options.is_custom:
            key += facet.label
        else:
            key += f"#{facet.label}_"

        if missing:
            break

        key += render_key_value(value)
        found += 1

    fulfilled = found == len(labels)

    if fulfilled and options.postfix is not None and not options.exclude_postfix:
        key += options.postfix

    if options.casing is not None:
        key = format_key_casing(key, options.casing)

    return KeyResult(key=key, fulfilled=fulfilled)
