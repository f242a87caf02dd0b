from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from .errors import SchemaError
from .transforms import AttributeTransform, AttributeValidator
from .validation import validate_index_name, validate_table_name

type AttributeType = Literal["string", "number", "boolean", "enum", "list", "map", "set", "any"]

ATTRIBUTE_TYPES: frozenset[str] = frozenset(
    {"string", "number", "boolean", "enum", "list", "map", "set", "any"}
)

_MISSING: Any = object()


def _constant(value: Any) -> Callable[[], Any]:
    def factory() -> Any:
        return value

    return factory


@dataclass(frozen=True)
class PaddingSpec:
    length: int
    char: str = "0"


@dataclass(frozen=True)
class AttributeDefinition:
    type: AttributeType = "string"
    required: bool = False
    read_only: bool = False
    hidden: bool = False
    default: Callable[[], Any] | None = None
    validate: AttributeValidator | None = None
    transform: AttributeTransform | None = None
    padding: PaddingSpec | None = None
    enum_values: tuple[Any, ...] = ()


@dataclass(frozen=True)
class FacetDefinition:
    field: str
    facets: tuple[str, ...] = ()
    casing: str | None = None
    postfix: str | None = None


@dataclass(frozen=True)
class IndexDefinition:
    pk: FacetDefinition
    sk: FacetDefinition | None = None
    index: str | None = None
    collection: str | None = None

    @property
    def is_primary(self) -> bool:
        return self.index is None


@dataclass(frozen=True)
class Timestamps:
    created_at: str | None = "createdAt"
    updated_at: str | None = "updatedAt"


@dataclass(frozen=True)
class TtlConfig:
    attribute: str = "ttl"


type FilterCallback = Callable[..., str]


@dataclass(frozen=True)
class Schema:
    service: str
    entity: str
    table: str
    attributes: Mapping[str, AttributeDefinition]
    indexes: Mapping[str, IndexDefinition]
    version: str = ""
    filters: Mapping[str, FilterCallback] = field(default_factory=dict)
    timestamps: Timestamps | None = None
    ttl: TtlConfig | None = None

    def primary_index(self) -> tuple[str, IndexDefinition]:
        for access_pattern, index in self.indexes.items():
            if index.is_primary:
                return access_pattern, index
        raise SchemaError("no primary index found")

    def key_fields(self) -> set[str]:
        out: set[str] = set()
        for index in self.indexes.values():
            out.add(index.pk.field)
            if index.sk is not None:
                out.add(index.sk.field)
        return out


def attribute(
    type: AttributeType = "string",
    *,
    required: bool = False,
    read_only: bool = False,
    hidden: bool = False,
    default: Any = _MISSING,
    default_factory: Callable[[], Any] | None = None,
    validate: AttributeValidator | None = None,
    transform: AttributeTransform | None = None,
    padding: PaddingSpec | None = None,
    enum_values: Sequence[Any] = (),
) -> AttributeDefinition:
    if default is not _MISSING and default_factory is not None:
        raise ValueError("attribute: cannot set both default and default_factory")

    factory = default_factory
    if default is not _MISSING:
        factory = _constant(default)

    return AttributeDefinition(
        type=type,
        required=required,
        read_only=read_only,
        hidden=hidden,
        default=factory,
        validate=validate,
        transform=transform,
        padding=padding,
        enum_values=tuple(enum_values),
    )


def facets(
    field: str,
    *names: str,
    casing: str | None = None,
    postfix: str | None = None,
) -> FacetDefinition:
    return FacetDefinition(field=field, facets=tuple(names), casing=casing, postfix=postfix)


def primary(
    pk: FacetDefinition,
    sk: FacetDefinition | None = None,
    *,
    collection: str | None = None,
) -> IndexDefinition:
    return IndexDefinition(pk=pk, sk=sk, index=None, collection=collection)


def gsi(
    name: str,
    *,
    pk: FacetDefinition,
    sk: FacetDefinition | None = None,
    collection: str | None = None,
) -> IndexDefinition:
    return IndexDefinition(pk=pk, sk=sk, index=name, collection=collection)


def validate_schema(schema: Schema) -> None:
    if not schema.service:
        raise SchemaError("service name is required")
    if not schema.entity:
        raise SchemaError("entity name is required")
    if not schema.table:
        raise SchemaError("table name is required")
    validate_table_name(schema.table)
    if not schema.attributes:
        raise SchemaError("at least one attribute is required")
    if not schema.indexes:
        raise SchemaError("at least one index is required")

    for name, attr in schema.attributes.items():
        if attr.type not in ATTRIBUTE_TYPES:
            raise SchemaError(f"attribute '{name}': unsupported type: {attr.type}")
        if attr.type == "enum" and not attr.enum_values:
            raise SchemaError(f"attribute '{name}': enum attributes require enum_values")
        if attr.padding is not None:
            if attr.padding.length <= 0:
                raise SchemaError(f"attribute '{name}': padding length must be > 0")
            if len(attr.padding.char) != 1:
                raise SchemaError(f"attribute '{name}': padding char must be a single character")

    primaries = [pattern for pattern, index in schema.indexes.items() if index.is_primary]
    if len(primaries) != 1:
        raise SchemaError(f"schema must define exactly one primary index (found {len(primaries)})")

    seen_index_names: set[str] = set()
    for pattern, index in schema.indexes.items():
        if index.index is not None:
            validate_index_name(index.index)
            if index.index in seen_index_names:
                raise SchemaError(f"duplicate index name: {index.index}")
            seen_index_names.add(index.index)

        if not index.pk.field:
            raise SchemaError(f"index '{pattern}': pk field is required")
        for facet in index.pk.facets:
            if facet not in schema.attributes:
                raise SchemaError(
                    f"PK facet '{facet}' in index '{pattern}' references non-existent attribute"
                )

        if index.sk is not None:
            if not index.sk.field:
                raise SchemaError(f"index '{pattern}': sk field is required")
            for facet in index.sk.facets:
                if facet not in schema.attributes:
                    raise SchemaError(
                        f"SK facet '{facet}' in index '{pattern}' references non-existent attribute"
                    )

    for name in schema.filters:
        if not callable(schema.filters[name]):
            raise SchemaError(f"filter '{name}' must be callable")
