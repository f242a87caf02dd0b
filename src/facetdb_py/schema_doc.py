"""Entity schemas described as YAML or JSON documents.

A document holds ``schema_version: "0.1"`` and a list of ``entities``. Only
declarative pieces can be expressed: attribute types, flags, enum values,
constant defaults, padding, and the ``numeric_scale`` / ``string_case``
transforms. Filters and custom predicates stay in code.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from decimal import Decimal
from typing import Any, cast

import yaml

from .errors import SchemaError
from .model import (
    ATTRIBUTE_TYPES,
    AttributeDefinition,
    FacetDefinition,
    IndexDefinition,
    PaddingSpec,
    Schema,
    Timestamps,
    TtlConfig,
    attribute,
    validate_schema,
)
from .transforms import AttributeTransform, Identity, NumericScale, Pipeline, StringCase

SCHEMA_VERSION = "0.1"


def parse_schema_document(raw: str) -> dict[str, Any]:
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError as err:
        raise SchemaError("invalid schema YAML/JSON", cause=err) from err

    if not isinstance(parsed, dict):
        raise SchemaError("schema document must be a map/object")

    _assert_json_compatible(parsed, path="schema")

    version = parsed.get("schema_version")
    if version != SCHEMA_VERSION:
        raise SchemaError(f"unsupported schema_version: {version!r}")

    entities = parsed.get("entities")
    if not isinstance(entities, list) or len(entities) == 0:
        raise SchemaError("schema document must include entities[]")

    return parsed


def get_document_entity(doc: Mapping[str, Any], name: str) -> dict[str, Any]:
    entities = doc.get("entities")
    if not isinstance(entities, list):
        raise SchemaError("schema document missing entities[]")
    for entity in entities:
        if isinstance(entity, dict) and entity.get("entity") == name:
            return cast(dict[str, Any], entity)
    raise SchemaError(f"entity not found in schema document: {name}")


def _assert_json_compatible(value: Any, *, path: str) -> None:
    if value is None or isinstance(value, (str, bool, int, float)):
        if isinstance(value, float) and not (value == value and value not in (float("inf"), float("-inf"))):
            raise SchemaError(f"schema document contains non-finite float at {path}")
        return

    if isinstance(value, list):
        for idx, elem in enumerate(value):
            _assert_json_compatible(elem, path=f"{path}[{idx}]")
        return

    if isinstance(value, dict):
        for k, v in value.items():
            if not isinstance(k, str):
                raise SchemaError(f"schema document contains non-string key at {path}: {k!r}")
            _assert_json_compatible(v, path=f"{path}.{k}")
        return

    raise SchemaError(f"schema document contains non-JSON value at {path}: {type(value).__name__}")


def _transform_from_document(raw: Any, *, path: str) -> AttributeTransform | None:
    if raw is None:
        return None
    if isinstance(raw, list):
        steps = tuple(
            step
            for i, elem in enumerate(raw)
            if (step := _transform_from_document(elem, path=f"{path}[{i}]")) is not None
        )
        return Pipeline(steps=steps)
    if not isinstance(raw, dict):
        raise SchemaError(f"{path}: transform must be a map")

    kind = raw.get("kind")
    try:
        if kind == "identity":
            return Identity()
        if kind == "numeric_scale":
            factor = raw.get("factor")
            if isinstance(factor, (float, str)):
                factor = Decimal(factor) if isinstance(factor, str) else Decimal(str(factor))
            return NumericScale(factor=cast(Any, factor))
        if kind == "string_case":
            return StringCase(casing=cast(Any, raw.get("casing", "none")))
    except (ValueError, ArithmeticError) as err:
        raise SchemaError(f"{path}: {err}", cause=err) from err
    raise SchemaError(f"{path}: unsupported transform kind: {kind!r}")


def _attribute_from_document(name: str, raw: Any, *, path: str) -> AttributeDefinition:
    if isinstance(raw, str):
        raw = {"type": raw}
    if not isinstance(raw, dict):
        raise SchemaError(f"{path}: attribute must be a map or a type name")

    attr_type = raw.get("type", "string")
    if attr_type not in ATTRIBUTE_TYPES:
        raise SchemaError(f"{path}: unsupported type: {attr_type!r}")

    padding = None
    padding_raw = raw.get("padding")
    if padding_raw is not None:
        if not isinstance(padding_raw, dict) or not isinstance(padding_raw.get("length"), int):
            raise SchemaError(f"{path}: padding requires an integer length")
        padding = PaddingSpec(length=padding_raw["length"], char=str(padding_raw.get("char", "0")))

    enum_values = raw.get("enum") or ()
    if not isinstance(enum_values, (list, tuple)):
        raise SchemaError(f"{path}: enum must be a list")

    kwargs: dict[str, Any] = {}
    if "default" in raw:
        kwargs["default"] = raw["default"]

    return attribute(
        cast(Any, attr_type),
        required=bool(raw.get("required", False)),
        read_only=bool(raw.get("read_only", False)),
        hidden=bool(raw.get("hidden", False)),
        transform=_transform_from_document(raw.get("transform"), path=f"{path}.transform"),
        padding=padding,
        enum_values=enum_values,
        **kwargs,
    )


def _facets_from_document(raw: Any, *, path: str) -> FacetDefinition:
    if not isinstance(raw, dict):
        raise SchemaError(f"{path}: key definition must be a map")
    key_field = raw.get("field")
    if not isinstance(key_field, str) or not key_field:
        raise SchemaError(f"{path}: missing field")
    facets = raw.get("facets") or []
    if not isinstance(facets, list) or not all(isinstance(f, str) for f in facets):
        raise SchemaError(f"{path}: facets must be a list of attribute names")
    return FacetDefinition(
        field=key_field,
        facets=tuple(facets),
        casing=raw.get("casing"),
        postfix=raw.get("postfix"),
    )


def _index_from_document(raw: Any, *, path: str) -> IndexDefinition:
    if not isinstance(raw, dict):
        raise SchemaError(f"{path}: index must be a map")
    sk_raw = raw.get("sk")
    return IndexDefinition(
        pk=_facets_from_document(raw.get("pk"), path=f"{path}.pk"),
        sk=_facets_from_document(sk_raw, path=f"{path}.sk") if sk_raw is not None else None,
        index=raw.get("index"),
        collection=raw.get("collection"),
    )


def _timestamps_from_document(raw: Any, *, path: str) -> Timestamps | None:
    if raw is None or raw is False:
        return None
    if raw is True:
        return Timestamps()
    if not isinstance(raw, dict):
        raise SchemaError(f"{path}: timestamps must be a map or a boolean")
    return Timestamps(created_at=raw.get("created_at"), updated_at=raw.get("updated_at"))


def entity_schema_from_document(doc: Mapping[str, Any], name: str) -> Schema:
    raw = get_document_entity(doc, name)
    path = f"entities[{name}]"

    attributes_raw = raw.get("attributes")
    if not isinstance(attributes_raw, dict):
        raise SchemaError(f"{path}: missing attributes map")
    indexes_raw = raw.get("indexes")
    if not isinstance(indexes_raw, dict):
        raise SchemaError(f"{path}: missing indexes map")

    ttl_raw = raw.get("ttl")
    if ttl_raw is not None and not isinstance(ttl_raw, dict):
        raise SchemaError(f"{path}: ttl must be a map")

    schema = Schema(
        service=str(raw.get("service") or ""),
        entity=name,
        table=str(raw.get("table") or ""),
        version=str(raw.get("version") or ""),
        attributes={
            attr_name: _attribute_from_document(attr_name, attr_raw, path=f"{path}.attributes.{attr_name}")
            for attr_name, attr_raw in attributes_raw.items()
        },
        indexes={
            pattern: _index_from_document(index_raw, path=f"{path}.indexes.{pattern}")
            for pattern, index_raw in indexes_raw.items()
        },
        timestamps=_timestamps_from_document(raw.get("timestamps"), path=f"{path}.timestamps"),
        ttl=TtlConfig(attribute=str(ttl_raw.get("attribute", "ttl"))) if ttl_raw is not None else None,
    )
    validate_schema(schema)
    return schema


def _transform_to_document(transform: AttributeTransform | None) -> Any:
    if transform is None:
        return None
    if isinstance(transform, Pipeline):
        return [_transform_to_document(step) for step in transform.steps]
    if isinstance(transform, NumericScale):
        return {"kind": "numeric_scale", "factor": str(transform.factor)}
    if isinstance(transform, StringCase):
        return {"kind": "string_case", "casing": transform.casing}
    return {"kind": transform.kind}


def _facets_to_document(facets: FacetDefinition | None) -> dict[str, Any] | None:
    if facets is None:
        return None
    return {
        "field": facets.field,
        "facets": list(facets.facets),
        "casing": facets.casing,
        "postfix": facets.postfix,
    }


def schema_to_document_entity(schema: Schema) -> dict[str, Any]:
    attributes: dict[str, Any] = {}
    for name, attr in schema.attributes.items():
        attributes[name] = {
            "type": attr.type,
            "required": attr.required,
            "read_only": attr.read_only,
            "hidden": attr.hidden,
            "enum": list(attr.enum_values),
            "padding": (
                {"length": attr.padding.length, "char": attr.padding.char} if attr.padding is not None else None
            ),
            "transform": _transform_to_document(attr.transform),
        }

    return {
        "entity": schema.entity,
        "service": schema.service,
        "table": schema.table,
        "version": schema.version,
        "attributes": attributes,
        "indexes": {
            pattern: {
                "index": index.index,
                "collection": index.collection,
                "pk": _facets_to_document(index.pk),
                "sk": _facets_to_document(index.sk),
            }
            for pattern, index in schema.indexes.items()
        },
        "timestamps": (
            {"created_at": schema.timestamps.created_at, "updated_at": schema.timestamps.updated_at}
            if schema.timestamps is not None
            else None
        ),
        "ttl": {"attribute": schema.ttl.attribute} if schema.ttl is not None else None,
    }


def assert_schema_equivalent_to_document(
    schema: Schema,
    document_entity: Mapping[str, Any],
    *,
    ignore_table_name: bool = False,
) -> None:
    want = schema_to_document_entity(entity_schema_from_document({"entities": [document_entity]}, schema.entity))
    got = schema_to_document_entity(schema)
    if ignore_table_name:
        want.pop("table", None)
        got.pop("table", None)
    if got != want:
        raise SchemaError(
            "schema does not match document:\n"
            f"want={json.dumps(want, sort_keys=True, separators=(',', ':'))}\n"
            f"got={json.dumps(got, sort_keys=True, separators=(',', ':'))}"
        )
