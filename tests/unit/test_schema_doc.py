from __future__ import annotations

from decimal import Decimal

import pytest

from facetdb_py import (
    NumericScale,
    PaddingSpec,
    Schema,
    SchemaError,
    StringCase,
    Timestamps,
    TtlConfig,
    assert_schema_equivalent_to_document,
    attribute,
    entity_schema_from_document,
    facets,
    gsi,
    parse_schema_document,
    primary,
    schema_to_document_entity,
)
from facetdb_py.schema_doc import get_document_entity

RAW = """
schema_version: "0.1"
entities:
  - entity: task
    service: taskapp
    table: app_table
    version: "1"
    attributes:
      taskId: { type: string, required: true }
      project: string
      status: { type: enum, enum: [open, closed], default: open }
      budget: { type: number, transform: { kind: numeric_scale, factor: 100 } }
      code: { type: string, transform: [{ kind: string_case, casing: upper }] }
      rank: { type: number, padding: { length: 4 } }
      owner: { read_only: true, hidden: true }
    indexes:
      task:
        pk: { field: pk, facets: [taskId] }
        sk: { field: sk, facets: [] }
      byProject:
        index: gsi1
        collection: projects
        pk: { field: gsi1pk, facets: [project], casing: upper }
        sk: { field: gsi1sk, facets: [status], postfix: "#x" }
    timestamps: true
    ttl: { attribute: expiresAt }
"""


def test_parse_and_build_entity_schema() -> None:
    doc = parse_schema_document(RAW)
    schema = entity_schema_from_document(doc, "task")

    assert schema.service == "taskapp"
    assert schema.table == "app_table"
    assert schema.version == "1"
    assert schema.attributes["taskId"].required is True
    assert schema.attributes["project"].type == "string"
    assert schema.attributes["status"].enum_values == ("open", "closed")
    assert schema.attributes["status"].default is not None
    assert schema.attributes["status"].default() == "open"
    assert schema.attributes["budget"].transform == NumericScale(factor=100)
    assert schema.attributes["rank"].padding == PaddingSpec(length=4, char="0")
    assert schema.attributes["owner"].read_only is True
    assert schema.attributes["owner"].hidden is True
    assert schema.indexes["task"].is_primary
    assert schema.indexes["byProject"].index == "gsi1"
    assert schema.indexes["byProject"].collection == "projects"
    assert schema.indexes["byProject"].pk.casing == "upper"
    assert schema.indexes["byProject"].sk is not None
    assert schema.indexes["byProject"].sk.postfix == "#x"
    assert schema.timestamps == Timestamps()
    assert schema.ttl == TtlConfig(attribute="expiresAt")


def test_json_documents_are_accepted() -> None:
    raw = (
        '{"schema_version": "0.1", "entities": [{"entity": "n", "service": "s", "table": "tbl",'
        ' "attributes": {"id": "string"}, "indexes": {"n": {"pk": {"field": "pk", "facets": ["id"]}}}}]}'
    )
    schema = entity_schema_from_document(parse_schema_document(raw), "n")
    assert schema.indexes["n"].sk is None


@pytest.mark.parametrize(
    ("raw", "match"),
    [
        ("a: [", "invalid schema YAML/JSON"),
        ("- 1", "must be a map/object"),
        ('schema_version: "0.2"\nentities: [{}]', "unsupported schema_version"),
        ('schema_version: "0.1"\nentities: []', "must include entities"),
        ('schema_version: "0.1"\nentities: [{when: 2024-01-01}]', "non-JSON value"),
        ('schema_version: "0.1"\nentities: [{x: .nan}]', "non-finite float"),
        ('schema_version: "0.1"\nentities: [{1: a}]', "non-string key"),
    ],
)
def test_parse_rejects_bad_documents(raw: str, match: str) -> None:
    with pytest.raises(SchemaError, match=match):
        parse_schema_document(raw)


def _doc_with(entity: dict) -> dict:
    return {"schema_version": "0.1", "entities": [entity]}


def _entity(**overrides: object) -> dict:
    entity: dict = {
        "entity": "n",
        "service": "s",
        "table": "tbl",
        "attributes": {"id": "string"},
        "indexes": {"n": {"pk": {"field": "pk", "facets": ["id"]}}},
    }
    entity.update(overrides)
    return entity


@pytest.mark.parametrize(
    ("overrides", "match"),
    [
        ({"attributes": None}, "missing attributes map"),
        ({"indexes": []}, "missing indexes map"),
        ({"attributes": {"id": {"type": "uuid"}}}, "unsupported type"),
        ({"attributes": {"id": 3}}, "must be a map or a type name"),
        ({"attributes": {"id": {"padding": {"length": "4"}}}}, "integer length"),
        ({"attributes": {"id": {"enum": "a"}}}, "enum must be a list"),
        ({"attributes": {"id": {"transform": {"kind": "encrypt"}}}}, "unsupported transform kind"),
        ({"attributes": {"id": {"transform": {"kind": "numeric_scale", "factor": 0}}}}, "non-zero number"),
        ({"attributes": {"id": {"transform": "upper"}}}, "transform must be a map"),
        ({"indexes": {"n": {"pk": {"facets": ["id"]}}}}, "missing field"),
        ({"indexes": {"n": {"pk": {"field": "pk", "facets": "id"}}}}, "facets must be a list"),
        ({"indexes": {"n": "pk"}}, "index must be a map"),
        ({"timestamps": "yes"}, "timestamps must be a map or a boolean"),
        ({"ttl": 3}, "ttl must be a map"),
        ({"indexes": {"n": {"pk": {"field": "pk", "facets": ["nope"]}}}}, "non-existent attribute"),
    ],
)
def test_entity_schema_errors(overrides: dict, match: str) -> None:
    with pytest.raises(SchemaError, match=match):
        entity_schema_from_document(_doc_with(_entity(**overrides)), "n")


def test_get_document_entity_errors() -> None:
    with pytest.raises(SchemaError, match="entity not found"):
        get_document_entity(_doc_with(_entity()), "missing")
    with pytest.raises(SchemaError, match="missing entities"):
        get_document_entity({}, "n")


def _code_schema() -> Schema:
    return Schema(
        service="s",
        entity="n",
        table="tbl",
        attributes={
            "id": attribute(required=True),
            "price": attribute("number", transform=NumericScale(factor=Decimal("100"))),
            "code": attribute(transform=StringCase(casing="lower")),
        },
        indexes={
            "n": primary(facets("pk", "id"), facets("sk")),
            "byCode": gsi("gsi1", pk=facets("gsi1pk", "code")),
        },
    )


def test_schema_document_round_trip_equivalence() -> None:
    schema = _code_schema()
    doc_entity = schema_to_document_entity(schema)
    assert doc_entity["attributes"]["price"]["transform"] == {"kind": "numeric_scale", "factor": "100"}

    document = _entity(
        attributes={
            "id": {"required": True},
            "price": {"type": "number", "transform": {"kind": "numeric_scale", "factor": 100}},
            "code": {"transform": {"kind": "string_case", "casing": "lower"}},
        },
        indexes={
            "n": {"pk": {"field": "pk", "facets": ["id"]}, "sk": {"field": "sk"}},
            "byCode": {"index": "gsi1", "pk": {"field": "gsi1pk", "facets": ["code"]}},
        },
    )
    assert_schema_equivalent_to_document(schema, document)

    document["attributes"]["code"]["transform"]["casing"] = "upper"
    with pytest.raises(SchemaError, match="schema does not match document"):
        assert_schema_equivalent_to_document(schema, document)


def test_equivalence_can_ignore_table_name() -> None:
    schema = _code_schema()
    document = schema_to_document_entity(schema)
    document["table"] = "other_table"
    with pytest.raises(SchemaError):
        assert_schema_equivalent_to_document(schema, document)
    assert_schema_equivalent_to_document(schema, document, ignore_table_name=True)
