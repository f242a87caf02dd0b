from __future__ import annotations

import pytest

import facetdb_py


def test_init_exposes_lazy_exports_via_getattr() -> None:
    assert callable(facetdb_py.parse_schema_document)
    assert callable(facetdb_py.entity_schema_from_document)
    assert callable(facetdb_py.schema_to_document_entity)
    assert callable(facetdb_py.assert_schema_equivalent_to_document)
    assert callable(facetdb_py.is_lambda_environment)
    assert callable(facetdb_py.get_dynamodb_client)
    assert callable(facetdb_py.create_boto3_config)
    assert callable(facetdb_py.instrument_boto3_client)
    assert facetdb_py.AwsCallMetric.__name__ == "AwsCallMetric"


def test_unknown_attribute_raises() -> None:
    with pytest.raises(AttributeError):
        facetdb_py.does_not_exist  # noqa: B018


def test_all_names_resolve() -> None:
    for name in facetdb_py.__all__:
        assert getattr(facetdb_py, name) is not None


def test_version_is_a_string() -> None:
    assert isinstance(facetdb_py.__version__, str)
    assert facetdb_py.__version__
