from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version
from typing import TYPE_CHECKING, Any

from .entity import Entity, OperationEvent
from .errors import (
    AwsError,
    BatchRetryExceededError,
    CollectionNotFoundError,
    ConditionFailedError,
    CursorDecodingError,
    CursorEncodingError,
    DuplicateEntityError,
    EntityNotFoundError,
    FacetdbPyError,
    InvalidEnumValueError,
    InvalidIndexError,
    InvalidKeysError,
    MissingAttributeError,
    NoClientProvidedError,
    NotFoundError,
    ReadOnlyViolationError,
    SchemaError,
    TransactionCanceledError,
    UpdateConflictError,
    ValidationError,
)
from .expressions import CompiledExpression, ExpressionBuilder, PlaceholderTable
from .model import (
    AttributeDefinition,
    FacetDefinition,
    IndexDefinition,
    PaddingSpec,
    Schema,
    Timestamps,
    TtlConfig,
    attribute,
    facets,
    gsi,
    primary,
    validate_schema,
)
from .params import ParamsBuilder
from .query import Page, QueryResponse, SortKeyCondition, decode_cursor, encode_cursor
from .service import Collection, Service
from .transaction import TransactionItem, TransactResult
from .transforms import CustomPredicate, Identity, NumericScale, Pipeline, StringCase
from .update import UpdateIntent
from .validation import Validator

if TYPE_CHECKING:
    from .runtime import (
        AwsCallMetric,
        create_boto3_config,
        get_dynamodb_client,
        instrument_boto3_client,
        is_lambda_environment,
    )
    from .schema_doc import (
        assert_schema_equivalent_to_document,
        entity_schema_from_document,
        parse_schema_document,
        schema_to_document_entity,
    )

try:
    __version__ = version("facetdb-py")
except PackageNotFoundError:
    __version__ = "0.0.0"


def __getattr__(name: str) -> Any:
    if name in {
        "assert_schema_equivalent_to_document",
        "entity_schema_from_document",
        "parse_schema_document",
        "schema_to_document_entity",
    }:
        from . import schema_doc

        return getattr(schema_doc, name)
    if name in {
        "AwsCallMetric",
        "create_boto3_config",
        "get_dynamodb_client",
        "instrument_boto3_client",
        "is_lambda_environment",
    }:
        from . import runtime

        return getattr(runtime, name)
    raise AttributeError(name)


__all__ = [
    "AttributeDefinition",
    "AwsCallMetric",
    "AwsError",
    "BatchRetryExceededError",
    "Collection",
    "CollectionNotFoundError",
    "CompiledExpression",
    "ConditionFailedError",
    "CursorDecodingError",
    "CursorEncodingError",
    "CustomPredicate",
    "DuplicateEntityError",
    "Entity",
    "EntityNotFoundError",
    "ExpressionBuilder",
    "FacetDefinition",
    "FacetdbPyError",
    "Identity",
    "IndexDefinition",
    "InvalidEnumValueError",
    "InvalidIndexError",
    "InvalidKeysError",
    "MissingAttributeError",
    "NoClientProvidedError",
    "NotFoundError",
    "NumericScale",
    "OperationEvent",
    "PaddingSpec",
    "Page",
    "ParamsBuilder",
    "Pipeline",
    "PlaceholderTable",
    "QueryResponse",
    "ReadOnlyViolationError",
    "Schema",
    "SchemaError",
    "Service",
    "SortKeyCondition",
    "StringCase",
    "Timestamps",
    "TransactResult",
    "TransactionCanceledError",
    "TransactionItem",
    "TtlConfig",
    "UpdateConflictError",
    "UpdateIntent",
    "ValidationError",
    "Validator",
    "__version__",
    "assert_schema_equivalent_to_document",
    "attribute",
    "create_boto3_config",
    "decode_cursor",
    "encode_cursor",
    "entity_schema_from_document",
    "facets",
    "get_dynamodb_client",
    "gsi",
    "instrument_boto3_client",
    "is_lambda_environment",
    "parse_schema_document",
    "primary",
    "schema_to_document_entity",
    "validate_schema",
]
