from __future__ import annotations

from decimal import Decimal

import pytest

from facetdb_py import (
    CustomPredicate,
    InvalidEnumValueError,
    NumericScale,
    ReadOnlyViolationError,
    Schema,
    SchemaError,
    StringCase,
    UpdateIntent,
    ValidationError,
    Validator,
    attribute,
    facets,
    primary,
)
from facetdb_py.validation import validate_index_name, validate_table_name


def _schema() -> Schema:
    return Schema(
        service="shop",
        entity="product",
        table="shop_table",
        attributes={
            "sku": attribute(required=True, transform=StringCase(casing="upper")),
            "price": attribute("number", transform=NumericScale(factor=100)),
            "color": attribute("enum", enum_values=["red", "blue"]),
            "stock": attribute("number", validate=CustomPredicate(lambda v: v >= 0, "stock must be >= 0")),
            "owner": attribute(read_only=True),
            "secret": attribute(hidden=True),
            "tags": attribute("set", transform=StringCase(casing="lower")),
        },
        indexes={"product": primary(facets("pk", "sku"), facets("sk"))},
    )


def test_write_applies_transforms_and_passes_unknown_attributes() -> None:
    out = Validator(_schema()).validate_and_transform_for_write(
        {"sku": "ab-1", "price": Decimal("1.25"), "color": "red", "pk": "raw"}
    )
    assert out == {"sku": "AB-1", "price": 125, "color": "red", "pk": "raw"}


def test_write_rejects_bad_enum_before_custom_validation() -> None:
    validator = Validator(_schema())
    with pytest.raises(InvalidEnumValueError, match="allowed values: 'red', 'blue'"):
        validator.validate_and_transform_for_write({"color": "green"})


def test_custom_validator_failure_is_wrapped_with_cause() -> None:
    with pytest.raises(ValidationError, match="validation failed for attribute 'stock'") as excinfo:
        Validator(_schema()).validate_and_transform_for_write({"stock": -1})
    assert isinstance(excinfo.value.cause, ValueError)


def test_custom_validator_exception_is_wrapped() -> None:
    with pytest.raises(ValidationError, match="stock must be >= 0"):
        Validator(_schema()).validate_and_transform_for_write({"stock": "lots"})


def test_read_only_rejected_only_for_updates() -> None:
    validator = Validator(_schema())
    assert validator.validate_and_transform_for_write({"owner": "me"}) == {"owner": "me"}
    with pytest.raises(ReadOnlyViolationError):
        validator.validate_and_transform_for_write({"owner": "me"}, is_update=True)


def test_read_drops_hidden_and_reverses_transforms() -> None:
    out = Validator(_schema()).transform_for_read({"sku": "AB-1", "price": 125, "secret": "x", "extra": 1})
    assert out == {"sku": "AB-1", "price": Decimal("1.25"), "extra": 1}


def test_update_operations_check_every_bucket_for_read_only() -> None:
    validator = Validator(_schema())
    validator.validate_update_operations(UpdateIntent(set={"price": 1}))
    with pytest.raises(ReadOnlyViolationError, match="'owner' is read-only"):
        validator.validate_update_operations(UpdateIntent(remove=["owner"]))


def test_update_values_are_validated_and_transformed() -> None:
    validator = Validator(_schema())
    out = validator.transform_update_values(
        UpdateIntent(
            set={"price": 2},
            add={"price_total": 1, "tags": {"A", "B"}},
            subtract={"price": 1},
        )
    )
    assert out.set == {"price": 200}
    assert out.add == {"price_total": 1, "tags": {"a", "b"}}
    assert out.subtract == {"price": 100}

    with pytest.raises(InvalidEnumValueError):
        validator.transform_update_values(UpdateIntent(set_if_not_exists={"color": "green"}))
    with pytest.raises(ValidationError):
        validator.transform_update_values(UpdateIntent(set={"stock": -5}))


@pytest.mark.parametrize("name", ["ab", "x" * 256, "bad name", "bad/name"])
def test_table_and_index_names_are_validated(name: str) -> None:
    with pytest.raises(SchemaError):
        validate_table_name(name)
    with pytest.raises(SchemaError):
        validate_index_name(name)


def test_valid_names_pass() -> None:
    validate_table_name("my-table.v1_x")
    validate_index_name("gsi1")
