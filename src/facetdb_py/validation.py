from __future__ import annotations

import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .errors import InvalidEnumValueError, ReadOnlyViolationError, SchemaError, ValidationError

if TYPE_CHECKING:
    from .model import AttributeDefinition, Schema
    from .update import UpdateIntent

_NAME_RE = re.compile(r"^[a-zA-Z0-9_.-]+$")


def validate_table_name(name: str) -> None:
    if len(name) < 3 or len(name) > 255:
        raise SchemaError(f"table name length invalid: {name!r}")
    if _NAME_RE.match(name) is None:
        raise SchemaError(f"table name contains invalid characters: {name!r}")


def validate_index_name(name: str) -> None:
    if len(name) < 3 or len(name) > 255:
        raise SchemaError(f"index name length invalid: {name!r}")
    if _NAME_RE.match(name) is None:
        raise SchemaError(f"index name contains invalid characters: {name!r}")


def _map_elements(value: Any, fn: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return {fn(v) for v in value}
    if isinstance(value, (list, tuple)):
        return [fn(v) for v in value]
    return fn(value)


class Validator:
    """Applies an entity's per-attribute rules to items crossing the wire.

    Attributes that are not in the catalog pass through unchanged in both
    directions.
    """

    def __init__(self, schema: Schema) -> None:
        self._schema = schema

    def _check_enum(self, name: str, attr: AttributeDefinition, value: Any) -> None:
        if attr.type != "enum" or not attr.enum_values:
            return
        if value not in attr.enum_values:
            allowed = ", ".join(repr(v) for v in attr.enum_values)
            raise InvalidEnumValueError(
                f"attribute '{name}' has invalid enum value {value!r}; allowed values: {allowed}"
            )

    def _check_custom(self, name: str, attr: AttributeDefinition, value: Any) -> None:
        if attr.validate is None:
            return
        try:
            attr.validate.check(value)
        except (ValueError, TypeError) as err:
            raise ValidationError(f"validation failed for attribute '{name}': {err}", cause=err) from err

    def _check_read_only(self, name: str) -> None:
        attr = self._schema.attributes.get(name)
        if attr is not None and attr.read_only:
            raise ReadOnlyViolationError(f"attribute '{name}' is read-only and cannot be updated")

    def validate_and_transform_for_write(
        self, item: Mapping[str, Any], *, is_update: bool = False
    ) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for name, value in item.items():
            attr = self._schema.attributes.get(name)
            if attr is None:
                out[name] = value
                continue

            if is_update and attr.read_only:
                raise ReadOnlyViolationError(f"attribute '{name}' is read-only and cannot be updated")
            self._check_enum(name, attr, value)
            self._check_custom(name, attr, value)

            if attr.transform is not None:
                value = attr.transform.on_write(value)
            out[name] = value
        return out

    def transform_for_read(self, item: Mapping[str, Any]) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for name, value in item.items():
            attr = self._schema.attributes.get(name)
            if attr is None:
                out[name] = value
                continue
            if attr.hidden:
                continue
            if attr.transform is not None:
                value = attr.transform.on_read(value)
            out[name] = value
        return out

    def validate_update_operations(self, intent: UpdateIntent) -> None:
        for name in intent.attribute_names():
            self._check_read_only(name)

    def transform_update_values(self, intent: UpdateIntent) -> UpdateIntent:
        out = intent.copy()

        for bucket in (out.set, out.set_if_not_exists):
            for name, value in list(bucket.items()):
                attr = self._schema.attributes.get(name)
                if attr is None:
                    continue
                self._check_enum(name, attr, value)
                self._check_custom(name, attr, value)
                if attr.transform is not None:
                    bucket[name] = attr.transform.on_write(value)

        for bucket in (out.add, out.subtract, out.delete, out.append, out.prepend):
            for name, value in list(bucket.items()):
                attr = self._schema.attributes.get(name)
                if attr is None or attr.transform is None:
                    continue
                bucket[name] = _map_elements(value, attr.transform.on_write)

        return out
