from __future__ import annotations

import time
from collections.abc import Mapping, Sequence
from typing import Any

from .errors import InvalidIndexError, InvalidKeysError, MissingAttributeError, ValidationError
from .expressions import CompiledExpression, PlaceholderTable, join_conjunction, merge_expression
from .keys import (
    KeyOptions,
    KeyResult,
    build_labels,
    format_key_casing,
    make_key,
    partition_key_prefix,
    sort_key_prefix,
)
from .marshal import marshal_item
from .model import FacetDefinition, IndexDefinition, Schema
from .padding import apply_padding, pad_value
from .query import SortKeyCondition, decode_cursor
from .timestamps import Clock, apply_timestamps, apply_update_timestamp
from .update import UpdateIntent
from .validation import Validator

_COMPARATORS = {"=", "<", "<=", ">", ">="}
_RETURN_VALUES = {"NONE", "ALL_OLD", "UPDATED_OLD", "ALL_NEW", "UPDATED_NEW"}


def _apply_expressions(
    req: dict[str, Any],
    table: PlaceholderTable,
    field: str,
    expressions: Sequence[CompiledExpression | None],
) -> None:
    text = ""
    for compiled in expressions:
        if compiled is None or not compiled.expression:
            continue
        text = join_conjunction(text, merge_expression(table, compiled))
    if text:
        req[field] = text


def _finish(req: dict[str, Any], table: PlaceholderTable) -> dict[str, Any]:
    if table.names:
        req["ExpressionAttributeNames"] = dict(table.names)
    if table.values:
        req["ExpressionAttributeValues"] = dict(table.values)
    return req


def _check_return_values(value: str | None) -> None:
    if value is not None and value not in _RETURN_VALUES:
        raise ValidationError(f"unsupported return values option: {value}")


class ParamsBuilder:
    """Turns entity-level intents into boto3 DynamoDB request keyword arguments."""

    def __init__(self, schema: Schema, *, table: str | None = None, clock: Clock = time.time) -> None:
        self._schema = schema
        self._table_name = table or schema.table
        self._clock = clock
        self.validator = Validator(schema)

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def table_name(self) -> str:
        return self._table_name

    def _key_values(self, supplied: Mapping[str, Any]) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for name, value in supplied.items():
            attr = self._schema.attributes.get(name)
            if attr is not None and value is not None:
                if attr.transform is not None:
                    value = attr.transform.on_write(value)
                value = pad_value(value, attr.padding)
            out[name] = value
        return out

    def build_key(
        self,
        facet_def: FacetDefinition,
        supplied: Mapping[str, Any],
        *,
        is_sort: bool = False,
        exclude_label_tail: bool = False,
    ) -> KeyResult:
        if is_sort:
            prefix = sort_key_prefix(self._schema.entity, self._schema.version)
        else:
            prefix = partition_key_prefix(self._schema.service)
        options = KeyOptions(
            prefix=prefix,
            casing=facet_def.casing,
            postfix=facet_def.postfix,
            exclude_label_tail=exclude_label_tail,
        )
        return make_key(options, build_labels(facet_def.facets), supplied)

    def entity_sort_prefix(self, index: IndexDefinition, supplied: Mapping[str, Any] | None = None) -> str:
        """Sort key prefix isolating this entity (and any leading sort facets supplied)."""
        if index.sk is None:
            return ""
        return self.build_key(index.sk, self._key_values(supplied or {}), is_sort=True).key

    def index(self, access_pattern: str) -> IndexDefinition:
        index = self._schema.indexes.get(access_pattern)
        if index is None:
            raise InvalidIndexError(f"index '{access_pattern}' not found")
        return index

    def primary_key(self, keys: Mapping[str, Any]) -> dict[str, str]:
        return self._primary_key(self._key_values(keys))

    def _primary_key(self, values: Mapping[str, Any]) -> dict[str, str]:
        _, index = self._schema.primary_index()

        pk = self.build_key(index.pk, values)
        if not pk.fulfilled:
            raise InvalidKeysError(
                f"partition key facets not fully provided (need: {', '.join(index.pk.facets)})"
            )
        out = {index.pk.field: pk.key}

        if index.sk is not None:
            sk = self.build_key(index.sk, values, is_sort=True)
            if not sk.fulfilled:
                raise InvalidKeysError(
                    f"sort key facets not fully provided (need: {', '.join(index.sk.facets)})"
                )
            out[index.sk.field] = sk.key
        return out

    def marshalled_key(self, keys: Mapping[str, Any]) -> dict[str, Any]:
        return {name: {"S": value} for name, value in self.primary_key(keys).items()}

    def add_keys_to_item(self, item: Mapping[str, Any]) -> dict[str, Any]:
        out = dict(item)
        out.update(self._primary_key(item))

        for index in self._schema.indexes.values():
            if index.is_primary:
                continue
            pk = self.build_key(index.pk, item)
            if pk.fulfilled:
                out[index.pk.field] = pk.key
            if index.sk is not None:
                sk = self.build_key(index.sk, item, is_sort=True)
                if sk.fulfilled:
                    out[index.sk.field] = sk.key
        return out

    def prepare_item(self, item: Mapping[str, Any]) -> dict[str, Any]:
        values = {k: v for k, v in item.items() if v is not None}

        for name, attr in self._schema.attributes.items():
            if attr.required and name not in values:
                raise MissingAttributeError(f"required attribute '{name}' is missing")
        for name, attr in self._schema.attributes.items():
            if name not in values and attr.default is not None:
                values[name] = attr.default()

        values = apply_timestamps(values, self._schema, clock=self._clock)
        # Reads unpad and then reverse the transform, so padding goes on last.
        values = self.validator.validate_and_transform_for_write(values, is_update=False)
        values = apply_padding(values, self._schema)
        return self.add_keys_to_item(values)

    def build_get_params(
        self,
        keys: Mapping[str, Any],
        attributes: Sequence[str] | None = None,
        *,
        consistent_read: bool = False,
    ) -> dict[str, Any]:
        req: dict[str, Any] = {"TableName": self._table_name, "Key": self.marshalled_key(keys)}
        if consistent_read:
            req["ConsistentRead"] = True
        table = PlaceholderTable(prefix="p")
        if attributes:
            req["ProjectionExpression"] = self.projection(attributes, table)
        return _finish(req, table)

    def projection(self, attributes: Sequence[str], table: PlaceholderTable) -> str:
        refs: list[str] = []
        for name in attributes:
            if name not in self._schema.attributes:
                raise ValidationError(f"unknown attribute in projection: {name}")
            refs.append(table.add_name(name))
        return ", ".join(refs)

    def build_put_params(
        self,
        item: Mapping[str, Any],
        *,
        condition: CompiledExpression | None = None,
        return_values: str | None = None,
    ) -> dict[str, Any]:
        _check_return_values(return_values)
        req: dict[str, Any] = {
            "TableName": self._table_name,
            "Item": marshal_item(self.prepare_item(item)),
        }
        table = PlaceholderTable(prefix="c")
        _apply_expressions(req, table, "ConditionExpression", [condition])
        if return_values is not None:
            req["ReturnValues"] = return_values
        return _finish(req, table)

    def _check_key_updates(self, intent: UpdateIntent) -> None:
        _, index = self._schema.primary_index()
        protected = {index.pk.field, *index.pk.facets}
        if index.sk is not None:
            protected.update({index.sk.field, *index.sk.facets})
        for name in intent.attribute_names():
            if name in protected:
                raise ValidationError(f"cannot update key attribute: {name}")

    def build_update_params(
        self,
        keys: Mapping[str, Any],
        intent: UpdateIntent,
        *,
        condition: CompiledExpression | None = None,
        return_values: str | None = None,
    ) -> dict[str, Any]:
        _check_return_values(return_values)
        key = self.marshalled_key(keys)

        intent = intent.copy()
        if not intent.is_empty():
            intent.set = apply_update_timestamp(intent.set, self._schema, clock=self._clock)

        self.validator.validate_update_operations(intent)
        self._check_key_updates(intent)
        intent.check_conflicts()
        intent = self.validator.transform_update_values(intent)

        table = PlaceholderTable(prefix="u")
        compiled = intent.compile(table=table)
        req: dict[str, Any] = {
            "TableName": self._table_name,
            "Key": key,
            "UpdateExpression": compiled.expression,
        }
        _apply_expressions(req, table, "ConditionExpression", [condition])
        req["ReturnValues"] = return_values or "ALL_NEW"
        return _finish(req, table)

    def build_delete_params(
        self,
        keys: Mapping[str, Any],
        *,
        condition: CompiledExpression | None = None,
        return_values: str | None = None,
    ) -> dict[str, Any]:
        _check_return_values(return_values)
        req: dict[str, Any] = {"TableName": self._table_name, "Key": self.marshalled_key(keys)}
        table = PlaceholderTable(prefix="c")
        _apply_expressions(req, table, "ConditionExpression", [condition])
        if return_values is not None:
            req["ReturnValues"] = return_values
        return _finish(req, table)

    def _sort_value(self, facet_def: FacetDefinition, value: Any) -> str:
        if isinstance(value, Mapping):
            result = self.build_key(facet_def, self._key_values(value), is_sort=True, exclude_label_tail=True)
            return result.key
        return str(value)

    def _sort_condition(
        self,
        index: IndexDefinition,
        sort: SortKeyCondition | None,
        facets: Mapping[str, Any],
        table: PlaceholderTable,
    ) -> str:
        if index.sk is None:
            if sort is not None:
                raise ValidationError("index does not define a sort key")
            return ""

        sk_ref = "#sk"
        table.names[sk_ref] = index.sk.field

        if sort is None:
            table.values[":sk"] = {"S": self.entity_sort_prefix(index, facets)}
            return f"begins_with({sk_ref}, :sk)"

        values = [self._sort_value(index.sk, v) for v in sort.values]
        if sort.op in _COMPARATORS and len(values) == 1:
            table.values[":sk"] = {"S": values[0]}
            return f"{sk_ref} {sort.op} :sk"
        if sort.op == "between" and len(values) == 2:
            table.values[":sk1"] = {"S": values[0]}
            table.values[":sk2"] = {"S": values[1]}
            return f"{sk_ref} BETWEEN :sk1 AND :sk2"
        if sort.op == "begins_with" and len(values) == 1:
            table.values[":sk"] = {"S": values[0]}
            return f"begins_with({sk_ref}, :sk)"
        raise ValidationError(f"unsupported sort key condition: {sort.op}")

    def _paging(
        self,
        req: dict[str, Any],
        *,
        limit: int | None,
        cursor: str | None,
    ) -> None:
        if limit is not None:
            if limit <= 0:
                raise ValidationError("limit must be > 0")
            req["Limit"] = limit
        start = decode_cursor(cursor)
        if start:
            req["ExclusiveStartKey"] = start

    def build_query_params(
        self,
        access_pattern: str,
        facets: Mapping[str, Any],
        sort: SortKeyCondition | None = None,
        *,
        filters: Sequence[CompiledExpression] = (),
        limit: int | None = None,
        order: str | None = None,
        cursor: str | None = None,
        attributes: Sequence[str] | None = None,
    ) -> dict[str, Any]:
        index = self.index(access_pattern)

        pk = self.build_key(index.pk, self._key_values(facets))
        if not pk.fulfilled:
            raise InvalidKeysError(
                f"partition key facets not fully provided (need: {', '.join(index.pk.facets)})"
            )

        table = PlaceholderTable(prefix="f")
        table.names["#pk"] = index.pk.field
        table.values[":pk"] = {"S": pk.key}
        key_expr = "#pk = :pk"
        sort_expr = self._sort_condition(index, sort, facets, table)
        if sort_expr:
            key_expr = f"{key_expr} AND {sort_expr}"

        req: dict[str, Any] = {"TableName": self._table_name, "KeyConditionExpression": key_expr}
        if index.index is not None:
            req["IndexName"] = index.index

        _apply_expressions(req, table, "FilterExpression", filters)
        if attributes:
            req["ProjectionExpression"] = self.projection(attributes, table)

        if order is not None:
            if order not in {"asc", "desc"}:
                raise ValidationError(f"unsupported order: {order}")
            req["ScanIndexForward"] = order == "asc"
        self._paging(req, limit=limit, cursor=cursor)
        return _finish(req, table)

    def build_scan_params(
        self,
        *,
        filters: Sequence[CompiledExpression] = (),
        limit: int | None = None,
        cursor: str | None = None,
    ) -> dict[str, Any]:
        _, index = self._schema.primary_index()
        req: dict[str, Any] = {"TableName": self._table_name}

        table = PlaceholderTable(prefix="f")
        isolation: list[str] = []
        table.names["#pk"] = index.pk.field
        pk_prefix = format_key_casing(partition_key_prefix(self._schema.service), index.pk.casing)
        table.values[":pk"] = {"S": pk_prefix}
        isolation.append("begins_with(#pk, :pk)")
        if index.sk is not None:
            table.names["#sk"] = index.sk.field
            table.values[":sk"] = {"S": self.entity_sort_prefix(index)}
            isolation.append("begins_with(#sk, :sk)")

        text = " AND ".join(isolation)
        for compiled in filters:
            if compiled is None or not compiled.expression:
                continue
            text = join_conjunction(text, merge_expression(table, compiled))
        req["FilterExpression"] = text

        self._paging(req, limit=limit, cursor=cursor)
        return _finish(req, table)
