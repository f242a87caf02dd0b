from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal, Self

from botocore.exceptions import ClientError

from .aws_errors import map_client_error as _map_client_error
from .errors import BatchRetryExceededError, NoClientProvidedError, ValidationError
from .expressions import CompiledExpression, ExpressionBuilder, WhereCallback
from .marshal import unmarshal_item
from .model import Schema, validate_schema
from .padding import remove_padding
from .params import ParamsBuilder
from .query import Page, QueryResponse, SortKeyCondition, encode_cursor
from .timestamps import Clock, ttl_from_now
from .transaction import TransactionItem
from .update import UpdateIntent

logger = logging.getLogger(__name__)

type Item = dict[str, Any]


@dataclass(frozen=True)
class OperationEvent:
    kind: Literal["query", "results"]
    method: str
    params: Mapping[str, Any]
    results: Any = None


type Listener = Callable[[OperationEvent], None]


def _backoff_seconds(attempt: int) -> float:
    seconds = 0.05 * (2.0 ** (attempt - 1))
    if seconds > 1.0:
        return 1.0
    return seconds


def _chunked[T](items: Sequence[T], size: int) -> Sequence[Sequence[T]]:
    if size <= 0:
        raise ValueError("size must be > 0")
    return [items[i : i + size] for i in range(0, len(items), size)]


def _merge_values(values: Mapping[str, Any] | None, kwargs: Mapping[str, Any]) -> dict[str, Any]:
    out = dict(values or {})
    out.update(kwargs)
    return out


def _sort_arg(value: Any, facets: Mapping[str, Any]) -> Any:
    if facets:
        return dict(facets)
    if value is None:
        raise ValidationError("a sort key condition requires a value or sort key facets")
    return value


class Entity:
    """One entity type stored in a shared table.

    Every operation method returns a builder; ``params()`` renders the boto3
    request and ``go()`` executes it with the configured client.
    """

    def __init__(
        self,
        schema: Schema,
        *,
        client: Any | None = None,
        table: str | None = None,
        clock: Clock = time.time,
        listeners: Sequence[Listener] = (),
    ) -> None:
        validate_schema(schema)
        self.schema = schema
        self.client = client
        self.table = table
        self.clock = clock
        self._listeners: list[Listener] = list(listeners)

    @property
    def name(self) -> str:
        return self.schema.entity

    @property
    def table_name(self) -> str:
        return self.table or self.schema.table

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def params_builder(self) -> ParamsBuilder:
        return ParamsBuilder(self.schema, table=self.table_name, clock=self.clock)

    def expression_builder(self, prefix: str) -> ExpressionBuilder:
        return ExpressionBuilder(self.schema.attributes, prefix=prefix)

    def _emit(self, event: OperationEvent) -> None:
        for listener in self._listeners:
            listener(event)

    def execute(self, method: str, params: Mapping[str, Any]) -> Mapping[str, Any]:
        if self.client is None:
            raise NoClientProvidedError(f"no DynamoDB client was provided to entity '{self.name}'")

        self._emit(OperationEvent(kind="query", method=method, params=params))
        logger.debug("%s %s on %s", self.name, method, params.get("TableName", self.table_name))
        try:
            resp = getattr(self.client, method)(**params)
        except ClientError as err:
            raise _map_client_error(err) from err
        self._emit(OperationEvent(kind="results", method=method, params=params, results=resp))
        return resp

    def format_item(self, raw: Mapping[str, Any], *, keep_internal: bool = False) -> Item:
        item = unmarshal_item(raw)
        if keep_internal:
            return item

        kept = set(self.schema.attributes)
        if self.schema.timestamps is not None:
            kept.update(n for n in (self.schema.timestamps.created_at, self.schema.timestamps.updated_at) if n)
        if self.schema.ttl is not None:
            kept.add(self.schema.ttl.attribute)

        item = {k: v for k, v in item.items() if k in kept}
        item = remove_padding(item, self.schema)
        return self.params_builder().validator.transform_for_read(item)

    def get(self, keys: Mapping[str, Any] | None = None, /, **facets: Any) -> GetOperation:
        return GetOperation(self, _merge_values(keys, facets))

    def put(self, item: Mapping[str, Any] | None = None, /, **values: Any) -> PutOperation:
        return PutOperation(self, _merge_values(item, values))

    def upsert(self, item: Mapping[str, Any] | None = None, /, **values: Any) -> PutOperation:
        return PutOperation(self, _merge_values(item, values))

    def create(self, item: Mapping[str, Any] | None = None, /, **values: Any) -> PutOperation:
        op = PutOperation(self, _merge_values(item, values))
        op.require_absent()
        return op

    def update(self, keys: Mapping[str, Any] | None = None, /, **facets: Any) -> UpdateOperation:
        return UpdateOperation(self, _merge_values(keys, facets))

    def upsert_update(self, keys: Mapping[str, Any] | None = None, /, **facets: Any) -> UpdateOperation:
        return UpdateOperation(self, _merge_values(keys, facets))

    def patch(self, keys: Mapping[str, Any] | None = None, /, **facets: Any) -> UpdateOperation:
        op = UpdateOperation(self, _merge_values(keys, facets))
        op.require_present()
        return op

    def delete(self, keys: Mapping[str, Any] | None = None, /, **facets: Any) -> DeleteOperation:
        return DeleteOperation(self, _merge_values(keys, facets))

    def remove(self, keys: Mapping[str, Any] | None = None, /, **facets: Any) -> DeleteOperation:
        return self.delete(keys, **facets)

    def check(self, keys: Mapping[str, Any] | None = None, /, **facets: Any) -> CheckOperation:
        return CheckOperation(self, _merge_values(keys, facets))

    def query(self, access_pattern: str) -> QueryBuilder:
        self.params_builder().index(access_pattern)
        return QueryBuilder(self, access_pattern)

    def scan(self) -> ScanOperation:
        return ScanOperation(self)

    def batch_get(self, keys: Sequence[Mapping[str, Any]]) -> BatchGetOperation:
        return BatchGetOperation(self, keys)

    def batch_write(
        self,
        *,
        puts: Sequence[Mapping[str, Any]] = (),
        deletes: Sequence[Mapping[str, Any]] = (),
    ) -> BatchWriteOperation:
        return BatchWriteOperation(self, puts=puts, deletes=deletes)


class _ConditionalOperation:
    def __init__(self, entity: Entity) -> None:
        self._entity = entity
        self._condition = entity.expression_builder("c")
        self._return_values: str | None = None

    def _primary_pk_field(self) -> str:
        _, index = self._entity.schema.primary_index()
        return index.pk.field

    def require_absent(self) -> None:
        ref = self._condition.add_name(self._primary_pk_field())
        self._condition.add_expression(f"attribute_not_exists({ref})")

    def require_present(self) -> None:
        ref = self._condition.add_name(self._primary_pk_field())
        self._condition.add_expression(f"attribute_exists({ref})")

    def condition(self, callback: WhereCallback) -> Self:
        self._condition.where(callback)
        return self

    def return_values(self, option: str) -> Self:
        self._return_values = option
        return self

    def _compiled_condition(self) -> CompiledExpression | None:
        compiled = self._condition.build()
        return compiled if compiled else None


class GetOperation:
    def __init__(self, entity: Entity, keys: Mapping[str, Any]) -> None:
        self._entity = entity
        self._keys = dict(keys)
        self._attributes: list[str] = []
        self._consistent = False

    def attributes(self, *names: str) -> GetOperation:
        self._attributes.extend(names)
        return self

    def consistent(self, enabled: bool = True) -> GetOperation:
        self._consistent = enabled
        return self

    def params(self) -> dict[str, Any]:
        return self._entity.params_builder().build_get_params(
            self._keys, self._attributes or None, consistent_read=self._consistent
        )

    def go(self, *, raw: bool = False) -> Item | None:
        resp = self._entity.execute("get_item", self.params())
        item = resp.get("Item")
        if not item:
            return None
        return self._entity.format_item(item, keep_internal=raw)

    def commit(self) -> TransactionItem:
        params = self._entity.params_builder().build_get_params(self._keys, self._attributes or None)
        return TransactionItem(
            kind="Get", entity=self._entity.name, params=params, format_item=self._entity.format_item
        )


class PutOperation(_ConditionalOperation):
    def __init__(self, entity: Entity, item: Mapping[str, Any]) -> None:
        super().__init__(entity)
        self._item = dict(item)

    def with_ttl(self, seconds: float) -> PutOperation:
        ttl = self._entity.schema.ttl
        if ttl is not None:
            self._item[ttl.attribute] = ttl_from_now(seconds, clock=self._entity.clock)
        return self

    def with_ttl_timestamp(self, timestamp: int) -> PutOperation:
        ttl = self._entity.schema.ttl
        if ttl is not None:
            self._item[ttl.attribute] = int(timestamp)
        return self

    def params(self) -> dict[str, Any]:
        return self._entity.params_builder().build_put_params(
            self._item, condition=self._compiled_condition(), return_values=self._return_values
        )

    def go(self, *, raw: bool = False) -> Item:
        params = self.params()
        resp = self._entity.execute("put_item", params)
        attrs = resp.get("Attributes")
        if attrs and self._return_values not in (None, "NONE"):
            return self._entity.format_item(attrs, keep_internal=raw)
        return self._entity.format_item(params["Item"], keep_internal=raw)

    def commit(self) -> TransactionItem:
        return TransactionItem(kind="Put", entity=self._entity.name, params=self.params())


class UpdateOperation(_ConditionalOperation):
    def __init__(self, entity: Entity, keys: Mapping[str, Any]) -> None:
        super().__init__(entity)
        self._keys = dict(keys)
        self._intent = UpdateIntent()

    @property
    def intent(self) -> UpdateIntent:
        return self._intent

    def set(self, values: Mapping[str, Any] | None = None, /, **kwargs: Any) -> UpdateOperation:
        self._intent.set.update(_merge_values(values, kwargs))
        return self

    def set_if_not_exists(self, values: Mapping[str, Any] | None = None, /, **kwargs: Any) -> UpdateOperation:
        self._intent.set_if_not_exists.update(_merge_values(values, kwargs))
        return self

    def add(self, values: Mapping[str, Any] | None = None, /, **kwargs: Any) -> UpdateOperation:
        self._intent.add.update(_merge_values(values, kwargs))
        return self

    def subtract(self, values: Mapping[str, Any] | None = None, /, **kwargs: Any) -> UpdateOperation:
        self._intent.subtract.update(_merge_values(values, kwargs))
        return self

    def append(self, values: Mapping[str, Any] | None = None, /, **kwargs: Any) -> UpdateOperation:
        for name, items in _merge_values(values, kwargs).items():
            self._intent.append.setdefault(name, []).extend(items)
        return self

    def prepend(self, values: Mapping[str, Any] | None = None, /, **kwargs: Any) -> UpdateOperation:
        for name, items in _merge_values(values, kwargs).items():
            self._intent.prepend[name] = list(items) + self._intent.prepend.get(name, [])
        return self

    def delete(self, values: Mapping[str, Any] | None = None, /, **kwargs: Any) -> UpdateOperation:
        self._intent.delete.update(_merge_values(values, kwargs))
        return self

    def remove(self, *names: str) -> UpdateOperation:
        self._intent.remove.extend(names)
        return self

    def remove_at(self, name: str, *indexes: int) -> UpdateOperation:
        self._intent.remove_at.setdefault(name, []).extend(indexes)
        return self

    def with_ttl(self, seconds: float) -> UpdateOperation:
        ttl = self._entity.schema.ttl
        if ttl is not None:
            self._intent.set[ttl.attribute] = ttl_from_now(seconds, clock=self._entity.clock)
        return self

    def with_ttl_timestamp(self, timestamp: int) -> UpdateOperation:
        ttl = self._entity.schema.ttl
        if ttl is not None:
            self._intent.set[ttl.attribute] = int(timestamp)
        return self

    def remove_ttl(self) -> UpdateOperation:
        ttl = self._entity.schema.ttl
        if ttl is not None:
            self._intent.remove.append(ttl.attribute)
        return self

    def params(self) -> dict[str, Any]:
        return self._entity.params_builder().build_update_params(
            self._keys,
            self._intent,
            condition=self._compiled_condition(),
            return_values=self._return_values,
        )

    def go(self, *, raw: bool = False) -> Item | None:
        resp = self._entity.execute("update_item", self.params())
        attrs = resp.get("Attributes")
        if not attrs:
            return None
        return self._entity.format_item(attrs, keep_internal=raw)

    def commit(self) -> TransactionItem:
        return TransactionItem(kind="Update", entity=self._entity.name, params=self.params())


class DeleteOperation(_ConditionalOperation):
    def __init__(self, entity: Entity, keys: Mapping[str, Any]) -> None:
        super().__init__(entity)
        self._keys = dict(keys)

    def params(self) -> dict[str, Any]:
        return self._entity.params_builder().build_delete_params(
            self._keys, condition=self._compiled_condition(), return_values=self._return_values
        )

    def go(self, *, raw: bool = False) -> Item | None:
        resp = self._entity.execute("delete_item", self.params())
        attrs = resp.get("Attributes")
        if not attrs:
            return None
        return self._entity.format_item(attrs, keep_internal=raw)

    def commit(self) -> TransactionItem:
        return TransactionItem(kind="Delete", entity=self._entity.name, params=self.params())


class CheckOperation(_ConditionalOperation):
    def __init__(self, entity: Entity, keys: Mapping[str, Any]) -> None:
        super().__init__(entity)
        self._keys = dict(keys)

    def params(self) -> dict[str, Any]:
        compiled = self._compiled_condition()
        if compiled is None:
            raise ValidationError("a condition check requires a condition")
        # Reuse the delete shape: same key and condition fields.
        return self._entity.params_builder().build_delete_params(self._keys, condition=compiled)

    def commit(self) -> TransactionItem:
        return TransactionItem(kind="ConditionCheck", entity=self._entity.name, params=self.params())


class _ReadOperation(ABC):
    def __init__(self, entity: Entity) -> None:
        self._entity = entity
        self._filter = entity.expression_builder("f")
        self._limit: int | None = None
        self._cursor: str | None = None
        self._raw = False

    def where(self, callback: WhereCallback) -> Self:
        self._filter.where(callback)
        return self

    def filter(self, name: str, **params: Any) -> Self:
        fn = self._entity.schema.filters.get(name)
        if fn is None:
            raise ValidationError(f"unknown filter: {name}")
        self._filter.where(lambda attrs, ops: fn(attrs, ops, **params))
        return self

    def _filters(self) -> tuple[CompiledExpression, ...]:
        compiled = self._filter.build()
        return (compiled,) if compiled else ()

    @abstractmethod
    def params(self) -> dict[str, Any]: ...

    @abstractmethod
    def _method(self) -> str: ...

    def _page(self, cursor: str | None) -> Page[Item]:
        params = self._params_for(cursor)
        resp = self._entity.execute(self._method(), params)
        items = [self._entity.format_item(item, keep_internal=self._raw) for item in resp.get("Items", [])]
        last = resp.get("LastEvaluatedKey")
        return Page(items=items, next_cursor=encode_cursor(last) or None)

    def _params_for(self, cursor: str | None) -> dict[str, Any]:
        saved = self._cursor
        self._cursor = cursor
        try:
            return self.params()
        finally:
            self._cursor = saved

    def go(self) -> QueryResponse[Item]:
        page = self._page(self._cursor)
        return QueryResponse(data=page.items, cursor=page.next_cursor)

    def page_iter(self, max_pages: int | None = None) -> Iterator[Page[Item]]:
        if max_pages is not None and max_pages <= 0:
            raise ValidationError("max_pages must be > 0")
        cursor = self._cursor
        count = 0
        while True:
            page = self._page(cursor)
            yield page
            count += 1
            if page.next_cursor is None or (max_pages is not None and count >= max_pages):
                return
            cursor = page.next_cursor

    def pages(self, max_pages: int | None = None) -> list[Item]:
        out: list[Item] = []
        for page in self.page_iter(max_pages):
            out.extend(page.items)
        return out


class QueryBuilder:
    def __init__(self, entity: Entity, access_pattern: str) -> None:
        self._entity = entity
        self._access_pattern = access_pattern

    def __call__(self, *values: Any, **facets: Any) -> QueryChain:
        index = self._entity.params_builder().index(self._access_pattern)
        if len(values) > len(index.pk.facets):
            raise ValidationError(
                f"too many partition key values for '{self._access_pattern}' (expected {len(index.pk.facets)})"
            )
        supplied = dict(zip(index.pk.facets, values, strict=False))
        supplied.update(facets)
        return QueryChain(self._entity, self._access_pattern, supplied)


class QueryChain(_ReadOperation):
    def __init__(self, entity: Entity, access_pattern: str, facets: Mapping[str, Any]) -> None:
        super().__init__(entity)
        self._access_pattern = access_pattern
        self._facets = dict(facets)
        self._sort: SortKeyCondition | None = None
        self._order: str | None = None
        self._attributes: list[str] = []

    def _set_sort(self, sort: SortKeyCondition) -> QueryChain:
        self._sort = sort
        return self

    def eq(self, value: Any = None, /, **facets: Any) -> QueryChain:
        return self._set_sort(SortKeyCondition.eq(_sort_arg(value, facets)))

    def gt(self, value: Any = None, /, **facets: Any) -> QueryChain:
        return self._set_sort(SortKeyCondition.gt(_sort_arg(value, facets)))

    def gte(self, value: Any = None, /, **facets: Any) -> QueryChain:
        return self._set_sort(SortKeyCondition.gte(_sort_arg(value, facets)))

    def lt(self, value: Any = None, /, **facets: Any) -> QueryChain:
        return self._set_sort(SortKeyCondition.lt(_sort_arg(value, facets)))

    def lte(self, value: Any = None, /, **facets: Any) -> QueryChain:
        return self._set_sort(SortKeyCondition.lte(_sort_arg(value, facets)))

    def between(self, start: Any, end: Any) -> QueryChain:
        return self._set_sort(SortKeyCondition.between(start, end))

    def begins(self, value: Any = None, /, **facets: Any) -> QueryChain:
        return self._set_sort(SortKeyCondition.begins_with(_sort_arg(value, facets)))

    def options(
        self,
        *,
        limit: int | None = None,
        order: str | None = None,
        cursor: str | None = None,
        raw: bool | None = None,
        attributes: Sequence[str] | None = None,
    ) -> QueryChain:
        if limit is not None:
            self._limit = limit
        if order is not None:
            self._order = order
        if cursor is not None:
            self._cursor = cursor
        if raw is not None:
            self._raw = raw
        if attributes is not None:
            self._attributes = list(attributes)
        return self

    def _method(self) -> str:
        return "query"

    def params(self) -> dict[str, Any]:
        return self._entity.params_builder().build_query_params(
            self._access_pattern,
            self._facets,
            self._sort,
            filters=self._filters(),
            limit=self._limit,
            order=self._order,
            cursor=self._cursor,
            attributes=self._attributes or None,
        )


class ScanOperation(_ReadOperation):
    def options(
        self,
        *,
        limit: int | None = None,
        cursor: str | None = None,
        raw: bool | None = None,
    ) -> ScanOperation:
        if limit is not None:
            self._limit = limit
        if cursor is not None:
            self._cursor = cursor
        if raw is not None:
            self._raw = raw
        return self

    def _method(self) -> str:
        return "scan"

    def params(self) -> dict[str, Any]:
        return self._entity.params_builder().build_scan_params(
            filters=self._filters(), limit=self._limit, cursor=self._cursor
        )


class BatchGetOperation:
    def __init__(self, entity: Entity, keys: Sequence[Mapping[str, Any]]) -> None:
        self._entity = entity
        self._keys = [dict(k) for k in keys]
        self._consistent = False

    def consistent(self, enabled: bool = True) -> BatchGetOperation:
        self._consistent = enabled
        return self

    def params(self) -> list[dict[str, Any]]:
        builder = self._entity.params_builder()
        table = self._entity.table_name
        out: list[dict[str, Any]] = []
        for chunk in _chunked(self._keys, 100):
            request: dict[str, Any] = {"Keys": [builder.marshalled_key(k) for k in chunk]}
            if self._consistent:
                request["ConsistentRead"] = True
            out.append({"RequestItems": {table: request}})
        return out

    def go(
        self,
        *,
        raw: bool = False,
        max_retries: int = 5,
        sleep: Callable[[float], None] | None = time.sleep,
    ) -> list[Item]:
        if max_retries < 0:
            raise ValidationError("max_retries must be >= 0")

        table = self._entity.table_name
        out: list[Item] = []
        for params in self.params():
            pending: Mapping[str, Any] = params["RequestItems"][table]
            attempts = 0

            while pending:
                resp = self._entity.execute("batch_get_item", {"RequestItems": {table: pending}})
                for item in resp.get("Responses", {}).get(table, []):
                    out.append(self._entity.format_item(item, keep_internal=raw))

                unprocessed = resp.get("UnprocessedKeys", {}).get(table) or {}
                if not unprocessed.get("Keys"):
                    break
                if attempts >= max_retries:
                    raise BatchRetryExceededError(
                        operation="batch_get", unprocessed_count=len(unprocessed["Keys"])
                    )
                attempts += 1
                logger.debug(
                    "%s batch_get re-submitting %d unprocessed keys (attempt %d)",
                    self._entity.name,
                    len(unprocessed["Keys"]),
                    attempts,
                )
                if sleep is not None:
                    sleep(_backoff_seconds(attempts))
                pending = unprocessed

        return out


class BatchWriteOperation:
    def __init__(
        self,
        entity: Entity,
        *,
        puts: Sequence[Mapping[str, Any]],
        deletes: Sequence[Mapping[str, Any]],
    ) -> None:
        self._entity = entity
        self._puts = [dict(p) for p in puts]
        self._deletes = [dict(d) for d in deletes]

    def params(self) -> list[dict[str, Any]]:
        builder = self._entity.params_builder()
        requests: list[dict[str, Any]] = []
        for item in self._puts:
            requests.append({"PutRequest": {"Item": builder.build_put_params(item)["Item"]}})
        for keys in self._deletes:
            requests.append({"DeleteRequest": {"Key": builder.marshalled_key(keys)}})

        table = self._entity.table_name
        return [{"RequestItems": {table: list(chunk)}} for chunk in _chunked(requests, 25)]

    def go(
        self,
        *,
        max_retries: int = 5,
        sleep: Callable[[float], None] | None = time.sleep,
    ) -> None:
        if max_retries < 0:
            raise ValidationError("max_retries must be >= 0")

        table = self._entity.table_name
        for params in self.params():
            pending = params["RequestItems"][table]
            attempts = 0

            while pending:
                resp = self._entity.execute("batch_write_item", {"RequestItems": {table: pending}})
                pending = resp.get("UnprocessedItems", {}).get(table, []) or []
                if pending:
                    if attempts >= max_retries:
                        raise BatchRetryExceededError(operation="batch_write", unprocessed_count=len(pending))
                    attempts += 1
                    logger.debug(
                        "%s batch_write re-submitting %d unprocessed requests (attempt %d)",
                        self._entity.name,
                        len(pending),
                        attempts,
                    )
                    if sleep is not None:
                        sleep(_backoff_seconds(attempts))
