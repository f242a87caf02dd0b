from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Self

from botocore.exceptions import ClientError

from .aws_errors import map_transaction_error as _map_transaction_error
from .entity import Entity, Item, QueryChain
from .errors import (
    CollectionNotFoundError,
    DuplicateEntityError,
    EntityNotFoundError,
    NoClientProvidedError,
    SchemaError,
)
from .transaction import (
    TransactionItem,
    TransactResult,
    build_transact_get,
    build_transact_write,
    parse_transact_get,
)

logger = logging.getLogger(__name__)

type TransactionFn = Callable[[Mapping[str, Entity]], Sequence[TransactionItem]]


@dataclass(frozen=True)
class CollectionMember:
    entity: str
    access_pattern: str


@dataclass
class Collection:
    name: str
    service: Service
    members: list[CollectionMember] = field(default_factory=list)

    @property
    def entities(self) -> list[str]:
        return [m.entity for m in self.members]

    def query(self, *values: Any, **facets: Any) -> CollectionQuery:
        return CollectionQuery(self, values, facets)


@dataclass(frozen=True)
class CollectionQueryResponse:
    data: dict[str, list[Item]]
    cursors: dict[str, str] = field(default_factory=dict)


class CollectionQuery:
    def __init__(self, collection: Collection, values: Sequence[Any], facets: Mapping[str, Any]) -> None:
        self._collection = collection
        self._values = tuple(values)
        self._facets = dict(facets)
        self._steps: list[Callable[[QueryChain], QueryChain]] = []

    def _chain(self, step: Callable[[QueryChain], QueryChain]) -> Self:
        self._steps.append(step)
        return self

    def eq(self, value: Any = None, /, **facets: Any) -> Self:
        return self._chain(lambda q: q.eq(value, **facets))

    def gt(self, value: Any = None, /, **facets: Any) -> Self:
        return self._chain(lambda q: q.gt(value, **facets))

    def gte(self, value: Any = None, /, **facets: Any) -> Self:
        return self._chain(lambda q: q.gte(value, **facets))

    def lt(self, value: Any = None, /, **facets: Any) -> Self:
        return self._chain(lambda q: q.lt(value, **facets))

    def lte(self, value: Any = None, /, **facets: Any) -> Self:
        return self._chain(lambda q: q.lte(value, **facets))

    def between(self, start: Any, end: Any) -> Self:
        return self._chain(lambda q: q.between(start, end))

    def begins(self, value: Any = None, /, **facets: Any) -> Self:
        return self._chain(lambda q: q.begins(value, **facets))

    def options(self, **options: Any) -> Self:
        return self._chain(lambda q: q.options(**options))

    def chains(self) -> dict[str, QueryChain]:
        out: dict[str, QueryChain] = {}
        for member in self._collection.members:
            entity = self._collection.service.entity(member.entity)
            chain = entity.query(member.access_pattern)(*self._values, **self._facets)
            for step in self._steps:
                chain = step(chain)
            out[member.entity] = chain
        return out

    def params(self) -> dict[str, dict[str, Any]]:
        return {name: chain.params() for name, chain in self.chains().items()}

    def go(self) -> CollectionQueryResponse:
        data: dict[str, list[Item]] = {}
        cursors: dict[str, str] = {}
        for name, chain in self.chains().items():
            resp = chain.go()
            data[name] = resp.data
            if resp.cursor:
                cursors[name] = resp.cursor
        return CollectionQueryResponse(data=data, cursors=cursors)


class TransactWriteBuilder:
    def __init__(self, service: Service, items: Sequence[TransactionItem]) -> None:
        self._service = service
        self._items = list(items)

    def params(self) -> dict[str, Any]:
        return build_transact_write(self._items)

    def go(self) -> list[TransactResult]:
        if not self._items:
            return []
        client = self._service.require_client()
        params = self.params()
        logger.debug("%s transact_write_items with %d items", self._service.name, len(self._items))
        try:
            client.transact_write_items(**params)
        except ClientError as err:
            raise _map_transaction_error(err) from err
        return [TransactResult(entity=item.entity) for item in self._items]


class TransactGetBuilder:
    def __init__(self, service: Service, items: Sequence[TransactionItem]) -> None:
        self._service = service
        self._items = list(items)

    def params(self) -> dict[str, Any]:
        return build_transact_get(self._items)

    def go(self) -> list[TransactResult]:
        if not self._items:
            return []
        client = self._service.require_client()
        params = self.params()
        logger.debug("%s transact_get_items with %d items", self._service.name, len(self._items))
        try:
            resp = client.transact_get_items(**params)
        except ClientError as err:
            raise _map_transaction_error(err) from err
        return parse_transact_get(self._items, resp)


class Service:
    """A registry of entities sharing one table, and the collections they form."""

    def __init__(self, name: str, *, client: Any | None = None, table: str | None = None) -> None:
        if not name:
            raise SchemaError("service name is required")
        self.name = name
        self.client = client
        self.table = table
        self._entities: dict[str, Entity] = {}
        self._collections: dict[str, Collection] = {}

    @property
    def entities(self) -> Mapping[str, Entity]:
        return dict(self._entities)

    @property
    def collections(self) -> Mapping[str, Collection]:
        return dict(self._collections)

    def join(self, entity: Entity) -> Self:
        name = entity.name
        if name in self._entities:
            raise DuplicateEntityError(f"entity '{name}' already exists in service '{self.name}'")

        if entity.client is None and self.client is not None:
            entity.client = self.client
        if entity.table is None and self.table is not None:
            entity.table = self.table

        self._entities[name] = entity
        for access_pattern, index in entity.schema.indexes.items():
            collection_name = index.collection or access_pattern
            collection = self._collections.get(collection_name)
            if collection is None:
                collection = Collection(name=collection_name, service=self)
                self._collections[collection_name] = collection
            if name not in collection.entities:
                collection.members.append(CollectionMember(entity=name, access_pattern=access_pattern))

        logger.debug("joined entity %s to service %s", name, self.name)
        return self

    def entity(self, name: str) -> Entity:
        entity = self._entities.get(name)
        if entity is None:
            raise EntityNotFoundError(f"entity '{name}' not found in service '{self.name}'")
        return entity

    def collection(self, name: str) -> Collection:
        collection = self._collections.get(name)
        if collection is None:
            raise CollectionNotFoundError(f"collection '{name}' not found in service '{self.name}'")
        return collection

    def require_client(self) -> Any:
        if self.client is not None:
            return self.client
        for entity in self._entities.values():
            if entity.client is not None:
                return entity.client
        raise NoClientProvidedError(f"no DynamoDB client was provided to service '{self.name}'")

    def transact_write(self, fn: TransactionFn) -> TransactWriteBuilder:
        return TransactWriteBuilder(self, fn(self.entities))

    def transact_get(self, fn: TransactionFn) -> TransactGetBuilder:
        return TransactGetBuilder(self, fn(self.entities))
