from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from .errors import ValidationError

MAX_TRANSACTION_ITEMS = 100

type TransactKind = Literal["Put", "Update", "Delete", "ConditionCheck", "Get"]

_WRITE_KINDS = {"Put", "Update", "Delete", "ConditionCheck"}
_REQUEST_FIELDS = {
    "Put": ("TableName", "Item", "ConditionExpression", "ExpressionAttributeNames", "ExpressionAttributeValues"),
    "Update": (
        "TableName",
        "Key",
        "UpdateExpression",
        "ConditionExpression",
        "ExpressionAttributeNames",
        "ExpressionAttributeValues",
    ),
    "Delete": ("TableName", "Key", "ConditionExpression", "ExpressionAttributeNames", "ExpressionAttributeValues"),
    "ConditionCheck": (
        "TableName",
        "Key",
        "ConditionExpression",
        "ExpressionAttributeNames",
        "ExpressionAttributeValues",
    ),
    "Get": ("TableName", "Key", "ProjectionExpression", "ExpressionAttributeNames"),
}


@dataclass(frozen=True)
class TransactionItem:
    kind: TransactKind
    entity: str
    params: Mapping[str, Any]
    format_item: Callable[[Mapping[str, Any]], dict[str, Any]] | None = None

    def to_request(self) -> dict[str, Any]:
        allowed = _REQUEST_FIELDS[self.kind]
        return {self.kind: {k: v for k, v in self.params.items() if k in allowed}}


@dataclass(frozen=True)
class TransactResult:
    entity: str
    item: dict[str, Any] | None = None


def _check_count(items: Sequence[TransactionItem]) -> None:
    if len(items) > MAX_TRANSACTION_ITEMS:
        raise ValidationError(f"a transaction supports at most {MAX_TRANSACTION_ITEMS} items")


def build_transact_write(items: Sequence[TransactionItem]) -> dict[str, Any]:
    _check_count(items)
    for item in items:
        if item.kind not in _WRITE_KINDS:
            raise ValidationError(f"{item.kind} items cannot be part of a write transaction")
    return {"TransactItems": [item.to_request() for item in items]}


def build_transact_get(items: Sequence[TransactionItem]) -> dict[str, Any]:
    _check_count(items)
    for item in items:
        if item.kind != "Get":
            raise ValidationError(f"{item.kind} items cannot be part of a get transaction")
    return {"TransactItems": [item.to_request() for item in items]}


def parse_transact_get(items: Sequence[TransactionItem], response: Mapping[str, Any]) -> list[TransactResult]:
    out: list[TransactResult] = []
    responses = list(response.get("Responses") or [])
    for i, item in enumerate(items):
        raw = responses[i].get("Item") if i < len(responses) else None
        if not raw or item.format_item is None:
            out.append(TransactResult(entity=item.entity, item=None))
            continue
        out.append(TransactResult(entity=item.entity, item=item.format_item(raw)))
    return out
