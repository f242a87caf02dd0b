from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from .errors import ValidationError
from .marshal import marshal_value

_PLACEHOLDER_RE = re.compile(r"[#:][A-Za-z_][A-Za-z0-9_]*")


@dataclass(frozen=True)
class CompiledExpression:
    expression: str
    names: Mapping[str, str]
    values: Mapping[str, Any]

    def __bool__(self) -> bool:
        return bool(self.expression)


@dataclass
class PlaceholderTable:
    """Name/value placeholder tables for one expression tree.

    ``#<prefix><n>`` maps to an attribute name and ``:<prefix><n>`` to a
    serialized value. Counters only grow, so every allocation is unique within
    the table.
    """

    prefix: str = "x"
    names: dict[str, str] = field(default_factory=dict)
    values: dict[str, Any] = field(default_factory=dict)
    name_count: int = 0
    value_count: int = 0

    def add_name(self, name: str) -> str:
        while True:
            ref = f"#{self.prefix}{self.name_count}"
            self.name_count += 1
            if ref not in self.names:
                break
        self.names[ref] = name
        return ref

    def add_value(self, value: Any) -> str:
        return self.add_marshalled_value(marshal_value(value))

    def add_marshalled_value(self, av: Mapping[str, Any]) -> str:
        while True:
            ref = f":{self.prefix}{self.value_count}"
            self.value_count += 1
            if ref not in self.values:
                break
        self.values[ref] = dict(av)
        return ref

    def compile(self, expression: str) -> CompiledExpression:
        return CompiledExpression(expression=expression, names=dict(self.names), values=dict(self.values))


def merge_expression(table: PlaceholderTable, other: CompiledExpression) -> str:
    """Fold ``other``'s placeholders into ``table`` and return its rewritten text.

    Every placeholder of ``other`` is re-allocated from ``table``'s counters, so
    two expressions compiled independently (even with the same prefix) never
    collide and the merged tables hold the sum of both.
    """
    mapping: dict[str, str] = {}
    for ref, name in other.names.items():
        mapping[ref] = table.add_name(name)
    for ref, av in other.values.items():
        mapping[ref] = table.add_marshalled_value(av)

    return _PLACEHOLDER_RE.sub(lambda m: mapping.get(m.group(0), m.group(0)), other.expression)


def _has_top_level_or(expression: str) -> bool:
    depth = 0
    for i, ch in enumerate(expression):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        elif depth == 0 and expression.startswith(" OR ", i):
            return True
    return False


def join_conjunction(current: str, fragment: str) -> str:
    if not fragment:
        return current
    if not current:
        return fragment
    if not current.startswith("(") or _has_top_level_or(current):
        current = f"({current})"
    return f"{current} AND ({fragment})"


class AttributeRef:
    def __init__(self, table: PlaceholderTable, name: str) -> None:
        self._table = table
        self.name = name

    def _compare(self, op: str, value: Any) -> str:
        name_ref = self._table.add_name(self.name)
        value_ref = self._table.add_value(value)
        return f"{name_ref} {op} {value_ref}"

    def eq(self, value: Any) -> str:
        return self._compare("=", value)

    def ne(self, value: Any) -> str:
        return self._compare("<>", value)

    def gt(self, value: Any) -> str:
        return self._compare(">", value)

    def gte(self, value: Any) -> str:
        return self._compare(">=", value)

    def lt(self, value: Any) -> str:
        return self._compare("<", value)

    def lte(self, value: Any) -> str:
        return self._compare("<=", value)

    def between(self, start: Any, end: Any) -> str:
        name_ref = self._table.add_name(self.name)
        start_ref = self._table.add_value(start)
        end_ref = self._table.add_value(end)
        return f"({name_ref} BETWEEN {start_ref} AND {end_ref})"

    def begins(self, value: Any) -> str:
        name_ref = self._table.add_name(self.name)
        return f"begins_with({name_ref}, {self._table.add_value(value)})"

    def contains(self, value: Any) -> str:
        name_ref = self._table.add_name(self.name)
        return f"contains({name_ref}, {self._table.add_value(value)})"

    def not_contains(self, value: Any) -> str:
        name_ref = self._table.add_name(self.name)
        return f"NOT contains({name_ref}, {self._table.add_value(value)})"

    def exists(self) -> str:
        return f"attribute_exists({self._table.add_name(self.name)})"

    def not_exists(self) -> str:
        return f"attribute_not_exists({self._table.add_name(self.name)})"


class AttributeRefs:
    """Catalog attributes by name, as ``attrs.status`` or ``attrs["status"]``."""

    def __init__(self, table: PlaceholderTable, names: Iterable[str]) -> None:
        self._refs = {name: AttributeRef(table, name) for name in names}

    def __getitem__(self, name: str) -> AttributeRef:
        ref = self._refs.get(name)
        if ref is None:
            raise ValidationError(f"unknown attribute in expression: {name}")
        return ref

    def __getattr__(self, name: str) -> AttributeRef:
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]

    def __contains__(self, name: object) -> bool:
        return name in self._refs

    def __iter__(self) -> Iterator[str]:
        return iter(self._refs)

    def __len__(self) -> int:
        return len(self._refs)


class Operations:
    """Function-style helpers handed to where/condition callbacks."""

    def __init__(self, table: PlaceholderTable) -> None:
        self._table = table

    def name(self, attr: AttributeRef) -> str:
        return self._table.add_name(attr.name)

    def value(self, value: Any) -> str:
        return self._table.add_value(value)

    def exists(self, attr: AttributeRef) -> str:
        return attr.exists()

    def not_exists(self, attr: AttributeRef) -> str:
        return attr.not_exists()

    def size(self, attr: AttributeRef) -> str:
        return f"size({self._table.add_name(attr.name)})"

    def attribute_type(self, attr: AttributeRef, type_name: str) -> str:
        name_ref = self._table.add_name(attr.name)
        return f"attribute_type({name_ref}, {self._table.add_value(type_name)})"

    def eq(self, attr: AttributeRef, value: Any) -> str:
        return attr.eq(value)

    def ne(self, attr: AttributeRef, value: Any) -> str:
        return attr.ne(value)

    def gt(self, attr: AttributeRef, value: Any) -> str:
        return attr.gt(value)

    def gte(self, attr: AttributeRef, value: Any) -> str:
        return attr.gte(value)

    def lt(self, attr: AttributeRef, value: Any) -> str:
        return attr.lt(value)

    def lte(self, attr: AttributeRef, value: Any) -> str:
        return attr.lte(value)

    def between(self, attr: AttributeRef, start: Any, end: Any) -> str:
        return attr.between(start, end)

    def begins(self, attr: AttributeRef, value: Any) -> str:
        return attr.begins(value)

    def contains(self, attr: AttributeRef, value: Any) -> str:
        return attr.contains(value)

    def not_contains(self, attr: AttributeRef, value: Any) -> str:
        return attr.not_contains(value)


type WhereCallback = Callable[[AttributeRefs, Operations], str]


class ExpressionBuilder:
    def __init__(
        self,
        attributes: Iterable[str],
        *,
        prefix: str = "f",
        table: PlaceholderTable | None = None,
    ) -> None:
        self.table = table if table is not None else PlaceholderTable(prefix=prefix)
        self._attribute_names = tuple(attributes)
        self._expression = ""

    @property
    def expression(self) -> str:
        return self._expression

    def add_name(self, name: str) -> str:
        return self.table.add_name(name)

    def add_value(self, value: Any) -> str:
        return self.table.add_value(value)

    def add_expression(self, fragment: str) -> None:
        self._expression = join_conjunction(self._expression, fragment)

    def refs(self) -> tuple[AttributeRefs, Operations]:
        return AttributeRefs(self.table, self._attribute_names), Operations(self.table)

    def where(self, callback: WhereCallback) -> ExpressionBuilder:
        attrs, ops = self.refs()
        fragment = callback(attrs, ops)
        if fragment:
            self.add_expression(fragment)
        return self

    def build(self) -> CompiledExpression:
        return self.table.compile(self._expression)


def _require_non_empty_set(clause: str, name: str, value: Any) -> None:
    if isinstance(value, (set, frozenset)) and not value:
        raise ValidationError(f"{clause} on '{name}' needs a non-empty set")


class UpdateExpressionBuilder:
    def __init__(self, *, prefix: str = "u", table: PlaceholderTable | None = None) -> None:
        self.table = table if table is not None else PlaceholderTable(prefix=prefix)
        self._set: list[str] = []
        self._add: list[str] = []
        self._delete: list[str] = []
        self._remove: list[str] = []

    def set(self, name: str, value: Any) -> None:
        self._set.append(f"{self.table.add_name(name)} = {self.table.add_value(value)}")

    def set_if_not_exists(self, name: str, value: Any) -> None:
        ref = self.table.add_name(name)
        self._set.append(f"{ref} = if_not_exists({ref}, {self.table.add_value(value)})")

    def subtract(self, name: str, value: Any) -> None:
        ref = self.table.add_name(name)
        self._set.append(f"{ref} = {ref} - {self.table.add_value(value)}")

    def append(self, name: str, values: Any) -> None:
        ref = self.table.add_name(name)
        self._set.append(f"{ref} = list_append({ref}, {self.table.add_value(list(values))})")

    def prepend(self, name: str, values: Any) -> None:
        ref = self.table.add_name(name)
        self._set.append(f"{ref} = list_append({self.table.add_value(list(values))}, {ref})")

    def add(self, name: str, value: Any) -> None:
        _require_non_empty_set("ADD", name, value)
        self._add.append(f"{self.table.add_name(name)} {self.table.add_value(value)}")

    def delete(self, name: str, values: Any) -> None:
        _require_non_empty_set("DELETE", name, values)
        self._delete.append(f"{self.table.add_name(name)} {self.table.add_value(values)}")

    def remove(self, name: str) -> None:
        self._remove.append(self.table.add_name(name))

    def remove_at(self, name: str, index: int) -> None:
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise ValidationError("list index must be a non-negative integer")
        self._remove.append(f"{self.table.add_name(name)}[{index}]")

    @property
    def expression(self) -> str:
        clauses: list[str] = []
        if self._set:
            clauses.append("SET " + ", ".join(self._set))
        if self._add:
            clauses.append("ADD " + ", ".join(self._add))
        if self._delete:
            clauses.append("DELETE " + ", ".join(self._delete))
        if self._remove:
            clauses.append("REMOVE " + ", ".join(self._remove))
        return " ".join(clauses)

    def build(self) -> CompiledExpression:
        return self.table.compile(self.expression)
