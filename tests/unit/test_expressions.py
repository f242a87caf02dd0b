from __future__ import annotations

import pytest

from facetdb_py import ValidationError
from facetdb_py.expressions import (
    ExpressionBuilder,
    PlaceholderTable,
    UpdateExpressionBuilder,
    join_conjunction,
    merge_expression,
)


def test_placeholder_table_allocates_unique_refs() -> None:
    table = PlaceholderTable(prefix="f")
    assert table.add_name("status") == "#f0"
    assert table.add_name("status") == "#f1"
    assert table.add_value("open") == ":f0"
    assert table.add_value(3) == ":f1"
    assert table.names == {"#f0": "status", "#f1": "status"}
    assert table.values == {":f0": {"S": "open"}, ":f1": {"N": "3"}}


def test_placeholder_table_skips_refs_already_taken() -> None:
    table = PlaceholderTable(prefix="f")
    table.names["#f0"] = "pk"
    table.values[":f0"] = {"S": "x"}
    assert table.add_name("a") == "#f1"
    assert table.add_value("y") == ":f1"


def test_expression_builder_where_and_ops() -> None:
    builder = ExpressionBuilder(["status", "points", "tags"], prefix="f")
    builder.where(lambda a, op: f"{a.status.eq('open')} AND {op.gt(a.points, 3)}")
    builder.where(lambda a, op: op.contains(a["tags"], "urgent"))

    compiled = builder.build()
    assert compiled.expression == "(#f0 = :f0 AND #f1 > :f1) AND (contains(#f2, :f2))"
    assert compiled.names == {"#f0": "status", "#f1": "points", "#f2": "tags"}
    assert compiled.values == {":f0": {"S": "open"}, ":f1": {"N": "3"}, ":f2": {"S": "urgent"}}


def test_expression_builder_keeps_top_level_or_grouped() -> None:
    builder = ExpressionBuilder(["points", "status", "title"], prefix="f")
    builder.where(lambda a, op: f"{a.points.between(1, 5)} OR {a.status.eq('open')}")
    builder.where(lambda a, op: a.title.eq("x"))

    assert builder.build().expression == "((#f0 BETWEEN :f0 AND :f1) OR #f1 = :f2) AND (#f2 = :f3)"


def test_expression_builder_accepts_attributes_named_like_dict_methods() -> None:
    builder = ExpressionBuilder(["keys", "items", "get"], prefix="f")
    attrs, _ = builder.refs()
    assert "keys" in attrs
    assert "values" not in attrs

    builder.where(lambda a, op: f"{a.keys.eq(1)} AND {a.items.exists()} AND {a.get.ne('x')}")

    compiled = builder.build()
    assert compiled.expression == "#f0 = :f0 AND attribute_exists(#f1) AND #f2 <> :f1"
    assert compiled.names == {"#f0": "keys", "#f1": "items", "#f2": "get"}


def test_expression_builder_rejects_unknown_attributes() -> None:
    builder = ExpressionBuilder(["status"])
    with pytest.raises(ValidationError, match="unknown attribute in expression: nope"):
        builder.where(lambda a, op: a.nope.eq(1))


def test_expression_builder_empty_callback_adds_nothing() -> None:
    builder = ExpressionBuilder(["status"])
    builder.where(lambda a, op: "")
    compiled = builder.build()
    assert not compiled
    assert compiled.names == {}


def test_attribute_ref_operators() -> None:
    builder = ExpressionBuilder(["n"], prefix="x")
    attrs, ops = builder.refs()
    n = attrs.n
    assert n.ne(1) == "#x0 <> :x0"
    assert n.gte(1) == "#x1 >= :x1"
    assert n.lt(1) == "#x2 < :x2"
    assert n.lte(1) == "#x3 <= :x3"
    assert n.between(1, 5) == "(#x4 BETWEEN :x4 AND :x5)"
    assert n.begins("a") == "begins_with(#x5, :x6)"
    assert n.not_contains("a") == "NOT contains(#x6, :x7)"
    assert n.exists() == "attribute_exists(#x7)"
    assert ops.not_exists(n) == "attribute_not_exists(#x8)"
    assert ops.size(n) == "size(#x9)"
    assert ops.attribute_type(n, "S") == "attribute_type(#x10, :x8)"
    assert ops.name(n) == "#x11"
    assert ops.value(2) == ":x9"


def test_join_conjunction_wraps_prior_expression_once() -> None:
    assert join_conjunction("", "a") == "a"
    assert join_conjunction("a", "") == "a"
    assert join_conjunction("a", "b") == "(a) AND (b)"
    assert join_conjunction("(a) AND (b)", "c") == "(a) AND (b) AND (c)"
    assert join_conjunction("(a) OR b", "c") == "((a) OR b) AND (c)"
    assert join_conjunction("(a) OR (b)", "c") == "((a) OR (b)) AND (c)"


def test_merge_expression_reallocates_every_placeholder() -> None:
    first = ExpressionBuilder(["a"], prefix="f")
    first.where(lambda a, op: a.a.eq(1))
    second = ExpressionBuilder(["a"], prefix="f")
    second.where(lambda a, op: a.a.eq(2))

    table = PlaceholderTable(prefix="f")
    text1 = merge_expression(table, first.build())
    text2 = merge_expression(table, second.build())

    assert text1 == "#f0 = :f0"
    assert text2 == "#f1 = :f1"
    assert len(table.names) == 2
    assert len(table.values) == 2
    assert table.values[":f1"] == {"N": "2"}


def test_merge_expression_leaves_foreign_tokens_alone() -> None:
    table = PlaceholderTable(prefix="f")
    table.names["#pk"] = "pk"
    other = PlaceholderTable(prefix="c")
    ref = other.add_name("status")
    compiled = other.compile(f"{ref} = #pk")
    assert merge_expression(table, compiled) == "#f0 = #pk"


def test_update_expression_builder_clauses() -> None:
    builder = UpdateExpressionBuilder(prefix="u")
    builder.set("title", "x")
    builder.set_if_not_exists("views", 0)
    builder.subtract("stock", 1)
    builder.append("log", ["a"])
    builder.prepend("log2", ["b"])
    builder.add("count", 1)
    builder.delete("tags", {"old"})
    builder.remove("draft")
    builder.remove_at("items", 2)

    assert builder.expression == (
        "SET #u0 = :u0, #u1 = if_not_exists(#u1, :u1), #u2 = #u2 - :u2, "
        "#u3 = list_append(#u3, :u3), #u4 = list_append(:u4, #u4) "
        "ADD #u5 :u5 DELETE #u6 :u6 REMOVE #u7, #u8[2]"
    )
    assert builder.table.values[":u6"] == {"SS": ["old"]}


@pytest.mark.parametrize("index", [-1, True, "1"])
def test_update_expression_builder_rejects_bad_list_index(index: object) -> None:
    builder = UpdateExpressionBuilder()
    with pytest.raises(ValidationError, match="non-negative integer"):
        builder.remove_at("items", index)  # type: ignore[arg-type]


def test_update_expression_builder_rejects_empty_sets() -> None:
    builder = UpdateExpressionBuilder()
    with pytest.raises(ValidationError, match="DELETE on 'tags' needs a non-empty set"):
        builder.delete("tags", set())
    with pytest.raises(ValidationError, match="ADD on 'tags' needs a non-empty set"):
        builder.add("tags", frozenset())
    assert builder.expression == ""
