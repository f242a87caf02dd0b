from __future__ import annotations

import pytest

from facetdb_py import UpdateConflictError, UpdateIntent, ValidationError


def test_compile_emits_operations_in_fixed_order() -> None:
    intent = UpdateIntent(
        remove=["draft"],
        add={"count": 1},
        set={"title": "hello"},
        append={"log": ["x"]},
        subtract={"stock": 2},
    )
    compiled = intent.compile()
    assert compiled.expression == (
        "SET #u0 = :u0, #u1 = list_append(#u1, :u1), #u2 = #u2 - :u2 ADD #u3 :u3 REMOVE #u4"
    )
    assert compiled.names == {
        "#u0": "title",
        "#u1": "log",
        "#u2": "stock",
        "#u3": "count",
        "#u4": "draft",
    }
    assert compiled.values[":u1"] == {"L": [{"S": "x"}]}


def test_compile_rejects_empty_intent() -> None:
    with pytest.raises(ValidationError, match="no update operations provided"):
        UpdateIntent().compile()


def test_conflicting_buckets_are_rejected() -> None:
    intent = UpdateIntent(set={"points": 1}, add={"points": 2})
    with pytest.raises(UpdateConflictError, match="'points' appears in both 'set' and 'add'"):
        intent.check_conflicts()
    with pytest.raises(UpdateConflictError):
        intent.compile()


def test_duplicate_removes_collapse() -> None:
    intent = UpdateIntent(remove=["a", "a"])
    intent.check_conflicts()
    assert intent.compile().expression == "REMOVE #u0"


def test_remove_at_renders_each_index() -> None:
    intent = UpdateIntent(remove_at={"items": [0, 3]})
    assert intent.compile(prefix="z").expression == "REMOVE #z0[0], #z1[3]"


def test_copy_is_independent() -> None:
    intent = UpdateIntent(set={"a": 1}, append={"l": [1]})
    dup = intent.copy()
    dup.set["b"] = 2
    dup.append["l"].append(2)
    assert intent.set == {"a": 1}
    assert intent.append == {"l": [1]}


def test_attribute_names_and_is_empty() -> None:
    assert UpdateIntent().is_empty()
    intent = UpdateIntent(set={"a": 1}, remove=["b"], remove_at={"c": [0]})
    assert intent.attribute_names() == ["a", "b", "c"]
    assert not intent.is_empty()
