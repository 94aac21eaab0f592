from __future__ import annotations

import pytest

from dbtools.errors import ArgumentError
from dbtools.query.filters import compile_constraint, compile_where, quote_value


def _where(constraint):
    return compile_where(["id"], {"id": constraint}, quote_value)


@pytest.mark.parametrize(
    ("constraint", "expected"),
    [
        (1, ["t.id = '1'"]),
        ([3], ["t.id = '3'"]),
        ([1, 2, "NULL"], ["(t.id IN ('1','2') OR t.id IS NULL)"]),
        ([1, 2, None], ["t.id IN ('1','2')"]),
        ([1, 2, ""], ["t.id IN ('1','2','')"]),
        ("", ["t.id = ''"]),
        ([], ["t.id = ''"]),
        ([None], ["t.id = ''"]),
        ([None, "NULL"], ["t.id = ''"]),
        ([False, "NULL", None], ["t.id = ''"]),
        (None, []),
        (False, []),
        ("NULL", ["t.id IS NULL"]),
        ("NOT NULL", ["t.id IS NOT NULL"]),
        ({}, ["t.id = ''"]),
    ],
)
def test_shorthand_constraints(constraint, expected) -> None:
    assert _where(constraint) == expected


@pytest.mark.parametrize(
    ("constraint", "expected"),
    [
        ({"eq": 5}, ["t.id = '5'"]),
        ({"neq": 5}, ["t.id != '5'"]),
        ({"lt": 5}, ["t.id < '5'"]),
        ({"lte": 5}, ["t.id <= '5'"]),
        ({"gt": 5}, ["t.id > '5'"]),
        ({"gte": 5}, ["t.id >= '5'"]),
        ({"in": "1,2"}, ["t.id IN ('1','2')"]),
        ({"in": [5]}, ["t.id IN ('5')"]),
        ({"in": ["NULL"]}, ["t.id = ''"]),
        ({"in": "NULL"}, ["t.id = ''"]),
        ({"in": [5, "NULL"]}, ["(t.id IN ('5') OR t.id IS NULL)"]),
        ({"in": ""}, ["t.id = ''"]),
        ({"between": [1, 10]}, ["t.id BETWEEN '1' AND '10'"]),
        ({"between": [None, 10]}, ["t.id <= '10'"]),
        ({"between": [10, None]}, ["t.id >= '10'"]),
        ({"between": [None, None]}, []),
        ({"is": None}, ["t.id IS NULL"]),
        ({"is": "NULL"}, ["t.id IS NULL"]),
        ({"isnt": "null"}, ["t.id IS NOT NULL"]),
        ({"gte": 1, "lt": 10}, ["t.id >= '1'", "t.id < '10'"]),
    ],
)
def test_operator_constraints(constraint, expected) -> None:
    assert _where(constraint) == expected


@pytest.mark.parametrize(
    "constraint",
    [
        {"between": ["A", "B", "C"]},
        {"between": {"A": 1, "B": 2}},
        {"between": "1,2"},
        {"in": {"a": 1}},
        {"is": 3},
        {"isnt": ""},
        {"like": "%a%"},
    ],
)
def test_invalid_constraints_raise(constraint) -> None:
    with pytest.raises(ArgumentError):
        _where(constraint)


def test_fields_outside_the_allowlist_are_ignored() -> None:
    options = {"category": "fruit", "id": [1, 2], "secret": "x"}

    where = compile_where(["id", "category", "name"], options, quote_value)

    assert where == ["t.id IN ('1','2')", "t.category = 'fruit'"]


def test_alias_can_be_changed_or_dropped() -> None:
    assert compile_where(["id"], {"id": 1}, quote_value, alias="u") == ["u.id = '1'"]
    assert compile_where(["id"], {"id": 1}, quote_value, alias="") == ["id = '1'"]


def test_values_go_through_the_quote_callable() -> None:
    quoted = []

    def quote(value):
        quoted.append(value)
        return "?"

    assert compile_constraint("t.name", ["a", "b"], quote) == ["t.name IN (?,?)"]
    assert quoted == ["a", "b"]


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("O'Reilly", "'O''Reilly'"),
        (None, "''"),
        (False, "''"),
        (True, "'1'"),
        (3.5, "'3.5'"),
    ],
)
def test_quote_value(value, expected) -> None:
    assert quote_value(value) == expected
