"""
Filter compiler: field constraints to SQL WHERE predicates.

``compile_where`` walks a list of allowed field names and, for each one present
in the options dictionary, emits zero or more predicate strings. Field names
come from the caller's allowlist and are interpolated as-is; every value goes
through the injected ``quote`` callable first.

Constraint shapes (per field):

- missing, ``None`` or ``False``    -> ignored
- scalar                            -> ``eq``
- list (bare array shorthand)       -> ``in``, a singleton collapses to ``eq``
- mapping ``{operator: argument}``  -> the operator(s), in mapping order

Operators: eq, neq, lt, lte, gt, gte, in, between, is, isnt.

Example:
    >>> compile_where(["id"], {"id": [1, 2, "NULL"]}, quote_value)
    ["(t.id IN ('1','2') OR t.id IS NULL)"]
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterable, List, Sequence

from dbtools.errors import ArgumentError

Quote = Callable[[Any], str]

OPERATORS = ("eq", "neq", "lt", "lte", "gt", "gte", "in", "between", "is", "isnt")

_COMPARISONS: Dict[str, str] = {
    "neq": "!=",
    "lt": "<",
    "lte": "<=",
    "gt": ">",
    "gte": ">=",
}


def quote_value(value: Any) -> str:
    """
    Reference literal quoter: every value becomes a single-quoted string.

    None and False quote to ``''``, True to ``'1'``. Embedded single quotes are
    doubled. Drivers normally provide their own quoting; this one is used by
    tests and by callers building SQL for display.
    """
    if value is None or value is False:
        text = ""
    elif value is True:
        text = "1"
    else:
        text = str(value)
    return "'" + text.replace("'", "''") + "'"


def _empty(column: str) -> str:
    return f"{column} = ''"


def _eq(column: str, value: Any, quote: Quote) -> List[str]:
    if isinstance(value, str) and value in ("NULL", "NOT NULL"):
        return [f"{column} IS {value}"]
    return [f"{column} = {quote(value)}"]


def _in(column: str, values: Sequence[Any], quote: Quote, shorthand: bool = False) -> List[str]:
    if not values:
        return [_empty(column)]

    if shorthand and len(values) == 1:
        single = values[0]
        if single is None or single is False:
            return [_empty(column)]
        return _eq(column, single, quote)

    or_null = False
    quoted: List[str] = []
    for value in values:
        if value is None or value is False:
            continue
        if isinstance(value, str) and value == "NULL":
            or_null = True
            continue
        quoted.append(quote(value))

    # The or-null flag only widens a non-empty set.
    if not quoted:
        return [_empty(column)]

    clause = f"{column} IN ({','.join(quoted)})"
    if or_null:
        return [f"({clause} OR {column} IS NULL)"]
    return [clause]


def _explode(argument: Any) -> List[Any]:
    if isinstance(argument, str):
        return argument.split(",") if argument else []
    if isinstance(argument, Mapping):
        raise ArgumentError("IN clause expects a list or a comma-separated string")
    if isinstance(argument, (list, tuple, set, frozenset)):
        return list(argument)
    return [argument]


def _between(column: str, argument: Any, quote: Quote) -> List[str]:
    if not isinstance(argument, (list, tuple)) or len(argument) != 2:
        raise ArgumentError("Between clause must have exactly 2 values (min, max)")

    low, high = argument
    if low is not None and high is not None:
        return [f"{column} BETWEEN {quote(low)} AND {quote(high)}"]
    if low is not None:
        return [f"{column} >= {quote(low)}"]
    if high is not None:
        return [f"{column} <= {quote(high)}"]
    return []


def _null_test(column: str, operator: str, argument: Any) -> List[str]:
    if not (argument is None or (isinstance(argument, str) and argument.lower() == "null")):
        raise ArgumentError(
            f"Operator '{operator}' only accepts null, {argument!r} given"
        )
    return [f"{column} IS NULL" if operator == "is" else f"{column} IS NOT NULL"]


def compile_operator(column: str, operator: str, argument: Any, quote: Quote) -> List[str]:
    """Compile a single ``{operator: argument}`` constraint on ``column``."""
    if operator == "eq":
        return _eq(column, argument, quote)
    if operator in _COMPARISONS:
        return [f"{column} {_COMPARISONS[operator]} {quote(argument)}"]
    if operator == "in":
        return _in(column, _explode(argument), quote)
    if operator == "between":
        return _between(column, argument, quote)
    if operator in ("is", "isnt"):
        return _null_test(column, operator, argument)
    raise ArgumentError(
        f"Unknown operator '{operator}' (expected one of: {', '.join(OPERATORS)})"
    )


def compile_constraint(column: str, constraint: Any, quote: Quote) -> List[str]:
    """Compile the constraint of one field into predicates on ``column``."""
    if constraint is None or constraint is False:
        return []

    if isinstance(constraint, Mapping):
        if not constraint:
            return [_empty(column)]
        predicates: List[str] = []
        for operator, argument in constraint.items():
            predicates.extend(compile_operator(column, operator, argument, quote))
        return predicates

    if isinstance(constraint, (list, tuple)):
        return _in(column, list(constraint), quote, shorthand=True)

    return _eq(column, constraint, quote)


def compile_where(
    fields: Iterable[str],
    options: Mapping[str, Any],
    quote: Quote,
    alias: str = "t",
) -> List[str]:
    """
    Compile the constraints of ``fields`` found in ``options`` into predicates.

    Parameters
    ----------
    fields : iterable[str]
        Field names allowed to produce a predicate, in output order.
    options : mapping
        Options dictionary; keys outside ``fields`` are not inspected.
    quote : callable
        Value quoting capability of the connection (``Database.quote``).
    alias : str
        Table alias prefixed to every column (``t`` by convention).

    Returns
    -------
    list[str]
        Predicates to be joined with ``AND``.
    """
    where: List[str] = []
    for field in fields:
        if field not in options:
            continue
        column = f"{alias}.{field}" if alias else field
        where.extend(compile_constraint(column, options[field], quote))
    return where


__all__ = [
    "OPERATORS",
    "Quote",
    "compile_constraint",
    "compile_operator",
    "compile_where",
    "quote_value",
]
