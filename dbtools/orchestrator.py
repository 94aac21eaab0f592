"""
List/get orchestration: options dictionary in, records out.

Each call goes through the same steps, with no state kept between calls:

    build options -> compute query parts -> (count for pager) -> execute
    -> fetch -> post hook -> return

Usage:
    from dbtools import Pager, TableEntity, get_by_id, get_list

    items = TableEntity("items", where_fields=["id", "category"])
    page = get_list(items, {"category": ["a", "b"], "pager": Pager(20, 1)}, connection=db)
    item = get_by_id(items, 42, connection=db)

By convention the entity table is aliased ``t`` and its primary key is
``t.id``.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Sequence

from dbtools.domain.record import wrap
from dbtools.entity import EntityExtension
from dbtools.errors import ArgumentError, LogicError
from dbtools.infrastructure.db_factory import get_connection
from dbtools.query.options import is_valid_limit, merge_options, parse_limit
from dbtools.query.pager import Pager
from dbtools.utils.logging import get_logger

log = get_logger(__name__)

FETCH_MODES = ("unique", "rows", "pairs", None)

LIST_DEFAULTS: Dict[str, Any] = {
    "pager": None,
    "order_by": "t.id",
    "group_by": None,
    "limit": None,
    "select": "t.id, t.*",
    "fetch_mode": "unique",
}


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


def _validate_list_options(options: Mapping[str, Any]) -> None:
    """Checks that need no database round trip."""
    if options["limit"] is not None and not is_valid_limit(options["limit"]):
        raise ArgumentError(
            f"Invalid limit option ({options['limit']!r}), expected 'count' or 'offset,count'"
        )
    if options["pager"] is not None and not isinstance(options["pager"], Pager):
        raise ArgumentError(f"Invalid pager option ({type(options['pager']).__name__} given)")
    if options["fetch_mode"] not in FETCH_MODES:
        raise ArgumentError(
            f"Invalid fetch_mode ({options['fetch_mode']!r}), "
            f"expected one of: {', '.join(str(mode) for mode in FETCH_MODES)}"
        )


def _from_clause(table: str, join: Sequence[str], where: Sequence[str]) -> str:
    parts = [f"FROM {table} t"]
    parts.extend(join)
    if where:
        parts.append("WHERE " + " AND ".join(where))
    return "\n".join(parts)


def _limit_clause(options: Mapping[str, Any]) -> Optional[str]:
    pager: Optional[Pager] = options["pager"]
    if pager is not None:
        offset, count = pager.get_offset(), pager.get_per_page()
    elif options["limit"] is not None:
        offset, count = parse_limit(options["limit"])
    else:
        return None
    return f"LIMIT {count} OFFSET {offset}" if offset else f"LIMIT {count}"


def _row_to_dict(cursor: Any, row: Any) -> Dict[str, Any]:
    if isinstance(row, Mapping):
        return dict(row)
    names = [getattr(column, "name", None) or column[0] for column in cursor.description]
    return dict(zip(names, row))


def _fetch(cursor: Any, fetch_mode: str, record_class: type) -> Any:
    rows = [_row_to_dict(cursor, row) for row in cursor.fetchall()]

    if fetch_mode == "rows":
        return [wrap(row, record_class) for row in rows]

    if fetch_mode == "pairs":
        pairs: Dict[Any, Any] = OrderedDict()
        for row in rows:
            values = list(row.values())
            if len(values) < 2:
                raise ArgumentError("fetch_mode 'pairs' requires at least two selected columns")
            pairs[values[0]] = values[1]
        return pairs

    unique: Dict[Any, Any] = OrderedDict()
    for row in rows:
        key = next(iter(row.values()), None)
        unique[key] = wrap(row, record_class)
    return unique


def count_for_pager(
    connection: Any,
    pager: Pager,
    from_sql: str,
    group_by: Optional[str] = None,
) -> Pager:
    """Run the COUNT(*) variant of a list query and feed it to ``pager``."""
    if group_by:
        sql = f"SELECT COUNT(*) FROM (SELECT 1 AS one\n{from_sql}\nGROUP BY {group_by}) grouped"
    else:
        sql = f"SELECT COUNT(*)\n{from_sql}"
    log.debug("count query", extra={"sql": sql})
    return pager.query_for_total(connection, sql)


def get_list(
    entity: EntityExtension,
    options: Optional[Mapping[str, Any]] = None,
    connection: Any = None,
) -> Any:
    """
    Fetch a list of records.

    Parameters
    ----------
    entity : EntityExtension
        Strategy object describing the table and its options.
    options : mapping | None
        Options dictionary; keys must be declared by ``entity.query_options()``
        or be one of the list options (pager, order_by, group_by, limit,
        select, fetch_mode).
    connection : Database | None
        Connection capability (``query``/``quote``). Defaults to the
        "default" handler of the process-wide provider.

    Returns
    -------
    Any
        By default an ordered dict keyed by the first selected column (the
        id) holding ``entity.record_class`` instances, as returned by
        ``entity.after_get_list``. ``None`` when a pager is given and the
        requested page is past the last page.

    Raises
    ------
    ArgumentError
        Unknown option keys, malformed limit/pager/fetch_mode. Raised before
        any query runs.
    LogicError
        The entity has no table name.
    """
    defaults = dict(LIST_DEFAULTS)
    defaults.update(entity.query_options())
    opt = merge_options(defaults, options)
    _validate_list_options(opt)

    table = entity.table_name()
    db = connection if connection is not None else get_connection()

    where: List[str] = []
    join: List[str] = []
    select = _as_list(opt["select"])
    entity.compute_query_parts(db, opt, where, join, select)

    from_sql = _from_clause(table, join, where)

    pager: Optional[Pager] = opt["pager"]
    if pager is not None:
        count_for_pager(db, pager, from_sql, opt["group_by"])
        if pager.get_current_page(resolve=False) > pager.get_last_page():
            log.debug(
                "Requested page past the last page",
                extra={
                    "table": table,
                    "page": pager.get_current_page(resolve=False),
                    "last_page": pager.get_last_page(),
                },
            )
            return None

    parts = [f"SELECT {', '.join(select)}", from_sql]
    if opt["group_by"]:
        parts.append(f"GROUP BY {opt['group_by']}")
    if opt["order_by"]:
        parts.append(f"ORDER BY {opt['order_by']}")
    limit = _limit_clause(opt)
    if limit:
        parts.append(limit)
    sql = "\n".join(parts)

    log.debug("list query", extra={"table": table, "sql": sql})
    cursor = db.query(sql)

    if opt["fetch_mode"] is None:
        return cursor

    result = _fetch(cursor, opt["fetch_mode"], entity.record_class)
    return entity.after_get_list(db, opt, result)


def get_list_for_select(
    entity: EntityExtension,
    options: Optional[Mapping[str, Any]] = None,
    connection: Any = None,
) -> Any:
    """``id -> name`` pairs, e.g. to fill a select box."""
    opt = dict(options or {})
    opt.setdefault("select", "t.id, t.name")
    opt["fetch_mode"] = "pairs"
    return get_list(entity, opt, connection=connection)


def get_by(
    entity: EntityExtension,
    options: Optional[Mapping[str, Any]] = None,
    connection: Any = None,
) -> Any:
    """
    Fetch a single record, or None when nothing matches.

    Raises
    ------
    ArgumentError
        Unknown option keys.
    LogicError
        The computed WHERE clause is empty (fetching by an unconstrained query
        is not allowed), or the entity has no table name.
    """
    opt = merge_options(entity.query_options(), options)

    table = entity.table_name()
    db = connection if connection is not None else get_connection()

    where: List[str] = []
    join: List[str] = []
    select: List[str] = ["t.*"]
    entity.compute_query_parts(db, opt, where, join, select)

    if not where:
        raise LogicError(
            "The WHERE clause cannot be empty, you must specify how to get the item "
            f"for get_by to work (hint: implement {type(entity).__name__}.compute_query_parts())"
        )

    sql = "\n".join([f"SELECT {', '.join(select)}", _from_clause(table, join, where)])
    log.debug("get query", extra={"table": table, "sql": sql})

    cursor = db.query(sql)
    row = cursor.fetchone()
    if not row:
        return None

    record = wrap(_row_to_dict(cursor, row), entity.record_class)
    return entity.after_get_by(db, opt, record)


def get_by_id(
    entity: EntityExtension,
    id: Any,
    options: Optional[Mapping[str, Any]] = None,
    connection: Any = None,
) -> Any:
    """Shortcut for ``get_by(entity, {**options, "id": id})``; a falsy id returns None."""
    if not id:
        return None
    opt = dict(options or {})
    opt["id"] = id
    return get_by(entity, opt, connection=connection)


__all__ = [
    "FETCH_MODES",
    "LIST_DEFAULTS",
    "count_for_pager",
    "get_by",
    "get_by_id",
    "get_list",
    "get_list_for_select",
]
