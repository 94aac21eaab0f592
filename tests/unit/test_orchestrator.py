from __future__ import annotations

import logging

import pytest

from dbtools import orchestrator
from dbtools.domain.record import VersionedRecord
from dbtools.entity import EntityExtension, TableEntity
from dbtools.errors import ArgumentError, LogicError
from dbtools.orchestrator import get_by, get_by_id, get_list, get_list_for_select
from dbtools.query.pager import Pager

EXPECTED_ROWS = 3


class ItemRecord(VersionedRecord):
    @property
    def label(self) -> str:
        return f"{self.id}:{self.name}"


class ItemEntity(TableEntity):
    table = "items"
    where_fields = ("id", "category")
    record_class = ItemRecord


class InjectingEntity(ItemEntity):
    def after_get_list(self, connection, options, rows):
        rows["injected"] = True
        return rows

    def after_get_by(self, connection, options, record):
        record["it_worked"] = True
        return record


class ReplacingEntity(ItemEntity):
    def after_get_list(self, connection, options, rows):
        return ["replaced"]


class JoiningEntity(ItemEntity):
    extra_options = {"with_stock": False}

    def compute_query_parts(self, connection, options, where, join, select):
        super().compute_query_parts(connection, options, where, join, select)
        if options["with_stock"]:
            join.append("JOIN stock s ON s.item_id = t.id")
            select.append("s.quantity")


def test_entities_satisfy_the_extension_protocol() -> None:
    assert isinstance(ItemEntity(), EntityExtension)
    assert isinstance(TableEntity("items"), EntityExtension)


def test_get_list_builds_select_and_keys_records_by_id(fake_connection_factory, items_rows) -> None:
    conn = fake_connection_factory(items_rows)

    items = get_list(ItemEntity(), {"category": "fruit"}, connection=conn)

    assert conn.queries == [
        "SELECT t.id, t.*\nFROM items t\nWHERE t.category = 'fruit'\nORDER BY t.id"
    ]
    assert list(items) == [1, 2, 3]
    assert all(isinstance(item, ItemRecord) for item in items.values())
    assert items[2].label == "2:carrot"
    assert not items[2].is_modified()


def test_get_list_with_pager_counts_then_limits(fake_connection_factory, items_rows) -> None:
    conn = fake_connection_factory(items_rows, total=5)
    pager = Pager(2, 2)

    get_list(ItemEntity(), {"id": [1, 2, 3, 4, 5], "pager": pager}, connection=conn)

    count_sql, list_sql = conn.queries
    assert count_sql == "SELECT COUNT(*)\nFROM items t\nWHERE t.id IN ('1','2','3','4','5')"
    assert list_sql.endswith("ORDER BY t.id\nLIMIT 2 OFFSET 2")
    assert pager.get_total() == 5
    assert pager.get_nb_pages() == EXPECTED_ROWS


def test_get_list_first_page_has_no_offset(fake_connection_factory, items_rows) -> None:
    conn = fake_connection_factory(items_rows)

    get_list(ItemEntity(), {"pager": Pager(2, 1)}, connection=conn)

    assert conn.queries[-1].endswith("LIMIT 2")


def test_get_list_past_last_page_returns_none(fake_connection_factory, items_rows) -> None:
    conn = fake_connection_factory(items_rows, total=EXPECTED_ROWS)

    result = get_list(ItemEntity(), {"pager": Pager(2, 5)}, connection=conn)

    assert result is None
    assert len(conn.queries) == 1
    assert conn.queries[0].startswith("SELECT COUNT(*)")


def test_get_list_empty_table_first_page_still_queries(fake_connection_factory) -> None:
    conn = fake_connection_factory([], total=0)

    result = get_list(ItemEntity(), {"pager": Pager(20, 1)}, connection=conn)

    assert result == {}
    assert len(conn.queries) == 2


def test_get_list_negative_page_counts_from_the_end(fake_connection_factory, items_rows) -> None:
    conn = fake_connection_factory(items_rows, total=45)

    get_list(ItemEntity(), {"pager": Pager(20, -1)}, connection=conn)

    assert conn.queries[-1].endswith("LIMIT 20 OFFSET 40")


@pytest.mark.parametrize(
    ("limit", "clause"),
    [
        ("5", "LIMIT 5"),
        (5, "LIMIT 5"),
        ("10,5", "LIMIT 5 OFFSET 10"),
        ("10 , 5", "LIMIT 5 OFFSET 10"),
    ],
)
def test_get_list_limit_option(fake_connection_factory, items_rows, limit, clause) -> None:
    conn = fake_connection_factory(items_rows)

    get_list(ItemEntity(), {"limit": limit}, connection=conn)

    assert conn.queries[-1].endswith(clause)


def test_pager_wins_over_limit(fake_connection_factory, items_rows) -> None:
    conn = fake_connection_factory(items_rows, total=100)

    get_list(ItemEntity(), {"limit": "0,50", "pager": Pager(10, 3)}, connection=conn)

    assert conn.queries[-1].endswith("LIMIT 10 OFFSET 20")


@pytest.mark.parametrize(
    "options",
    [
        {"unknown": 1},
        {"limit": "10,1,1"},
        {"limit": "foobar"},
        {"pager": 3},
        {"fetch_mode": "column"},
    ],
)
def test_invalid_options_raise_before_any_query(fake_connection_factory, items_rows, options) -> None:
    conn = fake_connection_factory(items_rows)

    with pytest.raises(ArgumentError):
        get_list(ItemEntity(), options, connection=conn)

    assert conn.queries == []


def test_get_list_group_by_counts_groups(fake_connection_factory, items_rows) -> None:
    conn = fake_connection_factory(items_rows, total=2)

    get_list(
        ItemEntity(),
        {"group_by": "t.category", "select": "t.category, COUNT(*) AS n", "pager": Pager(10, 1)},
        connection=conn,
    )

    count_sql, list_sql = conn.queries
    assert count_sql == (
        "SELECT COUNT(*) FROM (SELECT 1 AS one\nFROM items t\nGROUP BY t.category) grouped"
    )
    assert "GROUP BY t.category\nORDER BY t.id" in list_sql
    assert list_sql.startswith("SELECT t.category, COUNT(*) AS n\n")


def test_fetch_mode_rows(fake_connection_factory, items_rows) -> None:
    conn = fake_connection_factory(items_rows)

    rows = get_list(ItemEntity(), {"fetch_mode": "rows"}, connection=conn)

    assert [row.id for row in rows] == [1, 2, 3]
    assert isinstance(rows[0], ItemRecord)


def test_fetch_mode_pairs(fake_connection_factory, items_rows) -> None:
    conn = fake_connection_factory(items_rows)

    pairs = get_list(ItemEntity(), {"fetch_mode": "pairs"}, connection=conn)

    assert pairs == {1: "apple", 2: "carrot", 3: "banana"}


def test_fetch_mode_none_returns_raw_cursor_without_hook(fake_connection_factory, items_rows) -> None:
    conn = fake_connection_factory(items_rows)

    cursor = get_list(InjectingEntity(), {"fetch_mode": None}, connection=conn)

    assert cursor.fetchall() == items_rows


def test_get_list_for_select(fake_connection_factory) -> None:
    conn = fake_connection_factory([{"id": 1, "name": "apple"}, {"id": 2, "name": "carrot"}])

    pairs = get_list_for_select(ItemEntity(), connection=conn)

    assert pairs == {1: "apple", 2: "carrot"}
    assert conn.queries[0].startswith("SELECT t.id, t.name\n")


def test_after_get_list_can_inject_values(fake_connection_factory, items_rows) -> None:
    conn = fake_connection_factory(items_rows)

    items = get_list(InjectingEntity(), connection=conn)

    assert items["injected"] is True
    assert len(items) == EXPECTED_ROWS + 1


def test_after_get_list_can_replace_the_list(fake_connection_factory, items_rows) -> None:
    conn = fake_connection_factory(items_rows)

    assert get_list(ReplacingEntity(), connection=conn) == ["replaced"]


def test_compute_query_parts_can_join_and_extend_select(fake_connection_factory, items_rows) -> None:
    conn = fake_connection_factory(items_rows)

    get_list(JoiningEntity(), {"with_stock": True, "id": 1}, connection=conn)

    assert conn.queries[0] == (
        "SELECT t.id, t.*, s.quantity\n"
        "FROM items t\n"
        "JOIN stock s ON s.item_id = t.id\n"
        "WHERE t.id = '1'\n"
        "ORDER BY t.id"
    )


def test_get_by_returns_first_record(fake_connection_factory, items_rows) -> None:
    conn = fake_connection_factory(items_rows[:1])

    item = get_by(ItemEntity(), {"id": 1}, connection=conn)

    assert conn.queries == ["SELECT t.*\nFROM items t\nWHERE t.id = '1'"]
    assert isinstance(item, ItemRecord)
    assert item.name == "apple"


def test_get_by_returns_none_when_nothing_matches(fake_connection_factory) -> None:
    conn = fake_connection_factory([])

    assert get_by(ItemEntity(), {"id": 99}, connection=conn) is None


def test_get_by_requires_a_where_clause(fake_connection_factory, items_rows) -> None:
    conn = fake_connection_factory(items_rows)

    with pytest.raises(LogicError, match="WHERE clause cannot be empty"):
        get_by(ItemEntity(), connection=conn)

    assert conn.queries == []


def test_get_by_rejects_list_options(fake_connection_factory, items_rows) -> None:
    conn = fake_connection_factory(items_rows)

    with pytest.raises(ArgumentError, match="pager"):
        get_by(ItemEntity(), {"id": 1, "pager": Pager()}, connection=conn)


def test_after_get_by_hook(fake_connection_factory, items_rows) -> None:
    conn = fake_connection_factory(items_rows)

    item = get_by_id(InjectingEntity(), 1, connection=conn)

    assert item["it_worked"] is True
    assert item.is_modified("it_worked")


@pytest.mark.parametrize("falsy_id", [0, None, ""])
def test_get_by_id_with_falsy_id_returns_none(fake_connection_factory, items_rows, falsy_id) -> None:
    conn = fake_connection_factory(items_rows)

    assert get_by_id(ItemEntity(), falsy_id, connection=conn) is None
    assert conn.queries == []


def test_missing_table_name_raises(fake_connection_factory, items_rows) -> None:
    conn = fake_connection_factory(items_rows)

    with pytest.raises(LogicError, match="table_name"):
        get_list(TableEntity(), connection=conn)


def test_default_connection_comes_from_the_provider(
    monkeypatch, fake_connection_factory, items_rows
) -> None:
    conn = fake_connection_factory(items_rows)
    monkeypatch.setattr(orchestrator, "get_connection", lambda: conn)

    get_list(ItemEntity())

    assert len(conn.queries) == 1


def test_statements_are_logged_at_debug(caplog, fake_connection_factory, items_rows) -> None:
    conn = fake_connection_factory(items_rows)

    with caplog.at_level(logging.DEBUG, logger="dbtools.orchestrator"):
        get_list(ItemEntity(), {"id": 2}, connection=conn)

    record = next(r for r in caplog.records if r.getMessage() == "list query")
    assert record.table == "items"
    assert "WHERE t.id = '2'" in record.sql
