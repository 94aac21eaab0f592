from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from dbtools.domain.record import VersionedRecord
from dbtools.query.pager import Pager


def _as_dict(row: Any) -> Dict[str, Any]:
    if isinstance(row, VersionedRecord):
        return row.to_dict()
    return dict(row)


def _columns(rows: List[Dict[str, Any]]) -> List[str]:
    columns: List[str] = []
    for row in rows:
        for key in row:
            if key not in columns:
                columns.append(key)
    return columns


def print_records(
    records: Any,
    title: str = "Records",
    pager: Optional[Pager] = None,
    console: Optional[Console] = None,
) -> None:
    """
    Render fetched records as a rich table.

    Accepts the result of ``get_list`` (a mapping keyed by id or a list), or
    None for "no results". Modified fields of versioned records are
    highlighted.
    """
    console = console or Console()

    if records is None:
        console.print("[yellow]No results (page out of range).[/yellow]")
        return

    items: Iterable[Any] = records.values() if isinstance(records, Mapping) else records
    originals = list(items)
    rows = [_as_dict(row) for row in originals]

    if not rows:
        console.print("[yellow]No results to display.[/yellow]")
        return

    caption = None
    if pager is not None:
        caption = (
            f"Page {pager.get_current_page()}/{pager.get_nb_pages()} "
            f"│ {pager.get_total():,} items │ {pager.get_per_page()} per page"
        )

    table = Table(title=title, box=box.ROUNDED, caption=caption)
    columns = _columns(rows)
    for index, column in enumerate(columns):
        table.add_column(column, style="cyan" if index == 0 else None, no_wrap=index == 0)

    for original, row in zip(originals, rows):
        cells = []
        for column in columns:
            value = row.get(column)
            text = "NULL" if value is None else escape(str(value))
            if isinstance(original, VersionedRecord) and original.is_modified(column):
                text = f"[bold yellow]{text}[/bold yellow]"
            cells.append(text)
        table.add_row(*cells)

    console.print(table)


__all__ = ["print_records"]
