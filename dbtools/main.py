from __future__ import annotations

import json
import sys
from typing import Dict, List, Optional

import typer

from dbtools.api import parse_sort
from dbtools.config import get_settings
from dbtools.entity import TableEntity
from dbtools.errors import DbToolsError
from dbtools.orchestrator import LIST_DEFAULTS, get_list
from dbtools.query.pager import Pager
from dbtools.reporter import print_records
from dbtools.utils.logging import configure_logging

app = typer.Typer(help="dbtools CLI: query a table through the options compiler.")


def _parse_where(terms: List[str]) -> Dict[str, object]:
    """``field=value`` terms; a comma in the value means a list (IN)."""
    where: Dict[str, object] = {}
    for term in terms:
        field, sep, value = term.partition("=")
        if not sep or not field:
            raise typer.BadParameter(f"Expected field=value, got {term!r}", param_hint="--where")
        if field in LIST_DEFAULTS:
            raise typer.BadParameter(
                f"{field!r} is a list option, not a filterable field", param_hint="--where"
            )
        where[field] = value.split(",") if "," in value else value
    return where


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"per_page={settings.default_per_page} max_per_page={settings.max_per_page} "
        f"log_level={settings.log_level}"
    )


@app.command("list")
def list_(
    table: str = typer.Argument(..., help="Table to query (aliased 't')."),
    where: List[str] = typer.Option(
        [],
        "--where",
        "-w",
        help="Filter as field=value (repeatable). Use a,b,c for IN and NULL / NOT NULL for null tests.",
    ),
    sort: Optional[str] = typer.Option(
        None, "--sort", "-s", help="Sort expression, e.g. 'id,-created_at' (filtered fields and id)."
    ),
    page: int = typer.Option(1, "--page", "-p", help="Page number (negative counts from the end)."),
    per_page: Optional[int] = typer.Option(
        None, "--per-page", "-n", help="Items per page (default from settings)."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print rows as JSON instead of a table."),
) -> None:
    """
    List rows of a table, filtered, sorted and paginated.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.json_logs, log_sql=settings.log_sql)

    filters = _parse_where(where)
    fields = list(filters)
    sortable = {name: f"t.{name}" for name in ["id", *fields]}

    try:
        pager = Pager(per_page or settings.default_per_page, page)
        options: Dict[str, object] = dict(filters, pager=pager)
        order_by = parse_sort(sort, sortable)
        if order_by:
            options["order_by"] = order_by
        records = get_list(TableEntity(table, where_fields=fields), options)
    except DbToolsError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2)

    if as_json:
        rows = [] if records is None else [record.to_dict() for record in records.values()]
        typer.echo(json.dumps(rows, indent=2, default=str))
        return

    print_records(records, title=table, pager=pager)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
