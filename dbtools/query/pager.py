"""
Pager for lists.

A Pager is built from the requested page size and page number before the total
number of items is known. The total is set afterwards (usually through
``query_for_total`` running a ``COUNT(*)``), then the pager resolves the
current page, the OFFSET and the navigation window.

Negative page numbers count from the end: ``-1`` is the last page.

Example:
    pager = Pager(per_page=10, current_page=-1)
    pager.query_for_total(db, "SELECT COUNT(*) FROM items")
    sql = f"SELECT * FROM items LIMIT {pager.get_per_page()} OFFSET {pager.get_offset()}"
"""

from __future__ import annotations

import math
import re
from decimal import Decimal
from typing import Any, List, Optional

from dbtools.errors import ArgumentError

_INT_RE = re.compile(r"^\s*[+-]?\d+\s*$")


def _as_int(value: Any) -> Optional[int]:
    """Integer value of ints, integral floats/Decimals and integer strings; else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, Decimal):
        return int(value) if value.is_finite() and value == value.to_integral_value() else None
    if isinstance(value, float):
        return int(value) if math.isfinite(value) and value.is_integer() else None
    if isinstance(value, str) and _INT_RE.match(value):
        return int(value)
    return None


class Pager:
    """
    Page/offset arithmetic over (total, per_page, current_page).

    Parameters
    ----------
    per_page : int
        Number of items per page (positive).
    current_page : int
        Requested page (non-zero; negative counts from the end).
    """

    def __init__(self, per_page: Any = 20, current_page: Any = 1) -> None:
        self._total = 0
        self._per_page = 0
        self._current_page = 1
        self._nb_pages = 0
        self.set_per_page(per_page)
        self.set_current_page(current_page)

    def __repr__(self) -> str:
        return (
            f"Pager(per_page={self._per_page}, current_page={self._current_page}, "
            f"total={self._total})"
        )

    # -- state ----------------------------------------------------------------

    def set_current_page(self, current_page: Any) -> "Pager":
        value = _as_int(current_page)
        if value is None or value == 0:
            raise ArgumentError(f"Invalid current page value ({current_page!r})")
        self._current_page = value
        return self

    def get_current_page(self, resolve: bool = True) -> int:
        """
        Current page number.

        With ``resolve=False`` the raw requested value is returned. Otherwise
        negative values are counted from the last page and the result is
        clamped into ``[1, last page]``.
        """
        if not resolve:
            return self._current_page

        last_page = self.get_last_page()
        page = self._current_page
        if page < 0:
            page = last_page + page + 1
        return max(1, min(last_page, page))

    def set_per_page(self, per_page: Any) -> "Pager":
        value = _as_int(per_page)
        if value is None or value < 1:
            raise ArgumentError(f"Invalid number of items per page ({per_page!r})")
        self._nb_pages = 0
        self._per_page = value
        return self

    def get_per_page(self) -> int:
        return self._per_page

    def set_total(self, total: Any) -> "Pager":
        value = _as_int(total)
        if value is None or value < 0:
            raise ArgumentError(f"Invalid total ({total!r})")
        self._nb_pages = 0
        self._total = value
        return self

    def get_total(self) -> int:
        return self._total

    # -- database helpers -----------------------------------------------------

    def query_for_total(self, executor: Any, sql: Optional[str] = None) -> "Pager":
        """
        Set the total from the first column of a query result.

        ``executor`` is either a connection exposing ``query(sql)`` (then
        ``sql`` is required) or a prepared statement exposing ``execute()``
        and ``fetchone()``. Driver errors propagate unchanged.
        """
        if sql is not None:
            if not hasattr(executor, "query"):
                raise ArgumentError(
                    f"Invalid executor, a connection with query() is required, "
                    f"{type(executor).__name__} given"
                )
            row = executor.query(sql).fetchone()
        elif callable(getattr(executor, "execute", None)) and callable(
            getattr(executor, "fetchone", None)
        ):
            executor.execute()
            row = executor.fetchone()
        else:
            raise ArgumentError(
                f"Invalid parameters, must be a statement or a connection + query, "
                f"{type(executor).__name__} given"
            )

        return self.set_total(_first_column(row))

    def get_limit_clause(self) -> str:
        """MySQL-style ``"offset,count"`` LIMIT argument."""
        return f"{self.get_offset()},{self._per_page}"

    def get_offset(self) -> int:
        return self._per_page * (self.get_current_page() - 1)

    # -- navigation -----------------------------------------------------------

    def have_to_paginate(self) -> bool:
        """Whether the items do not fit on a single page."""
        return self._total > self._per_page

    def get_previous_page(self) -> int:
        current_page = self.get_current_page()
        return 1 if current_page == 1 else current_page - 1

    def get_next_page(self) -> int:
        current_page = self.get_current_page()
        last_page = self.get_last_page()
        return last_page if current_page >= last_page else current_page + 1

    def get_last_page(self) -> int:
        """Number of the last page; there is always at least one page."""
        if not self._nb_pages:
            self._nb_pages = 1 if self._total == 0 else -(-self._total // self._per_page)
        return self._nb_pages

    def get_nb_pages(self) -> int:
        return self.get_last_page()

    def get_pages_before_and_after(self, before: Any = 3, after: Any = None) -> List[int]:
        """
        Page numbers around the current page, bounded by 1 and the last page.

        ``after`` defaults to ``before``.
        """
        before_value = _as_int(before)
        if before_value is None or before_value < 0:
            raise ArgumentError(f"Invalid number of pages ({before!r})")

        if after is None:
            after_value = before_value
        else:
            after_value = _as_int(after)
            if after_value is None or after_value < 0:
                raise ArgumentError(f"Invalid number of pages ({after!r})")

        current_page = self.get_current_page()
        low = max(1, current_page - before_value)
        high = min(self.get_last_page(), current_page + after_value)
        return list(range(low, high + 1))


def _first_column(row: Any) -> Any:
    if row is None:
        return 0
    if isinstance(row, dict):
        return next(iter(row.values()), 0)
    return row[0]


__all__ = ["Pager"]
