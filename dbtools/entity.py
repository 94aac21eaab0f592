"""
Entity extension contract.

The orchestrator knows nothing about a particular table. Everything specific to
an entity (its table, its query options, how options become WHERE/JOIN/SELECT
fragments, what happens after a fetch) is supplied by a strategy object
implementing ``EntityExtension``.

``TableEntity`` is a ready-made implementation covering the common case (a
table filtered on a few columns with the standard filter compiler) and a
convenient base for entities that need hooks.
"""

from __future__ import annotations

import abc
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from dbtools.domain.record import VersionedRecord
from dbtools.errors import LogicError
from dbtools.query.filters import compile_where


@runtime_checkable
class EntityExtension(Protocol):
    """
    Interface the orchestrator depends on.

    Attributes
    ----------
    record_class : type
        Class fetched rows are wrapped into (VersionedRecord or a subclass).
    """

    record_class: type

    def table_name(self) -> str:
        """Name of the table, aliased ``t`` in every generated statement."""
        ...

    def query_options(self) -> Dict[str, Any]:
        """Options this entity accepts, with their default values."""
        ...

    def compute_query_parts(
        self,
        connection: Any,
        options: Dict[str, Any],
        where: List[str],
        join: List[str],
        select: List[str],
    ) -> None:
        """Append WHERE predicates and JOIN fragments; may rewrite ``select`` in place."""
        ...

    def after_get_list(self, connection: Any, options: Dict[str, Any], rows: Any) -> Any:
        """Post-process a fetched list; the returned value is what ``get_list`` returns."""
        ...

    def after_get_by(self, connection: Any, options: Dict[str, Any], record: Any) -> Any:
        """Post-process a fetched record; the returned value is what ``get_by`` returns."""
        ...


class AbstractEntity(abc.ABC):
    """
    Optional ABC helper for class-based entities.

    Subclasses implement ``table_name``, ``query_options`` and
    ``compute_query_parts``; the hooks default to pass-through.
    """

    record_class: type = VersionedRecord

    @abc.abstractmethod
    def table_name(self) -> str:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def query_options(self) -> Dict[str, Any]:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def compute_query_parts(
        self,
        connection: Any,
        options: Dict[str, Any],
        where: List[str],
        join: List[str],
        select: List[str],
    ) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    def after_get_list(self, connection: Any, options: Dict[str, Any], rows: Any) -> Any:
        return rows

    def after_get_by(self, connection: Any, options: Dict[str, Any], record: Any) -> Any:
        return record


class TableEntity(AbstractEntity):
    """
    Entity filtered on ``where_fields`` with the standard filter compiler.

    Can be used as-is:

        items = TableEntity("items", where_fields=["id", "category"])

    or subclassed, setting ``table``/``where_fields``/``extra_options`` as class
    attributes and overriding the hooks.
    """

    table: str = ""
    where_fields: Sequence[str] = ("id",)
    extra_options: Dict[str, Any] = {}

    def __init__(
        self,
        table: Optional[str] = None,
        where_fields: Optional[Sequence[str]] = None,
        extra_options: Optional[Dict[str, Any]] = None,
        record_class: Optional[type] = None,
    ) -> None:
        if table is not None:
            self.table = table
        if where_fields is not None:
            self.where_fields = tuple(where_fields)
        if extra_options is not None:
            self.extra_options = dict(extra_options)
        if record_class is not None:
            self.record_class = record_class

    def table_name(self) -> str:
        if not self.table:
            raise LogicError(
                f"You forgot to implement {type(self).__name__}.table_name() "
                f"or to set {type(self).__name__}.table"
            )
        return self.table

    def query_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {field: None for field in self.where_fields}
        options.update(self.extra_options)
        return options

    def compute_query_parts(
        self,
        connection: Any,
        options: Dict[str, Any],
        where: List[str],
        join: List[str],
        select: List[str],
    ) -> None:
        where.extend(compile_where(self.where_fields, options, connection.quote))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(table={self.table!r}, where_fields={list(self.where_fields)!r})"


__all__ = ["AbstractEntity", "EntityExtension", "TableEntity"]
