"""
REST-facing adapters.

Translate HTTP query parameters (``fields``, ``sort``, ``page``, ``per_page``,
``pagination_meta``, ``embed`` and ``field=operator:value`` filters) into the
options dictionary consumed by the orchestrator, and format fetched records
into the JSON response envelope:

    {"page": 1, "per_page": 20, "total": 42, "nb_pages": 3, "data": [...]}

The grammar is strict: ``"id, name"`` (space after the comma), ``"id,"``
(trailing comma) and unknown names are rejected, every invalid term being
reported in a single error.
"""

from __future__ import annotations

import abc
import datetime
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from pydantic import BaseModel, Field

from dbtools.config import get_settings
from dbtools.domain.equality import is_empty
from dbtools.domain.record import VersionedRecord
from dbtools.entity import EntityExtension
from dbtools.errors import ArgumentError, LogicError
from dbtools.infrastructure.db_factory import get_connection
from dbtools.orchestrator import get_by_id, get_list
from dbtools.query.filters import OPERATORS
from dbtools.query.options import merge_options, parse_date
from dbtools.query.pager import Pager
from dbtools.utils.logging import get_logger

log = get_logger(__name__)

ALL = True
NONE = False


class PaginationMeta(BaseModel):
    """Pagination part of a list response."""

    page: int = Field(..., ge=1, description="Resolved current page.")
    per_page: int = Field(..., ge=1, description="Items per page.")
    total: int = Field(..., ge=0, description="Total number of items.")
    nb_pages: int = Field(..., ge=1, description="Number of pages (at least 1).")

    model_config = {
        "frozen": True,
    }

    @classmethod
    def from_pager(cls, pager: Pager) -> "PaginationMeta":
        return cls(
            page=pager.get_current_page(),
            per_page=pager.get_per_page(),
            total=pager.get_total(),
            nb_pages=pager.get_nb_pages(),
        )


def _split(value: Union[str, Sequence[str]]) -> List[Any]:
    if isinstance(value, str):
        return value.split(",")
    return list(value)


def parse_sort(sort: Any, sortable: Mapping[str, str]) -> Optional[str]:
    """
    Convert a sort expression into an ORDER BY clause.

    ``"id,-created_at"`` with ``{"id": "t.id", "created_at": "t.created_at"}``
    gives ``"t.id ASC,t.created_at DESC"``. A ``+`` prefix is accepted for
    ascending order. Empty values give None.
    """
    if not sort:
        return None

    order_by: List[str] = []
    invalid: List[str] = []
    for term in _split(sort):
        if not isinstance(term, str) or not term:
            invalid.append(repr(term))
            continue

        direction = "ASC"
        name = term
        if term[0] == "-":
            direction = "DESC"
            name = term[1:]
        elif term[0] == "+":
            name = term[1:]

        if name not in sortable:
            invalid.append(repr(name))
            continue
        order_by.append(f"{sortable[name]} {direction}")

    if invalid:
        raise ArgumentError("Unknown sort option: " + ", ".join(invalid))

    return ",".join(order_by)


def parse_fields(fields: Any, public: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validate a field selection against ``public`` (name -> formatter).

    Returns the selected subset of ``public``, in ``public`` order. Empty values
    select every public field.
    """
    if not fields:
        return dict(public)

    requested = _split(fields)
    invalid = [repr(name) for name in requested if name not in public]
    if invalid:
        raise ArgumentError("Unknown fields: " + ", ".join(invalid))

    return {name: formatter for name, formatter in public.items() if name in requested}


def format_datetime(value: Any) -> Optional[str]:
    """ISO-8601 UTC (``2017-01-01T00:42:00Z``); naive values are taken as UTC."""
    if not value:
        return None
    moment = parse_date(value)
    if moment.tzinfo is not None:
        moment = moment.astimezone(datetime.timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def _as_mapping(values: Any) -> Dict[str, Any]:
    if isinstance(values, VersionedRecord):
        return values.to_dict()
    if isinstance(values, Mapping):
        return dict(values)
    raise ArgumentError(f"Cannot format {type(values).__name__} values")


def format_values(values: Any, formatters: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Keep the keys of ``values`` listed in ``formatters`` and format each one.

    A formatter is None (as-is), ``"datetime"``, ``"bool"``, a nested mapping
    of formatters (for an embedded object) or a one-item list holding such a
    mapping (for a list of embedded objects).
    """
    values = _as_mapping(values)
    formatted: Dict[str, Any] = {}

    for name, formatter in formatters.items():
        if name not in values:
            continue

        value = values[name]
        if isinstance(formatter, list) and len(formatter) == 1 and value is not None:
            value = [format_values(item, formatter[0]) for item in value]
        elif isinstance(formatter, Mapping) and value is not None:
            value = format_values(value, formatter)
        elif formatter == "datetime":
            value = format_datetime(value)
        elif formatter == "bool" and value is not None:
            value = not is_empty(value)
        formatted[name] = value

    return formatted


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("", "0", "false", "no", "off")
    return bool(value)


def _rows(collection: Any) -> Iterable[Any]:
    if collection is None:
        return []
    if isinstance(collection, Mapping):
        return collection.values()
    if isinstance(collection, (list, tuple)):
        return collection
    raise ArgumentError("Collection must be a list, a mapping or None")


class ApiQuery:
    """
    Options parser and formatter for one API list/get endpoint.

    Subclasses declare ``public_fields`` (name -> formatter),
    ``sortable_fields`` (name -> SQL expression) and ``embeddable`` (names of
    relations the entity can embed, each mapped to an ``embed_<name>``
    option of the entity).
    """

    def public_fields(self) -> Dict[str, Any]:
        return {"id": None}

    def sortable_fields(self) -> Dict[str, str]:
        return {"id": "t.id"}

    def embeddable(self) -> Sequence[str]:
        return ()

    def max_per_page(self) -> int:
        return get_settings().max_per_page

    def default_query_options(self) -> Dict[str, Any]:
        return {
            "fields": None,
            "sort": None,
            "per_page": get_settings().default_per_page,
            "page": 1,
            "pagination_meta": True,
            "embed": None,
        }

    def __init__(self, query: Optional[Mapping[str, Any]] = None) -> None:
        query = dict(query or {})
        default = self.default_query_options()

        unknown = [key for key in query if key not in default]
        if unknown:
            raise ArgumentError("Unknown query option(s): " + ", ".join(unknown))

        self.query: Dict[str, Any] = {**default, **query}
        self.options: Dict[str, Any] = {}

        order_by = parse_sort(self.query["sort"], self.sortable_fields())
        if order_by:
            self.options["order_by"] = order_by

        if self.query["per_page"]:
            self.options["pager"] = self._process_pager()

        self.fields = parse_fields(self.query["fields"], self.public_fields())
        self.embed = self._process_embed()
        for name in self.embed:
            self.options[f"embed_{name}"] = True

    def _process_pager(self) -> Pager:
        pager = Pager(self.query["per_page"], self.query["page"])
        if pager.get_per_page() > self.max_per_page():
            raise ArgumentError(f"Invalid per_page (maximum is {self.max_per_page()})")
        if pager.get_current_page(resolve=False) < 1:
            raise ArgumentError("Invalid page (minimum 1)")
        return pager

    def _process_embed(self) -> List[str]:
        embed = self.query["embed"]
        if not embed:
            return []
        requested = _split(embed)
        allowed = self.embeddable()
        invalid = [repr(name) for name in requested if name not in allowed]
        if invalid:
            raise ArgumentError("Unknown objects in embed: " + ", ".join(invalid))
        return requested

    def list_query_options(self) -> Dict[str, Any]:
        """Options for ``get_list`` (order_by, pager, embed_* flags)."""
        return dict(self.options)

    def get_query_options(self) -> Dict[str, Any]:
        """Options for ``get_by`` (embed_* flags only)."""
        return {key: value for key, value in self.options.items() if key.startswith("embed_")}

    def formatters(self) -> Dict[str, Any]:
        formatters = dict(self.fields)
        for name in self.embed:
            formatters.setdefault(name, None)
        return formatters

    def format_values(self, values: Any, formatters: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        return format_values(values, self.formatters() if formatters is None else formatters)

    def format_list(self, collection: Any) -> Dict[str, Any]:
        data = [self.format_values(values) for values in _rows(collection)]
        pager = self.options.get("pager")
        if _as_bool(self.query["pagination_meta"]) and pager is not None:
            return {**PaginationMeta.from_pager(pager).model_dump(), "data": data}
        return {"data": data}

    # -- entity bridge ------------------------------------------------------

    def select(self) -> List[str]:
        """SELECT list of the requested columns, led by ``t.id`` (the key of fetched rows)."""
        columns = [name for name in self.fields if name != "id" and name not in self.embeddable()]
        return ["t.id"] + [f"t.{name}" for name in columns]

    def check_embed(self, entity: EntityExtension) -> None:
        """Every requested embed needs an ``embed_<name>`` option on ``entity``."""
        options = entity.query_options()
        invalid = [repr(name) for name in self.embed if f"embed_{name}" not in options]
        if invalid:
            raise ArgumentError("Unknown objects in embed: " + ", ".join(invalid))

    def fetch_list(
        self,
        entity: EntityExtension,
        filters: Optional[Mapping[str, Any]] = None,
        connection: Any = None,
    ) -> Dict[str, Any]:
        """
        Run ``get_list`` for this request and return the response envelope.

        ``filters`` holds the entity's own options (``{"status": "open"}``).
        The request decides select, order_by, pager and embed flags. A page past
        the last one gives an empty ``data`` list.
        """
        self.check_embed(entity)
        options = {**dict(filters or {}), **self.list_query_options()}
        options["select"] = self.select()
        options["fetch_mode"] = "unique"
        log.debug(
            "api list",
            extra={"table": entity.table_name(), "fields": list(self.fields), "embed": self.embed},
        )
        return self.format_list(get_list(entity, options, connection=connection))

    def fetch_values(self, entity: EntityExtension, record: Any, connection: Any = None) -> Dict[str, Any]:
        """
        Format an already loaded record, running ``after_get_by`` first so the
        requested embeds are attached to it.
        """
        self.check_embed(entity)
        options = merge_options(entity.query_options(), self.get_query_options())
        db = connection if connection is not None else get_connection()
        return self.format_values(entity.after_get_by(db, options, record))

    def fetch_one(self, entity: EntityExtension, id: Any, connection: Any = None) -> Optional[Dict[str, Any]]:
        """``get_by_id`` with the requested embeds, formatted; None when nothing matches."""
        self.check_embed(entity)
        record = get_by_id(entity, id, self.get_query_options(), connection=connection)
        if record is None:
            return None
        return self.format_values(record)


class RestResource(abc.ABC):
    """
    Request processor for a REST collection with operator filters.

    Filters arrive as ``field=operator:value`` (``status=in:open,closed``,
    ``created_at=between:2016-01-01,``, ``deleted_at=is:null``). Fields mapped
    to ``NONE`` in ``allowed_filters`` take the raw value (equality).
    """

    @abc.abstractmethod
    def allowed_sort(self) -> Dict[str, str]:
        """Sortable names and their SQL expression, e.g. ``{"id": "t.id"}``."""
        raise NotImplementedError

    @abc.abstractmethod
    def allowed_filters(self) -> Dict[str, Any]:
        """Filterable names mapped to ``ALL``, ``NONE`` or a list of operators."""
        raise NotImplementedError

    @abc.abstractmethod
    def format_entity(self, entity: Any) -> Any:
        raise NotImplementedError

    def max_per_page(self) -> int:
        return get_settings().max_per_page

    def default_request(self) -> Dict[str, Any]:
        return {"sort": "", "page": 1, "per_page": get_settings().default_per_page}

    def __init__(self) -> None:
        self._model_filters: Dict[str, Any] = {}

    def process_request(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        request = {**self.default_request(), **request}

        filters: Dict[str, Any] = {}
        order_by = parse_sort(request.pop("sort"), self.allowed_sort())
        if order_by:
            filters["order_by"] = order_by
        filters["pager"] = self._process_pagination(request.pop("page"), request.pop("per_page"))
        filters.update(self._process_filters(request, self.allowed_filters()))
        self._model_filters = filters
        return filters

    def _process_pagination(self, page: Any, per_page: Any) -> Pager:
        pager = Pager(per_page, page)
        if pager.get_per_page() > self.max_per_page():
            raise ArgumentError(f"Invalid per_page (maximum is {self.max_per_page()})")
        if pager.get_current_page(resolve=False) < 1:
            raise ArgumentError("Invalid page (minimum 1)")
        return pager

    def _process_filters(self, request: Mapping[str, Any], allowed: Mapping[str, Any]) -> Dict[str, Any]:
        unknown = [repr(name) for name in request if name not in allowed]
        if unknown:
            raise ArgumentError("Invalid filter(s): " + ", ".join(unknown))

        results: Dict[str, Any] = {}
        for name, value in request.items():
            operators = allowed[name]
            if operators is NONE:
                results[name] = value
                continue

            if not isinstance(value, str) or ":" not in value:
                raise ArgumentError(f"Invalid filter '{name}', operator required")
            operator, _, argument = value.partition(":")

            if operator not in OPERATORS:
                raise ArgumentError(f"Unknown operator '{operator}' for filter '{name}'")
            if operators is not ALL and operator not in operators:
                raise ArgumentError(f"Invalid operator '{operator}' for filter '{name}'")

            results[name] = {operator: self._filter_argument(operator, argument)}
        return results

    @staticmethod
    def _filter_argument(operator: str, argument: str) -> Any:
        if operator == "between":
            bounds = argument.split(",")
            if len(bounds) != 2:
                raise ArgumentError("Between filter expects 'min,max' (either may be empty)")
            return [bound or None for bound in bounds]
        return argument

    def model_filters(self) -> Dict[str, Any]:
        return dict(self._model_filters)

    def format_collection(self, collection: Any) -> Dict[str, Any]:
        if "pager" not in self._model_filters:
            raise LogicError("process_request() must be called before format_collection()")
        pager: Pager = self._model_filters["pager"]
        meta = PaginationMeta.from_pager(pager)
        return {
            "success": True,
            **meta.model_dump(),
            "data": [self.format_entity(entity) for entity in _rows(collection)],
        }


__all__ = [
    "ALL",
    "NONE",
    "ApiQuery",
    "PaginationMeta",
    "RestResource",
    "format_datetime",
    "format_values",
    "parse_fields",
    "parse_sort",
]
