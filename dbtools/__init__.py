"""
dbtools - options-driven list/get queries over relational tables.

This package turns a declarative options dictionary into SQL and fetched rows
into change-tracking records:

- A filter compiler for field constraints (eq, in, between, null tests, ...)
- A pager for page/offset arithmetic and navigation windows
- A stateless list/get orchestrator driven by entity extensions
- A versioned record container reporting what changed since load
- REST adapters parsing query strings and formatting response envelopes
"""

from __future__ import annotations

__version__ = "0.1.0"

# Public API exports
from dbtools.api import ApiQuery, RestResource, parse_fields, parse_sort
from dbtools.config import Settings, get_settings
from dbtools.domain.equality import loose_equals
from dbtools.domain.record import VersionedRecord
from dbtools.entity import AbstractEntity, EntityExtension, TableEntity
from dbtools.errors import ArgumentError, DbToolsError, LogicError
from dbtools.infrastructure.db_factory import ConnectionProvider, Database, get_provider
from dbtools.orchestrator import get_by, get_by_id, get_list, get_list_for_select
from dbtools.query.filters import compile_where, quote_value
from dbtools.query.options import merge_options
from dbtools.query.pager import Pager
from dbtools.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    # Configuration
    "Settings",
    "get_settings",
    # Errors
    "ArgumentError",
    "DbToolsError",
    "LogicError",
    # Records
    "VersionedRecord",
    "loose_equals",
    # Query building
    "Pager",
    "compile_where",
    "merge_options",
    "quote_value",
    # Entities and orchestration
    "AbstractEntity",
    "EntityExtension",
    "TableEntity",
    "get_by",
    "get_by_id",
    "get_list",
    "get_list_for_select",
    # REST adapters
    "ApiQuery",
    "RestResource",
    "parse_fields",
    "parse_sort",
    # Infrastructure
    "ConnectionProvider",
    "Database",
    "get_provider",
    # Logging
    "configure_logging",
    "get_logger",
]
