"""
Query building package for dbtools.

Pure, connection-independent pieces: the filter compiler, the pager and the
options dictionary helpers. Nothing here performs I/O except
``Pager.query_for_total`` through the executor it is given.
"""

from dbtools.query.filters import (
    OPERATORS,
    compile_constraint,
    compile_operator,
    compile_where,
    quote_value,
)
from dbtools.query.options import (
    is_valid_limit,
    merge_options,
    parse_date,
    parse_json,
    parse_limit,
)
from dbtools.query.pager import Pager

__all__ = [
    # Filters
    "OPERATORS",
    "compile_constraint",
    "compile_operator",
    "compile_where",
    "quote_value",
    # Options
    "is_valid_limit",
    "merge_options",
    "parse_date",
    "parse_json",
    "parse_limit",
    # Pagination
    "Pager",
]
