"""
Domain package for dbtools.

Exports the versioned record container and the loose equality relation it
uses for modification tracking.
"""

from dbtools.domain.equality import is_empty, is_numeric, loose_equals, loose_mapping_equals
from dbtools.domain.record import DIFF_MODES, VersionedRecord, wrap

__all__ = [
    "DIFF_MODES",
    "VersionedRecord",
    "is_empty",
    "is_numeric",
    "loose_equals",
    "loose_mapping_equals",
    "wrap",
]
