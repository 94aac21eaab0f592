"""
Versioned record container.

A VersionedRecord keeps two snapshots of the same named fields:

- "current" values, read and written by application code;
- "original" values, as they were when the record was loaded.

Comparing the two (with ``loose_equals``) answers "has this field changed since
load?" and produces structured diffs for UPDATE statements or audit logs.

Usage:
    record = VersionedRecord({"name": "john", "age": "42"})
    record["name"] = "jane"
    record.is_modified("name")        # True
    record.get_diff("both_merged")    # {"name": ("john", "jane")}
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any, Dict, List, Optional, Tuple, Union

from dbtools.domain.equality import loose_equals, loose_mapping_equals
from dbtools.errors import ArgumentError

DIFF_MODES = ("original", "modified", "both", "both_merged")


def _copy_containers(value: Any) -> Any:
    """
    Copy nested dicts/lists/sets so later in-place edits of the current value
    do not leak into the original snapshot. Leaf objects are shared, which keeps
    identity comparison meaningful for opaque values.
    """
    if isinstance(value, dict):
        return {key: _copy_containers(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_copy_containers(item) for item in value]
    if isinstance(value, set):
        return set(value)
    return value


class VersionedRecord:
    """
    Field container tracking current vs. original values.

    Fields are kept in an ordered mapping (``values()``) next to a shadow
    mapping of originals (``original_values()``). Attribute access, item access
    and ``get``/``set`` are equivalent. Container values are returned by live
    reference so ``record["address"]["street"] = "..."`` edits the field in
    place (and is reported by ``is_modified``).
    """

    def __init__(self, source: Any = None) -> None:
        values = self._to_dict(source)
        object.__setattr__(self, "_values", values)
        object.__setattr__(
            self, "_original", {key: _copy_containers(value) for key, value in values.items()}
        )

    @classmethod
    def _to_dict(cls, source: Any) -> Dict[str, Any]:
        if source is None:
            return {}
        if isinstance(source, VersionedRecord):
            return dict(source.values())
        if isinstance(source, Mapping):
            return dict(source)
        if hasattr(source, "model_dump") and callable(source.model_dump):
            return dict(source.model_dump())
        if hasattr(source, "__dict__") and not isinstance(source, type):
            return {key: value for key, value in vars(source).items() if not key.startswith("_")}
        raise TypeError(
            f"Cannot build a record from {type(source).__name__!r}; "
            "expected a mapping, an object with fields, or another record"
        )

    # -- current values -----------------------------------------------------

    def get(self, key: str) -> Any:
        """Current value of ``key``, or None if the record has no such field."""
        return self._values.get(key)

    def set(self, key: str, value: Any) -> "VersionedRecord":
        self._values[key] = value
        return self

    def values(self) -> Dict[str, Any]:
        return self._values

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    def merge(self, source: Any) -> "VersionedRecord":
        """Apply every key of ``source`` through ``set``, in iteration order."""
        items = source.items() if isinstance(source, (Mapping, VersionedRecord)) else None
        if items is None:
            items = self._to_dict(source).items()
        for key, value in items:
            self.set(key, value)
        return self

    # -- original values ----------------------------------------------------

    def get_original(self, key: str) -> Any:
        return self._original.get(key)

    def set_original(self, key: str, value: Any) -> "VersionedRecord":
        """Write ``value`` as both current and original (not a user edit)."""
        self._values[key] = value
        self._original[key] = _copy_containers(value)
        return self

    def original_values(self) -> Dict[str, Any]:
        return self._original

    # -- modification tracking ---------------------------------------------

    def is_modified(self, keys: Union[None, str, Iterable[str]] = None) -> bool:
        """
        With no argument, whether any field differs from its original.
        With a key, whether that field differs. With a list of keys, whether
        any of them differs.
        """
        if keys is None:
            return not loose_mapping_equals(self._original, self._values)

        if not isinstance(keys, str):
            return any(self.is_modified(key) for key in keys)

        if (keys in self._original) != (keys in self._values):
            return True
        return not loose_equals(self._original.get(keys), self._values.get(keys))

    def _changed_keys(self) -> Tuple[List[str], List[str]]:
        changed = [
            key
            for key, value in self._original.items()
            if key not in self._values or not loose_equals(value, self._values[key])
        ]
        added = [key for key in self._values if key not in self._original]
        return changed, added

    def get_diff(self, mode: str = "both_merged") -> Any:
        """
        Report changed and new fields.

        - ``original``: key -> original value (new keys map to None)
        - ``modified``: key -> current value
        - ``both``: a pair ``(original report, modified report)``
        - ``both_merged``: key -> ``(original, modified)``
        """
        if mode not in DIFF_MODES:
            raise ArgumentError(
                "get_diff() mode must be one of the following: " + ", ".join(DIFF_MODES)
            )

        changed, added = self._changed_keys()
        original: Dict[str, Any] = {key: self._original[key] for key in changed}
        original.update((key, None) for key in added)
        modified: Dict[str, Any] = {key: self._values.get(key) for key in changed}
        modified.update((key, self._values[key]) for key in added)

        if mode == "original":
            return original
        if mode == "modified":
            return modified
        if mode == "both":
            return (original, modified)
        return {key: (original[key], modified[key]) for key in original}

    # -- mapping / attribute protocols -------------------------------------

    def __getitem__(self, key: str) -> Any:
        return self.get(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __delitem__(self, key: str) -> None:
        self.set(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Tuple[str, Any]]:
        return iter(list(self._values.items()))

    def items(self) -> Iterator[Tuple[str, Any]]:
        return iter(self)

    def keys(self) -> List[str]:
        return list(self._values)

    def __getattr__(self, name: str) -> Any:
        # Only reached when regular attribute lookup fails.
        if name.startswith("_"):
            raise AttributeError(name)
        return self.get(name)

    def __setattr__(self, name: str, value: Any) -> None:
        # Fields named like a method (values, keys, ...) still land in the record;
        # only data descriptors such as properties keep their own setter.
        descriptor = getattr(type(self), name, None)
        if name.startswith("_") or hasattr(descriptor, "__set__"):
            object.__setattr__(self, name, value)
        else:
            self.set(name, value)

    def __repr__(self) -> str:
        flag = " modified" if self.is_modified() else ""
        return f"<{type(self).__name__}{flag} {self._values!r}>"


RecordSource = Union[Mapping[str, Any], VersionedRecord, Any]


def wrap(source: RecordSource, record_class: Optional[type] = None) -> VersionedRecord:
    """Wrap a fetched row into ``record_class`` (VersionedRecord by default)."""
    cls = record_class or VersionedRecord
    if isinstance(source, cls):
        return source
    return cls(source)


__all__ = ["DIFF_MODES", "VersionedRecord", "wrap"]
