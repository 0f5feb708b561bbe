"""
Core type enums for contract compatibility analysis.

Single source of truth for HTTP methods, diff kinds, and verdict
classifications.  Values are lowercase strings so they serialise cleanly
to JSON/YAML reports.
"""

from __future__ import annotations

from enum import Enum


class HttpMethod(str, Enum):
    """HTTP methods an endpoint signature may declare."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class DiffKind(str, Enum):
    """Atomic difference kinds emitted by the schema diff engine.

    Renames are not a kind: with no identity beyond the field name, a
    rename always surfaces as ``FIELD_REMOVED`` + ``FIELD_ADDED``.
    """
    FIELD_ADDED = "field_added"
    FIELD_REMOVED = "field_removed"
    FIELD_TYPE_CHANGED = "field_type_changed"
    FIELD_REQUIREDNESS_CHANGED = "field_requiredness_changed"
    FIELD_NOW_NULLABLE = "field_now_nullable"
    FIELD_NO_LONGER_NULLABLE = "field_no_longer_nullable"
    ENDPOINT_ADDED = "endpoint_added"
    ENDPOINT_REMOVED = "endpoint_removed"
    ENDPOINT_METHOD_CHANGED = "endpoint_method_changed"
    PATH_PARAM_ADDED = "path_param_added"
    PATH_PARAM_REMOVED = "path_param_removed"
    QUERY_PARAM_ADDED = "query_param_added"
    QUERY_PARAM_REMOVED = "query_param_removed"
    QUERY_PARAM_REQUIREDNESS_CHANGED = "query_param_requiredness_changed"


class Classification(str, Enum):
    """Compatibility verdict for a (subject, consumer) pair."""
    COMPATIBLE = "compatible"
    UNKNOWN = "unknown"
    BREAKING = "breaking"

    @property
    def rank(self) -> int:
        return _CLASSIFICATION_RANK[self]

    def worst(self, other: "Classification") -> "Classification":
        """Return the more severe of two classifications."""
        return other if other.rank > self.rank else self


_CLASSIFICATION_RANK = {
    Classification.COMPATIBLE: 0,
    Classification.UNKNOWN: 1,
    Classification.BREAKING: 2,
}


FIELD_DIFF_KINDS = frozenset({
    DiffKind.FIELD_ADDED,
    DiffKind.FIELD_REMOVED,
    DiffKind.FIELD_TYPE_CHANGED,
    DiffKind.FIELD_REQUIREDNESS_CHANGED,
    DiffKind.FIELD_NOW_NULLABLE,
    DiffKind.FIELD_NO_LONGER_NULLABLE,
})

QUERY_PARAM_DIFF_KINDS = frozenset({
    DiffKind.QUERY_PARAM_ADDED,
    DiffKind.QUERY_PARAM_REMOVED,
    DiffKind.QUERY_PARAM_REQUIREDNESS_CHANGED,
})

PATH_PARAM_DIFF_KINDS = frozenset({
    DiffKind.PATH_PARAM_ADDED,
    DiffKind.PATH_PARAM_REMOVED,
})

# Kind each entry maps to when the diff direction is reversed
INVERSE_KIND: dict[DiffKind, DiffKind] = {
    DiffKind.FIELD_ADDED: DiffKind.FIELD_REMOVED,
    DiffKind.FIELD_REMOVED: DiffKind.FIELD_ADDED,
    DiffKind.FIELD_TYPE_CHANGED: DiffKind.FIELD_TYPE_CHANGED,
    DiffKind.FIELD_REQUIREDNESS_CHANGED: DiffKind.FIELD_REQUIREDNESS_CHANGED,
    DiffKind.FIELD_NOW_NULLABLE: DiffKind.FIELD_NO_LONGER_NULLABLE,
    DiffKind.FIELD_NO_LONGER_NULLABLE: DiffKind.FIELD_NOW_NULLABLE,
    DiffKind.ENDPOINT_ADDED: DiffKind.ENDPOINT_REMOVED,
    DiffKind.ENDPOINT_REMOVED: DiffKind.ENDPOINT_ADDED,
    DiffKind.ENDPOINT_METHOD_CHANGED: DiffKind.ENDPOINT_METHOD_CHANGED,
    DiffKind.PATH_PARAM_ADDED: DiffKind.PATH_PARAM_REMOVED,
    DiffKind.PATH_PARAM_REMOVED: DiffKind.PATH_PARAM_ADDED,
    DiffKind.QUERY_PARAM_ADDED: DiffKind.QUERY_PARAM_REMOVED,
    DiffKind.QUERY_PARAM_REMOVED: DiffKind.QUERY_PARAM_ADDED,
    DiffKind.QUERY_PARAM_REQUIREDNESS_CHANGED: DiffKind.QUERY_PARAM_REQUIREDNESS_CHANGED,
}

# Requiredness markers carried in diff entry before/after values
REQUIRED = "required"
OPTIONAL = "optional"

HTTP_METHOD_VALUES = [m.value for m in HttpMethod]
DIFF_KIND_VALUES = [k.value for k in DiffKind]
CLASSIFICATION_VALUES = [c.value for c in Classification]
