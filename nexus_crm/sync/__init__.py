"""Local/remote reconciliation and the field mapping between them."""

from .errors import RemoteErrorKind, classify
from .field_mapper import column_name, field_map, reverse_field_map, to_external, to_internal
from .reconciler import OPTIONAL_COLUMNS, RemoteReconciler

__all__ = [
    "OPTIONAL_COLUMNS",
    "RemoteErrorKind",
    "RemoteReconciler",
    "classify",
    "column_name",
    "field_map",
    "reverse_field_map",
    "to_external",
    "to_internal",
]
