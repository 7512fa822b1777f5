"""
Core building blocks: paths, schema resolution, the data store and errors.
"""

from dazzle_forms.core.errors import (
    ErrorContext,
    FormError,
    MalformedPathError,
    PathTypeConflictError,
    SchemaParseError,
    UnsupportedElementError,
)
from dazzle_forms.core.paths import Path, as_path, pointer_to_path, serialize, tokenize
from dazzle_forms.core.schema import SchemaNode, merge_all_of, resolve
from dazzle_forms.core.store import DataStore, coerce

__all__ = [
    # Errors
    "ErrorContext",
    "FormError",
    "MalformedPathError",
    "PathTypeConflictError",
    "SchemaParseError",
    "UnsupportedElementError",
    # Paths
    "Path",
    "as_path",
    "pointer_to_path",
    "serialize",
    "tokenize",
    # Schema
    "SchemaNode",
    "merge_all_of",
    "resolve",
    # Store
    "DataStore",
    "coerce",
]
