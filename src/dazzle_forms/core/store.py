"""
Data store: the single source of truth for a form's data value.

The store owns one nested JSON-compatible value (dicts, lists, scalars).
Control descriptors never hold data; they hold a :class:`Path` used to read
and write through the store. Structural array edits notify reindex
listeners so descriptor paths can be renumbered to match positions.
"""

from __future__ import annotations

import copy
import logging
import math
import re
from collections.abc import Callable
from typing import Any

from dazzle_forms.core.errors import ErrorContext, PathTypeConflictError
from dazzle_forms.core.paths import Path, PathToken
from dazzle_forms.core.schema import (
    SchemaNode,
    composition_keyword,
    merge_all_of,
)

logger = logging.getLogger(__name__)

# Index mapping for a structural edit: old index -> new index (None = removed)
IndexMapping = dict[int, int | None]
ReindexListener = Callable[[Path, IndexMapping, int], None]
BranchSelector = Callable[[Path, SchemaNode], SchemaNode]

_INT_PREFIX_RE = re.compile(r"\s*([+-]?\d+)")


# =============================================================================
# Coercion
# =============================================================================


def _parse_integer(raw: Any) -> int | float:
    if isinstance(raw, bool):
        return math.nan
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        if math.isnan(raw) or math.isinf(raw):
            return math.nan
        return int(raw)
    m = _INT_PREFIX_RE.match(str(raw))
    if m is None:
        return math.nan
    return int(m.group(1))


def _parse_number(raw: Any) -> int | float:
    if isinstance(raw, bool):
        return math.nan
    if isinstance(raw, (int, float)):
        return raw
    text = str(raw).strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        value = float(text)
    except ValueError:
        return math.nan
    # "inf"/"nan" spellings are not numeric input
    return value if math.isfinite(value) else math.nan


def coerce(schema: SchemaNode | None, raw: Any) -> Any:
    """
    Convert a raw edit value to the schema's type.

    Empty input (``""`` or ``None``) coerces to ``None``, meaning "omit this
    field", not "set it to empty". Unparseable numeric input yields
    ``float("nan")`` instead of raising; validation reports it.

    Example:
        >>> coerce(SchemaNode(type="integer"), "37")
        37
        >>> coerce(SchemaNode(type="integer"), "")  # omitted
    """
    if raw is None or raw == "":
        return None
    if schema is None:
        return raw
    kind = schema.primary_type
    if kind == "integer":
        return _parse_integer(raw)
    if kind == "number":
        return _parse_number(raw)
    if kind == "boolean":
        return bool(raw)
    return raw


# =============================================================================
# Store
# =============================================================================


class DataStore:
    """
    Owner of the canonical nested data value.

    Example:
        store = DataStore({})
        store.set(Path(("pets", 0, "name")), "Rex")
        store.get(Path(("pets", 0)))  # {"name": "Rex"}
    """

    def __init__(self, value: Any = None):
        self._value: Any = {} if value is None else value
        self._listeners: list[ReindexListener] = []

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def add_reindex_listener(self, listener: ReindexListener) -> None:
        """Register a callback run after every successful structural edit."""
        self._listeners.append(listener)

    def remove_reindex_listener(self, listener: ReindexListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, path: Path, mapping: IndexMapping, new_length: int) -> None:
        for listener in list(self._listeners):
            listener(path, mapping, new_length)

    # -------------------------------------------------------------------------
    # Whole value
    # -------------------------------------------------------------------------

    @property
    def value(self) -> Any:
        return self._value

    def snapshot(self) -> Any:
        """Deep copy of the current value."""
        return copy.deepcopy(self._value)

    def replace(self, value: Any) -> None:
        """Replace the root value."""
        self._value = value

    # -------------------------------------------------------------------------
    # Read / write
    # -------------------------------------------------------------------------

    def get(self, path: tuple[PathToken, ...]) -> Any:
        """
        Read the value at ``path``.

        Returns None when any intermediate container is missing or of the
        wrong kind.
        """
        node = self._value
        for token in path:
            if node is None:
                return None
            if isinstance(token, int):
                if not isinstance(node, list) or token >= len(node):
                    return None
                node = node[token]
            else:
                if not isinstance(node, dict):
                    return None
                node = node.get(token)
        return node

    def set(self, path: tuple[PathToken, ...], value: Any) -> None:
        """
        Write ``value`` at ``path``, creating intermediate containers.

        A list is created when the next token is an index, a dict otherwise.

        Raises:
            PathTypeConflictError: If an existing container's kind conflicts
                with the next token
        """
        path = Path(tuple(path))
        if not path:
            self._value = value
            return

        if self._value is None:
            self._value = [] if isinstance(path[0], int) else {}

        node = self._value
        for i, token in enumerate(path):
            is_last = i == len(path) - 1
            self._check_container(node, token, Path(path[:i]))
            if is_last:
                self._assign(node, token, value)
                return
            child = self._read_slot(node, token)
            if child is None:
                child = [] if isinstance(path[i + 1], int) else {}
                self._assign(node, token, child)
            node = child

    def unset(self, path: tuple[PathToken, ...]) -> None:
        """
        Omit the value at ``path``.

        Mapping entries are removed; sequence elements become None so that
        sibling indices do not shift.
        """
        path = Path(tuple(path))
        if not path:
            self._value = {}
            return
        container = self.get(path.parent)
        token = path[-1]
        if isinstance(token, int):
            if isinstance(container, list) and token < len(container):
                container[token] = None
        elif isinstance(container, dict):
            container.pop(token, None)

    @staticmethod
    def _check_container(node: Any, token: PathToken, at: Path) -> None:
        if isinstance(token, int):
            if not isinstance(node, list):
                raise PathTypeConflictError(
                    f"Index [{token}] applied to {type(node).__name__} at {str(at) or '<root>'}",
                    ErrorContext(source=str(at)),
                )
        elif not isinstance(node, dict):
            raise PathTypeConflictError(
                f"Field {token!r} applied to {type(node).__name__} at {str(at) or '<root>'}",
                ErrorContext(source=str(at)),
            )

    @staticmethod
    def _read_slot(node: Any, token: PathToken) -> Any:
        if isinstance(token, int):
            return node[token] if token < len(node) else None
        return node.get(token)

    @staticmethod
    def _assign(node: Any, token: PathToken, value: Any) -> None:
        if isinstance(token, int):
            if token >= len(node):
                node.extend([None] * (token + 1 - len(node)))
            node[token] = value
        else:
            node[token] = value

    # -------------------------------------------------------------------------
    # Structural array edits
    # -------------------------------------------------------------------------

    def _sequence_at(self, path: Path, create: bool) -> list[Any]:
        current = self.get(path)
        if current is None:
            if not create:
                return []
            current = []
            self.set(path, current)
        if not isinstance(current, list):
            raise PathTypeConflictError(
                f"Expected a sequence at {str(path) or '<root>'}, found {type(current).__name__}",
                ErrorContext(source=str(path)),
            )
        return current

    def insert_at(
        self,
        path: tuple[PathToken, ...],
        index: int,
        value: Any,
        max_items: int | None = None,
    ) -> bool:
        """
        Insert ``value`` at ``index`` in the sequence at ``path``.

        Returns:
            False (data unchanged) if the insert would exceed ``max_items``

        Raises:
            IndexError: If ``index`` is outside ``0..len``
        """
        path = Path(tuple(path))
        seq = self._sequence_at(path, create=True)
        length = len(seq)
        if not 0 <= index <= length:
            raise IndexError(f"Insert index {index} out of range for {path} (length {length})")
        if max_items is not None and length + 1 > max_items:
            logger.debug("Rejected insert at %s: maxItems=%d reached", path, max_items)
            return False

        seq.insert(index, value)
        mapping: IndexMapping = {i: (i if i < index else i + 1) for i in range(length)}
        self._notify(path, mapping, length + 1)
        return True

    def remove_at(self, path: tuple[PathToken, ...], index: int, min_items: int = 0) -> bool:
        """
        Remove the item at ``index`` from the sequence at ``path``.

        Returns:
            False (data unchanged) if the removal would go below ``min_items``

        Raises:
            IndexError: If ``index`` is outside ``0..len-1``
        """
        path = Path(tuple(path))
        seq = self._sequence_at(path, create=False)
        length = len(seq)
        if not 0 <= index < length:
            raise IndexError(f"Remove index {index} out of range for {path} (length {length})")
        if length - 1 < (min_items or 0):
            logger.debug("Rejected removal at %s: minItems=%d reached", path, min_items)
            return False

        del seq[index]
        mapping: IndexMapping = {}
        for i in range(length):
            if i < index:
                mapping[i] = i
            elif i == index:
                mapping[i] = None
            else:
                mapping[i] = i - 1
        self._notify(path, mapping, length - 1)
        return True

    def move(self, path: tuple[PathToken, ...], from_index: int, to_index: int) -> bool:
        """
        Move the item at ``from_index`` to ``to_index``.

        Returns:
            True when the sequence changed, False for a no-op move

        Raises:
            IndexError: If either index is out of range
        """
        path = Path(tuple(path))
        seq = self._sequence_at(path, create=False)
        length = len(seq)
        for idx in (from_index, to_index):
            if not 0 <= idx < length:
                raise IndexError(f"Move index {idx} out of range for {path} (length {length})")
        if from_index == to_index:
            return False

        order = list(range(length))
        order.insert(to_index, order.pop(from_index))
        seq[:] = [seq[old] for old in order]
        mapping: IndexMapping = {old: new for new, old in enumerate(order)}
        self._notify(path, mapping, length)
        return True

    # -------------------------------------------------------------------------
    # Schema-shaped writes
    # -------------------------------------------------------------------------

    def set_values_by_path(
        self,
        path: tuple[PathToken, ...],
        schema: SchemaNode,
        value: Any,
        select_branch: BranchSelector | None = None,
    ) -> None:
        """
        Write a whole subtree, coercing leaves by their schema.

        ``None`` at any sub-path is a no-op: existing values are preserved,
        never erased. Arrays are replaced item by item. Keys without a
        declared property are written through unchanged.

        Args:
            path: Where to write
            schema: Effective schema at ``path``
            value: Subtree value
            select_branch: Picks the active ``oneOf``/``anyOf`` branch for a
                composition node; without it composition values are written raw
        """
        if value is None:
            return
        path = Path(tuple(path))
        schema = merge_all_of(schema)

        if composition_keyword(schema) is not None:
            if select_branch is None:
                self.set(path, copy.deepcopy(value))
                return
            schema = merge_all_of(select_branch(path, schema))

        if schema.is_object_like and isinstance(value, dict):
            if self.get(path) is None:
                self.set(path, {})
            for key, sub_value in value.items():
                sub_schema = schema.properties.get(key)
                if sub_schema is None:
                    if sub_value is not None:
                        self.set(path.child(key), copy.deepcopy(sub_value))
                    continue
                self.set_values_by_path(path.child(key), sub_schema, sub_value, select_branch)
            return

        if schema.is_array and isinstance(value, list):
            self.set(path, [])
            item_schema = schema.item_schema
            for idx, item in enumerate(value):
                if item is None:
                    self.set(path.child(idx), None)
                    continue
                self.set_values_by_path(path.child(idx), item_schema, item, select_branch)
            return

        coerced = coerce(schema, value)
        if coerced is None:
            return
        self.set(path, coerced)


__all__ = [
    "BranchSelector",
    "DataStore",
    "IndexMapping",
    "ReindexListener",
    "coerce",
]
