"""
Control tree builder.

Walks a data schema, or a UI Schema layered over it, and produces the
control descriptor tree. Array initial items and leaf defaults are written
to the data store as the walk proceeds, so after a build the store and the
tree agree on every array length.

Two entry points:
- :meth:`TreeBuilder.build_for_schema` for a schema-only walk
- :meth:`TreeBuilder.build_for_ui_schema` for a UI Schema walk

Array descriptors are maintained incrementally afterwards by
:meth:`TreeBuilder.reconcile_array`.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterator
from typing import Any

from dazzle_forms.builder.leaf import build_leaf_payload
from dazzle_forms.core.errors import ErrorContext, UnsupportedElementError
from dazzle_forms.core.paths import Path
from dazzle_forms.core.schema import (
    SchemaNode,
    apply_ui_options,
    branch_label,
    composition_branches,
    composition_keyword,
    empty_value_for,
    is_required,
    merge_all_of,
    resolve,
)
from dazzle_forms.core.store import DataStore, IndexMapping
from dazzle_forms.renderers.registry import RendererContext, RendererRegistry
from dazzle_forms.specs.control import (
    ArrayPayload,
    CategoriesPayload,
    CompositionPayload,
    ControlDescriptor,
    ControlKind,
    CustomPayload,
    ItemAffordances,
    PlaceholderPayload,
)
from dazzle_forms.specs.ui_schema import LAYOUT_TYPES, UiElement

logger = logging.getLogger(__name__)

# (path, schema, element, label, required, create_default) -> context
ContextFactory = Callable[
    [Path, SchemaNode, UiElement | None, str | None, bool, Callable[[], ControlDescriptor]],
    RendererContext,
]


def item_entry_label(index: int) -> str:
    """Master-list label for an array item."""
    return f"Item {index + 1}"


class TreeBuilder:
    """
    Builds control descriptors for one loaded schema.

    Example:
        builder = TreeBuilder(root_schema, store)
        tree = builder.build()
        tree.find(Path(("name",))).kind  # ControlKind.LEAF
    """

    def __init__(
        self,
        root_schema: SchemaNode,
        store: DataStore,
        registry: RendererRegistry | None = None,
        ui_schema: UiElement | None = None,
        context_factory: ContextFactory | None = None,
        apply_defaults: bool = True,
    ):
        self.root_schema = root_schema
        self.store = store
        self.registry = registry if registry is not None else RendererRegistry()
        self.ui_schema = ui_schema
        self._context_factory = context_factory
        self.apply_defaults = apply_defaults
        # Branch index per composition path, carried across rebuilds
        self.selections: dict[tuple[Any, ...], int] = {}

    # =========================================================================
    # Entry points
    # =========================================================================

    def build(self) -> ControlDescriptor:
        """Build the whole tree (UI Schema walk when one is loaded)."""
        if self.ui_schema is not None:
            return self.build_for_ui_schema(self.ui_schema)
        return self.build_for_schema(self.root_schema, Path(), label=self.root_schema.title)

    def build_for_schema(
        self,
        schema: SchemaNode,
        path: Path,
        label: str | None = None,
        required: bool = False,
        element: UiElement | None = None,
        use_registry: bool = True,
    ) -> ControlDescriptor:
        """
        Build the descriptor subtree for ``schema`` bound at ``path``.

        Args:
            schema: Schema at ``path`` (``allOf`` is merged here)
            path: Data path the subtree binds to
            label: Display label
            required: Whether the parent lists this field as required
            element: UI Schema element that produced this control, if any
            use_registry: Consult custom renderers first
        """
        if use_registry:
            custom = self._custom_descriptor(schema, path, label, required, element)
            if custom is not None:
                return custom

        schema = merge_all_of(schema)

        if composition_keyword(schema) is not None:
            return self._build_composition(schema, path, label, required)
        if schema.is_object_like:
            return self._build_object(schema, path, label, required)
        if schema.is_array:
            return self._build_array(ControlKind.ARRAY_GROUP, schema, path, label, required)
        return self._build_leaf(schema, path, label, required)

    def build_for_ui_schema(
        self, element: UiElement, base: Path | None = None
    ) -> ControlDescriptor:
        """
        Build the descriptor subtree for a UI Schema element.

        An unsupported element degrades to a ``placeholder`` descriptor; the
        rest of the tree is still built.

        Args:
            element: UI Schema element
            base: Path that control scopes are relative to (list-detail panes)
        """
        base = base or Path()
        try:
            descriptor = self._build_element(element, base)
        except UnsupportedElementError as e:
            logger.warning("Unsupported UI element: %s", e.message)
            descriptor = ControlDescriptor(
                kind=ControlKind.PLACEHOLDER,
                label=element.type,
                payload=PlaceholderPayload(message=e.message),
            )
        descriptor.element = element
        if element.rule is not None:
            descriptor.rule = element.rule
        return descriptor

    # =========================================================================
    # Schema walk
    # =========================================================================

    def _build_composition(
        self, schema: SchemaNode, path: Path, label: str | None, required: bool
    ) -> ControlDescriptor:
        keyword = composition_keyword(schema) or "oneOf"
        branches = composition_branches(schema)
        payload = CompositionPayload(
            keyword=keyword,
            branches=branches,
            labels=[branch_label(b, keyword, i) for i, b in enumerate(branches)],
        )
        descriptor = ControlDescriptor(
            kind=ControlKind.COMPOSITION_SWITCH,
            path=path,
            schema=schema,
            label=label,
            required=required,
            payload=payload,
        )
        if branches:
            selected = self.selections.get(tuple(path), 0)
            if not 0 <= selected < len(branches):
                selected = 0
            descriptor.children = [self.build_branch(descriptor, selected)]
        return descriptor

    def build_branch(self, descriptor: ControlDescriptor, index: int) -> ControlDescriptor:
        """Build the active child of a composition switch for branch ``index``."""
        payload: CompositionPayload = descriptor.payload
        payload.selected = index
        path = descriptor.path or Path()
        self.selections[tuple(path)] = index
        return self.build_for_schema(
            payload.branches[index], path, descriptor.label, descriptor.required
        )

    def _build_object(
        self, schema: SchemaNode, path: Path, label: str | None, required: bool
    ) -> ControlDescriptor:
        descriptor = ControlDescriptor(
            kind=ControlKind.OBJECT_GROUP,
            path=path,
            schema=schema,
            label=label,
            required=required,
        )
        for name, prop in schema.properties.items():
            descriptor.children.append(
                self.build_for_schema(
                    prop,
                    path.child(name),
                    label=prop.title or name,
                    required=name in schema.required,
                )
            )
        return descriptor

    def _build_array(
        self,
        kind: ControlKind,
        schema: SchemaNode,
        path: Path,
        label: str | None,
        required: bool,
    ) -> ControlDescriptor:
        item_schema = merge_all_of(schema.item_schema)
        length = self._seed_array(schema, path)
        payload = ArrayPayload(
            item_schema=item_schema,
            min_items=schema.min_items or 0,
            max_items=schema.max_items,
        )
        if kind == ControlKind.ARRAY_TABLE:
            payload.columns = list(item_schema.properties)
        descriptor = ControlDescriptor(
            kind=kind,
            path=path,
            schema=schema,
            label=label,
            required=required,
            payload=payload,
        )
        descriptor.children = [self.build_item(descriptor, i) for i in range(length)]
        refresh_affordances(descriptor, length)
        return descriptor

    def _seed_array(self, schema: SchemaNode, path: Path) -> int:
        """
        Make sure the store holds the array's initial items.

        Existing data wins, then the schema ``default``, then ``minItems``
        empty-shaped items.
        """
        existing = self.store.get(path)
        if isinstance(existing, list):
            return len(existing)
        if self.apply_defaults and isinstance(schema.default, list):
            self.store.set(path, copy.deepcopy(schema.default))
            return len(schema.default)
        min_items = schema.min_items or 0
        if min_items > 0:
            self.store.set(path, [empty_value_for(schema.item_schema) for _ in range(min_items)])
            return min_items
        return 0

    def build_item(self, array: ControlDescriptor, index: int) -> ControlDescriptor:
        """Build the descriptor for item ``index`` of an array descriptor."""
        payload: ArrayPayload = array.payload
        item_path = (array.path or Path()).child(index)
        item_schema = payload.item_schema
        return self.build_for_schema(item_schema, item_path, label=item_schema.title)

    def _build_leaf(
        self, schema: SchemaNode, path: Path, label: str | None, required: bool
    ) -> ControlDescriptor:
        if self.apply_defaults and schema.has_default and self.store.get(path) is None:
            self.store.set(path, copy.deepcopy(schema.default))
        return ControlDescriptor(
            kind=ControlKind.LEAF,
            path=path,
            schema=schema,
            label=label,
            required=required,
            payload=build_leaf_payload(schema, required),
        )

    # =========================================================================
    # Custom renderers
    # =========================================================================

    def _context(
        self,
        path: Path,
        schema: SchemaNode,
        element: UiElement | None,
        label: str | None,
        required: bool,
        create_default: Callable[[], ControlDescriptor],
    ) -> RendererContext:
        if self._context_factory is not None:
            return self._context_factory(path, schema, element, label, required, create_default)
        return RendererContext(
            path=path,
            schema=schema,
            root_schema=self.root_schema,
            element=element,
            ui_schema=self.ui_schema,
            label=label,
            required=required,
            create_default=create_default,
        )

    def _custom_descriptor(
        self,
        schema: SchemaNode,
        path: Path,
        label: str | None,
        required: bool,
        element: UiElement | None,
    ) -> ControlDescriptor | None:
        if not len(self.registry):
            return None

        def create_default() -> ControlDescriptor:
            return self.build_for_schema(schema, path, label, required, element, use_registry=False)

        context = self._context(path, schema, element, label, required, create_default)
        requested = element.custom_renderer_name if element is not None else None
        definition = self.registry.select(context, requested)
        if definition is None:
            return None

        logger.debug("Renderer %s selected for %s", definition.display_name, path)
        return ControlDescriptor(
            kind=ControlKind.CUSTOM,
            path=path,
            schema=schema,
            label=label,
            required=required,
            payload=CustomPayload(
                renderer=definition.display_name, view=definition.render(context)
            ),
        )

    # =========================================================================
    # UI Schema walk
    # =========================================================================

    def _build_element(self, element: UiElement, base: Path) -> ControlDescriptor:
        kind = element.type

        if kind in LAYOUT_TYPES:
            return ControlDescriptor(
                kind=ControlKind.LAYOUT,
                label=element.label if isinstance(element.label, str) else None,
                children=[self.build_for_ui_schema(child, base) for child in element.elements],
            )

        if kind == "Group":
            return ControlDescriptor(
                kind=ControlKind.GROUP,
                label=element.label if isinstance(element.label, str) else None,
                children=[self.build_for_ui_schema(child, base) for child in element.elements],
            )

        if kind == "Categorization":
            return self._build_categorization(element, base)

        if kind == "Category":
            return self._build_category(element, base, 0)

        if kind in ("Control", "Table", "ListWithDetail"):
            return self._build_control(element, base)

        raise UnsupportedElementError(
            f"Unknown UI element type: {kind!r}", ErrorContext(source=kind)
        )

    def _build_categorization(self, element: UiElement, base: Path) -> ControlDescriptor:
        descriptor = ControlDescriptor(
            kind=ControlKind.CATEGORY_TABS,
            label=element.label if isinstance(element.label, str) else None,
            payload=CategoriesPayload(selected=0),
        )
        for child in element.elements:
            if child.type != "Category":
                logger.debug("Skipping %s inside Categorization", child.type)
                continue
            category = self._build_category(child, base, len(descriptor.children))
            category.element = child
            if child.rule is not None:
                category.rule = child.rule
            descriptor.children.append(category)
        return descriptor

    def _build_category(self, element: UiElement, base: Path, index: int) -> ControlDescriptor:
        label = element.label if isinstance(element.label, str) and element.label else None
        return ControlDescriptor(
            kind=ControlKind.CATEGORY,
            label=label or f"Category {index + 1}",
            children=[self.build_for_ui_schema(child, base) for child in element.elements],
        )

    def _build_control(self, element: UiElement, base: Path) -> ControlDescriptor:
        path = base.join(element.scope_path)
        schema = resolve(self.root_schema, path)
        required = is_required(self.root_schema, path)

        if element.label is False:
            label = None
        elif isinstance(element.label, str) and element.label:
            label = element.label
        else:
            last = next((t for t in reversed(path) if isinstance(t, str)), None)
            label = schema.title or last

        if element.is_list_detail:
            return self._build_list_detail(element, schema, path, label, required)
        if element.is_table:
            return self._build_array(ControlKind.ARRAY_TABLE, schema, path, label, required)

        effective = apply_ui_options(schema, element.options)
        return self.build_for_schema(effective, path, label, required, element=element)

    def _build_list_detail(
        self,
        element: UiElement,
        schema: SchemaNode,
        path: Path,
        label: str | None,
        required: bool,
    ) -> ControlDescriptor:
        length = self._seed_array(schema, path)
        descriptor = ControlDescriptor(
            kind=ControlKind.LIST_DETAIL,
            path=path,
            schema=schema,
            label=label,
            required=required,
            payload=ArrayPayload(
                item_schema=merge_all_of(schema.item_schema),
                min_items=schema.min_items or 0,
                max_items=schema.max_items,
                detail=element.detail,
                selected=0 if length else None,
            ),
        )
        self.rebuild_detail(descriptor, length)
        return descriptor

    def rebuild_detail(self, descriptor: ControlDescriptor, length: int) -> None:
        """Refresh a list-detail's master entries and rebuild its detail pane."""
        payload: ArrayPayload = descriptor.payload
        payload.entries = [item_entry_label(i) for i in range(length)]
        if payload.selected is not None and payload.selected >= length:
            payload.selected = length - 1 if length else None
        if payload.selected is None and length:
            payload.selected = 0
        payload.can_append = payload.max_items is None or length < payload.max_items

        if payload.selected is None:
            descriptor.children = []
            return
        item_path = (descriptor.path or Path()).child(payload.selected)
        if payload.detail is not None:
            pane = self.build_for_ui_schema(payload.detail, base=item_path)
        else:
            pane = self.build_for_schema(payload.item_schema, item_path)
        descriptor.children = [pane]

    # =========================================================================
    # Presentation state across rebuilds
    # =========================================================================

    def restore_presentation(
        self, previous: ControlDescriptor | None, current: ControlDescriptor
    ) -> None:
        """
        Carry transient presentation state from ``previous`` into ``current``.

        Visibility, enablement, list-detail and category selections are
        copied onto descriptors at the same location in the new tree. A
        location is the nearest data-bound path plus the child positions
        below it, so layout nodes inside array items match too.
        """
        if previous is None:
            return
        old = dict(_locations(previous))

        def visit(node: ControlDescriptor, anchor: Any, trail: tuple[int, ...]) -> None:
            if node.path is not None:
                anchor, trail = tuple(node.path), ()
            match = old.get((node.kind, anchor, trail))
            if match is not None:
                node.hidden = match.hidden
                node.enabled = match.enabled
                self._restore_selection(match, node)
            for i, child in enumerate(node.children):
                visit(child, anchor, trail + (i,))

        visit(current, None, ())

    def _restore_selection(self, old: ControlDescriptor, node: ControlDescriptor) -> None:
        if node.kind == ControlKind.CATEGORY_TABS:
            selected = old.payload.selected
            if 0 <= selected < len(node.children):
                node.payload.selected = selected
        elif node.kind == ControlKind.LIST_DETAIL:
            payload: ArrayPayload = node.payload
            selected = old.payload.selected
            if selected is not None and selected != payload.selected:
                if 0 <= selected < len(payload.entries):
                    payload.selected = selected
                    self.rebuild_detail(node, len(payload.entries))

    # =========================================================================
    # Incremental array maintenance
    # =========================================================================

    def reconcile_array(
        self, descriptor: ControlDescriptor, mapping: IndexMapping, new_length: int
    ) -> None:
        """
        Bring an array descriptor in line with a structural edit.

        Surviving item descriptors are reused and renumbered per ``mapping``;
        only slots without a predecessor are built fresh.

        Args:
            descriptor: array-group, array-table or list-detail descriptor
            mapping: Old index -> new index (None when removed)
            new_length: Array length after the edit
        """
        path = descriptor.path or Path()

        if descriptor.kind == ControlKind.LIST_DETAIL:
            payload: ArrayPayload = descriptor.payload
            if payload.selected is not None and payload.selected in mapping:
                moved = mapping[payload.selected]
                payload.selected = moved if moved is not None else max(payload.selected - 1, 0)
            self.rebuild_detail(descriptor, new_length)
            return

        old_children = descriptor.children
        slots: list[ControlDescriptor | None] = [None] * new_length
        for old, new in mapping.items():
            if new is None or old >= len(old_children) or new >= new_length:
                continue
            child = old_children[old]
            if old != new:
                child.rebase(path.child(old), path.child(new))
            slots[new] = child

        children: list[ControlDescriptor] = []
        for index, child in enumerate(slots):
            children.append(child if child is not None else self.build_item(descriptor, index))
        descriptor.children = children
        refresh_affordances(descriptor, new_length)

    def remap_selections(self, path: Path, mapping: IndexMapping) -> None:
        """Move remembered branch selections under ``path`` to their new indices."""
        n = len(path)
        remapped: dict[tuple[Any, ...], int] = {}
        for key, selected in self.selections.items():
            if len(key) > n and key[:n] == tuple(path) and isinstance(key[n], int):
                new = mapping.get(key[n], key[n])
                if new is None:
                    continue
                key = (*key[:n], new, *key[n + 1 :])
            remapped[key] = selected
        self.selections = remapped


def refresh_affordances(descriptor: ControlDescriptor, length: int) -> None:
    """Recompute append/remove/move permissions for an array descriptor."""
    payload: ArrayPayload = descriptor.payload
    payload.can_append = payload.max_items is None or length < payload.max_items
    for index, child in enumerate(descriptor.children):
        child.affordances = ItemAffordances(
            can_remove=length > payload.min_items,
            can_move_up=index > 0,
            can_move_down=index < length - 1,
        )


def _locations(
    node: ControlDescriptor, anchor: Any = None, trail: tuple[int, ...] = ()
) -> Iterator[tuple[tuple[ControlKind, Any, tuple[int, ...]], ControlDescriptor]]:
    if node.path is not None:
        anchor, trail = tuple(node.path), ()
    yield (node.kind, anchor, trail), node
    for i, child in enumerate(node.children):
        yield from _locations(child, anchor, trail + (i,))


__all__ = [
    "ContextFactory",
    "TreeBuilder",
    "item_entry_label",
    "refresh_affordances",
]
