"""
Form instance.

Ties the data store, the control tree, the rule engine, validation and the
event bus together behind one programmatic API. The data store is the only
source of truth for data; the tree is rebuilt from it on load/regenerate and
maintained incrementally on array edits.

Usage:
    form = Form(FormOptions(live_validate=True))
    form.load(schema, ui_schema)
    form.set_data({"name": "Ada", "age": "37"})
    result = form.validate()
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any

from dazzle_forms.builder.tree import TreeBuilder
from dazzle_forms.config import FormOptions
from dazzle_forms.core.errors import FormError
from dazzle_forms.core.paths import Path, PathToken, as_path
from dazzle_forms.core.rules import RuleEngine, RulePassStats
from dazzle_forms.core.schema import (
    SchemaNode,
    composition_branches,
    empty_value_for,
    merge_all_of,
    parse_json_document,
    resolve,
)
from dazzle_forms.core.store import DataStore, IndexMapping, coerce
from dazzle_forms.events.bus import EventHandler, FormEventBus, FormEventName
from dazzle_forms.renderers.registry import (
    GLOBAL_REGISTRY,
    RendererContext,
    RendererDefinition,
    RendererRegistry,
)
from dazzle_forms.runtime.messages import normalize_locale
from dazzle_forms.runtime.validation import (
    CompiledValidator,
    FieldError,
    JsonSchemaValidator,
    ValidationResult,
    Validator,
    attach_errors,
    to_validation_result,
)
from dazzle_forms.specs.control import (
    ARRAY_KINDS,
    ArrayPayload,
    CategoriesPayload,
    CompositionPayload,
    ControlDescriptor,
    ControlKind,
)
from dazzle_forms.specs.rule import Rule
from dazzle_forms.specs.ui_schema import UiElement

logger = logging.getLogger(__name__)

PathLike = Path | str | tuple[PathToken, ...] | list[PathToken] | None


class Form:
    """
    A schema-driven form.

    Args:
        options: Construction options (live validation, locale, renderers)
        registry: Renderer registry to clone (default: the shared registry)
        validator: Validator collaborator (default: ``jsonschema`` adapter)
    """

    def __init__(
        self,
        options: FormOptions | None = None,
        registry: RendererRegistry | None = None,
        validator: Validator | None = None,
    ):
        self.options = options or FormOptions()
        self._live_validate = self.options.live_validate
        self._locale = self.options.locale

        self._base_registry = (registry if registry is not None else GLOBAL_REGISTRY).clone()
        self._registry = self._base_registry.clone()
        for definition in self.options.renderers:
            self._registry.register(definition)

        self._validator: Validator = validator or JsonSchemaValidator()
        self._compiled: CompiledValidator | None = None
        self._compile_error: str | None = None
        self._generation = 0

        self._store = DataStore({})
        self._store.add_reindex_listener(self._on_reindex)
        self._bus = FormEventBus()
        self._rules = RuleEngine()

        self._schema: SchemaNode | None = None
        self._raw_schema: dict[str, Any] | None = None
        self._ui_schema: UiElement | None = None
        self._builder: TreeBuilder | None = None
        self._tree: ControlDescriptor | None = None
        self._focused: Path | None = None

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def schema(self) -> SchemaNode | None:
        return self._schema

    @property
    def ui_schema(self) -> UiElement | None:
        return self._ui_schema

    @property
    def tree(self) -> ControlDescriptor | None:
        return self._tree

    @property
    def store(self) -> DataStore:
        return self._store

    @property
    def registry(self) -> RendererRegistry:
        return self._registry

    @property
    def focused_path(self) -> Path | None:
        return self._focused

    @property
    def live_validate(self) -> bool:
        return self._live_validate

    @property
    def locale(self) -> str:
        return self._locale

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def rules(self) -> list[Rule]:
        return self._rules.rules

    # =========================================================================
    # Loading
    # =========================================================================

    @staticmethod
    def _parse(
        schema: dict[str, Any] | str | bytes, ui_schema: dict[str, Any] | str | bytes | None
    ) -> tuple[SchemaNode, dict[str, Any], UiElement | None]:
        raw = parse_json_document(schema) if isinstance(schema, (str, bytes)) else schema
        root = SchemaNode.from_raw(raw)
        ui = UiElement.from_raw(ui_schema) if ui_schema is not None else None
        return root, raw, ui

    def _compile(self, raw: dict[str, Any]) -> CompiledValidator | None:
        try:
            compiled = self._validator.compile(raw)
        except Exception as e:
            logger.warning("Validator compilation failed: %s", e)
            self._compile_error = str(e)
            return None
        self._compile_error = None
        return compiled

    def _install(self, root: SchemaNode, raw: dict[str, Any], ui: UiElement | None) -> None:
        """
        Swap in a parsed schema and build its tree.

        If the build fails the previous schema, tree and data are put back
        before the error propagates.
        """
        saved = (
            self._schema,
            self._raw_schema,
            self._ui_schema,
            self._builder,
            self._tree,
            self._focused,
            self._compiled,
            self._compile_error,
            self._store.snapshot(),
        )
        self._schema = root
        self._raw_schema = raw
        self._ui_schema = ui
        self._compiled = None
        self._compile_error = None
        self._builder = None
        self._tree = None
        self._focused = None
        try:
            self._reset_store()
            self._rebuild()
        except FormError:
            (
                self._schema,
                self._raw_schema,
                self._ui_schema,
                self._builder,
                self._tree,
                self._focused,
                self._compiled,
                self._compile_error,
                data,
            ) = saved
            self._store.replace(data)
            raise

    def _reset_store(self) -> None:
        if self._schema is None:
            return
        # An array root starts absent so the build seeds default/minItems items
        root = merge_all_of(self._schema)
        self._store.replace(None if root.is_array else empty_value_for(root))

    def load(
        self,
        schema: dict[str, Any] | str | bytes,
        ui_schema: dict[str, Any] | str | bytes | None = None,
    ) -> ValidationResult:
        """
        Load a schema (and optional UI Schema) and build the form.

        Data is reset to the schema's initial shape. A parse failure raises
        and leaves the previously loaded form untouched.

        Raises:
            SchemaParseError: If either document is unusable
            FormError: If the tree cannot be built from the documents
        """
        root, raw, ui = self._parse(schema, ui_schema)
        self._install(root, raw, ui)
        self._generation += 1
        self._compiled = self._compile(raw)
        result = self.validate()
        self._emit_form_change()
        return result

    async def aload(
        self,
        schema: dict[str, Any] | str | bytes,
        ui_schema: dict[str, Any] | str | bytes | None = None,
    ) -> bool:
        """
        Load like :meth:`load`, compiling the validator off the event loop.

        The tree is built immediately. The compiled validator is installed
        only if no newer load started meanwhile.

        Returns:
            True if this call's validator was installed
        """
        root, raw, ui = self._parse(schema, ui_schema)
        self._install(root, raw, ui)
        self._generation += 1
        generation = self._generation
        self._emit_form_change()

        try:
            compiled = await asyncio.to_thread(self._validator.compile, raw)
        except Exception as e:
            if generation == self._generation:
                logger.warning("Validator compilation failed: %s", e)
                self._compile_error = str(e)
            return False

        if generation != self._generation:
            logger.debug("Discarding validator for stale schema generation %d", generation)
            return False
        self._compiled = compiled
        self._compile_error = None
        self.validate()
        return True

    def regenerate(self) -> None:
        """Rebuild the tree from the current schema, keeping the data."""
        if self._schema is None:
            return
        self._rebuild()
        self.validate()

    def _rebuild(self, apply_defaults: bool = True) -> None:
        if self._schema is None:
            return
        previous = self._tree
        selections = self._builder.selections if self._builder is not None else {}
        self._builder = TreeBuilder(
            self._schema,
            self._store,
            registry=self._registry,
            ui_schema=self._ui_schema,
            context_factory=self._renderer_context,
            apply_defaults=apply_defaults,
        )
        self._builder.selections = dict(selections)
        self._tree = self._builder.build()
        if self._store.value is None:
            self._store.replace(empty_value_for(self._schema))
        self._builder.restore_presentation(previous, self._tree)
        # Items added later get their defaults
        self._builder.apply_defaults = True
        if self._focused is not None and self._tree.find(self._focused) is None:
            self._focused = None
        self._apply_rules()

    # =========================================================================
    # Data
    # =========================================================================

    def get_data(self) -> Any:
        """Deep copy of the current data value."""
        return self._store.snapshot()

    def set_data(self, value: Any) -> None:
        """
        Merge ``value`` into the data, coercing leaves by their schema.

        ``None`` entries leave existing values alone.
        """
        if self._schema is None:
            return
        self._store.set_values_by_path(Path(), self._schema, value, self._branch_for)
        self._rebuild()
        self._emit_form_change()
        self.validate()

    def get_value(self, path: PathLike) -> Any:
        return self._store.get(as_path(path))

    def set_value(self, path: PathLike, value: Any) -> None:
        """
        Write a value (schema-shaped, coerced) at ``path``.

        Raises:
            IndexError: If an index in ``path`` is past the end of its array
        """
        target = as_path(path)
        self._check_indices(target)
        # A scalar written to an existing control leaves the tree as it is
        structural = isinstance(value, (dict, list)) or self.find(target) is None
        schema = self._schema_at(target)
        if schema is None:
            self._store.set(target, value)
        else:
            self._store.set_values_by_path(target, schema, value, self._branch_for)
        if structural:
            self._rebuild()
        else:
            self._apply_rules()
        self._emit_field_change(target, value)
        self.validate()

    def handle_input(self, path: PathLike, raw: Any) -> Any:
        """
        Apply an edit reported by a rendering backend.

        The raw value is coerced by the schema at ``path``; empty input
        removes the field.

        Returns:
            The stored value (None when the field was removed)

        Raises:
            IndexError: If an index in ``path`` is past the end of its array
        """
        target = as_path(path)
        self._check_indices(target)
        descriptor = self._find_innermost(target)
        schema = descriptor.schema if descriptor is not None else self._schema_at(target)
        value = coerce(schema, raw)
        if value is None:
            self._store.unset(target)
        else:
            self._store.set(target, value)
        self._after_change(target, value)
        return value

    def export_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.get_data(), indent=indent, ensure_ascii=False)

    def reset(self) -> None:
        """Return to the schema's initial data (defaults and minItems items)."""
        if self._schema is None:
            return
        self._reset_store()
        self._rebuild()
        self._emit_form_change()
        if self._live_validate:
            self.validate()

    def clear(self) -> None:
        """Empty the data without re-applying defaults."""
        if self._schema is None:
            return
        self._reset_store()
        self._rebuild(apply_defaults=False)
        self._emit_form_change()
        if self._live_validate:
            self.validate()

    # =========================================================================
    # Structural edits
    # =========================================================================

    def _array_limits(self, path: Path) -> tuple[SchemaNode, int, int | None]:
        schema = self._schema_at(path)
        if schema is None:
            return SchemaNode(), 0, None
        return schema, schema.min_items or 0, schema.max_items

    def insert_item(self, path: PathLike, index: int, value: Any = None) -> bool:
        """
        Insert an item into the array at ``path``.

        ``value`` defaults to an empty item shaped by the item schema.

        Returns:
            False if ``maxItems`` rejected the insert

        Raises:
            IndexError: If ``index`` is out of range
        """
        target = as_path(path)
        schema, _, max_items = self._array_limits(target)
        if value is None:
            value = empty_value_for(schema.item_schema)
        if not self._store.insert_at(target, index, value, max_items):
            return False
        self._focused = target.child(index)
        self._after_change(target, self._store.get(target))
        return True

    def append_item(self, path: PathLike, value: Any = None) -> bool:
        target = as_path(path)
        current = self._store.get(target)
        length = len(current) if isinstance(current, list) else 0
        return self.insert_item(target, length, value)

    def remove_item(self, path: PathLike, index: int) -> bool:
        """
        Remove an item from the array at ``path``.

        Returns:
            False if ``minItems`` rejected the removal

        Raises:
            IndexError: If ``index`` is out of range
        """
        target = as_path(path)
        _, min_items, _ = self._array_limits(target)
        focused_item = self._focused is not None and self._focused.startswith(target.child(index))
        if not self._store.remove_at(target, index, min_items):
            return False
        if focused_item:
            current = self._store.get(target) or []
            self._focused = target.child(min(index, len(current) - 1)) if current else target
        self._after_change(target, self._store.get(target))
        return True

    def move_item(self, path: PathLike, from_index: int, to_index: int) -> bool:
        """
        Move an item within the array at ``path``.

        Raises:
            IndexError: If either index is out of range
        """
        target = as_path(path)
        if not self._store.move(target, from_index, to_index):
            return False
        self._after_change(target, self._store.get(target))
        return True

    def _on_reindex(self, path: Path, mapping: IndexMapping, new_length: int) -> None:
        if self._builder is None or self._tree is None:
            return
        self._builder.remap_selections(path, mapping)
        arrays = [
            node
            for node in self._tree.walk()
            if node.kind in ARRAY_KINDS
            and node.path is not None
            and tuple(node.path) == tuple(path)
        ]
        for node in arrays:
            self._builder.reconcile_array(node, mapping, new_length)

        focused = self._focused
        if focused is not None and len(focused) > len(path) and focused.startswith(path):
            old = focused[len(path)]
            if isinstance(old, int) and old in mapping:
                new = mapping[old]
                if new is None:
                    self._focused = None
                elif new != old:
                    self._focused = focused.rebase(path.child(old), path.child(new))

    # =========================================================================
    # Selection state
    # =========================================================================

    def select_branch(self, path: PathLike, index: int) -> bool:
        """
        Switch a composition to branch ``index``.

        The data at ``path`` is discarded; values entered for the previous
        branch are not restored when switching back.

        Returns:
            False if the branch was already selected

        Raises:
            KeyError: If there is no composition at ``path``
            IndexError: If ``index`` is out of range
        """
        target = as_path(path)
        descriptor = self._find_kind(target, ControlKind.COMPOSITION_SWITCH)
        if descriptor is None or self._builder is None:
            raise KeyError(f"No composition at {target}")
        payload: CompositionPayload = descriptor.payload
        if not 0 <= index < len(payload.branches):
            raise IndexError(f"Branch {index} out of range for {target}")
        if index == payload.selected:
            return False

        self._store.unset(target)
        descriptor.children = [self._builder.build_branch(descriptor, index)]
        self._after_change(target, self._store.get(target))
        return True

    def select_category(self, descriptor: ControlDescriptor, index: int) -> None:
        """Make category ``index`` of a category-tabs descriptor the active one."""
        if descriptor.kind != ControlKind.CATEGORY_TABS:
            raise ValueError(f"Expected a category-tabs descriptor, got {descriptor.kind.value}")
        if not 0 <= index < len(descriptor.children):
            raise IndexError(f"Category {index} out of range")
        payload: CategoriesPayload = descriptor.payload
        payload.selected = index

    def select_detail(self, path: PathLike, index: int) -> None:
        """Show item ``index`` in the detail pane of the list-detail at ``path``."""
        target = as_path(path)
        descriptor = self._find_kind(target, ControlKind.LIST_DETAIL)
        if descriptor is None or self._builder is None:
            raise KeyError(f"No list-detail at {target}")
        payload: ArrayPayload = descriptor.payload
        if not 0 <= index < len(payload.entries):
            raise IndexError(f"Item {index} out of range for {target}")
        payload.selected = index
        self._builder.rebuild_detail(descriptor, len(payload.entries))
        self._apply_rules()

    # =========================================================================
    # Presentation state
    # =========================================================================

    def find(self, path: PathLike) -> ControlDescriptor | None:
        if self._tree is None:
            return None
        return self._tree.find(as_path(path))

    def _find_innermost(self, path: Path) -> ControlDescriptor | None:
        found = None
        if self._tree is not None:
            for node in self._tree.walk():
                if node.path is not None and tuple(node.path) == tuple(path):
                    found = node
        return found

    def _find_kind(self, path: Path, kind: ControlKind) -> ControlDescriptor | None:
        if self._tree is None:
            return None
        for node in self._tree.walk():
            if node.kind == kind and node.path is not None and tuple(node.path) == tuple(path):
                return node
        return None

    def show(self, path: PathLike) -> bool:
        descriptor = self.find(path)
        if descriptor is None:
            return False
        descriptor.hidden = False
        return True

    def hide(self, path: PathLike) -> bool:
        descriptor = self.find(path)
        if descriptor is None:
            return False
        descriptor.hidden = True
        return True

    def enable(self, path: PathLike) -> bool:
        return self._set_enabled(path, True)

    def disable(self, path: PathLike) -> bool:
        return self._set_enabled(path, False)

    def _set_enabled(self, path: PathLike, enabled: bool) -> bool:
        descriptor = self.find(path)
        if descriptor is None:
            return False
        for node in descriptor.walk():
            node.enabled = enabled
        return True

    def focus(self, path: PathLike) -> bool:
        target = as_path(path)
        if self.find(target) is None:
            return False
        self._focused = target
        return True

    def is_hidden(self, path: PathLike) -> bool:
        """True if the descriptor at ``path`` or any ancestor is hidden."""
        if self._tree is None:
            return False
        target = as_path(path)
        return self._hidden_below(self._tree, target, False)

    def _hidden_below(self, node: ControlDescriptor, target: Path, inherited: bool) -> bool:
        hidden = inherited or node.hidden
        if node.path is not None and tuple(node.path) == tuple(target):
            return hidden
        for child in node.children:
            if self._hidden_below(child, target, hidden):
                return True
        return False

    # =========================================================================
    # Rules
    # =========================================================================

    def add_rule(self, rule: Rule | dict[str, Any]) -> None:
        if not isinstance(rule, Rule):
            rule = Rule.model_validate(rule)
        self._rules.add(rule)
        self._apply_rules()

    def clear_rules(self) -> None:
        self._rules.clear()
        self._apply_rules()

    def _apply_rules(self) -> RulePassStats:
        return self._rules.apply_all(self._tree, self._store)

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(self) -> ValidationResult:
        """
        Validate the current data.

        Errors are attached to descriptors and ``form:validate`` is emitted.
        Never raises for invalid data.
        """
        if self._schema is None or self._raw_schema is None:
            result = ValidationResult(
                valid=False,
                errors=[FieldError(Path(), "schema", {}, "No schema loaded")],
            )
        else:
            compiled = self._compiled
            if compiled is None and self._compile_error is None:
                compiled = self._compiled = self._compile(self._raw_schema)
            if compiled is None:
                result = ValidationResult(
                    valid=False,
                    errors=[
                        FieldError(
                            Path(),
                            "schema",
                            {},
                            f"Schema could not be compiled: {self._compile_error}",
                        )
                    ],
                )
            else:
                result = to_validation_result(compiled(self._store.snapshot()), self._locale)

        attach_errors(self._tree, result.errors)
        self._apply_rules()
        self._bus.publish(
            FormEventName.FORM_VALIDATE,
            {"valid": result.valid, "errors": [e.to_dict() for e in result.errors]},
        )
        return result

    def submit(self) -> ValidationResult:
        """Validate and, if valid, emit ``form:submit`` with the data."""
        result = self.validate()
        if result.valid:
            self._bus.publish(FormEventName.FORM_SUBMIT, {"data": self.get_data()})
        else:
            logger.debug("Submit blocked by %d validation error(s)", len(result.errors))
        return result

    def set_live_validate(self, enabled: bool) -> None:
        self._live_validate = bool(enabled)
        if self._schema is not None:
            self.validate()

    def set_locale(self, code: str | None) -> None:
        self._locale = normalize_locale(code)
        if self._schema is not None:
            self.validate()

    # =========================================================================
    # Events
    # =========================================================================

    def on(self, event: str | FormEventName, handler: EventHandler) -> None:
        self._bus.subscribe(event, handler)

    def off(self, event: str | FormEventName, handler: EventHandler) -> bool:
        return self._bus.unsubscribe(event, handler)

    def emit(self, event: str | FormEventName, detail: dict[str, Any] | None = None) -> int:
        return self._bus.publish(event, detail)

    def _emit_field_change(self, path: Path, value: Any) -> None:
        self._bus.publish_field_change(str(path), {"path": str(path), "value": value})
        self._emit_form_change()

    def _emit_form_change(self) -> None:
        self._bus.publish(FormEventName.FORM_CHANGE, {"data": self.get_data()})

    def _after_change(self, path: Path, value: Any) -> None:
        self._apply_rules()
        if self._live_validate:
            self.validate()
        self._emit_field_change(path, value)

    # =========================================================================
    # Renderers
    # =========================================================================

    def register_renderer(self, definition: RendererDefinition[Any]) -> None:
        """Register a renderer on this form only (applies from the next build)."""
        self._registry.register(definition)

    def clear_renderers(self) -> None:
        """Drop renderers registered on this form, keeping the cloned base set."""
        self._registry = self._base_registry.clone()

    def _renderer_context(
        self,
        path: Path,
        schema: SchemaNode,
        element: UiElement | None,
        label: str | None,
        required: bool,
        create_default: Callable[[], ControlDescriptor],
    ) -> RendererContext:
        return RendererContext(
            path=path,
            schema=schema,
            root_schema=self._schema or SchemaNode(),
            element=element,
            ui_schema=self._ui_schema,
            label=label,
            required=required,
            form=self,
            create_default=create_default,
            emit=self.emit,
            get_value=lambda: self.get_value(path),
            set_value=lambda value: self.set_value(path, value),
            validate=self.validate,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _check_indices(self, path: Path) -> None:
        """Edits may only address existing array items; new ones go through insert_item."""
        for i, token in enumerate(path):
            if not isinstance(token, int):
                continue
            parent = Path(tuple(path[:i]))
            current = self._store.get(parent)
            length = len(current) if isinstance(current, list) else 0
            if token >= length:
                raise IndexError(f"Index {token} out of range for {parent} (length {length})")

    def _schema_at(self, path: Path) -> SchemaNode | None:
        if self._schema is None:
            return None
        return resolve(self._schema, path)

    def _branch_for(self, path: Path, schema: SchemaNode) -> SchemaNode:
        branches = composition_branches(schema)
        if not branches:
            return schema
        descriptor = self._find_kind(path, ControlKind.COMPOSITION_SWITCH)
        if descriptor is not None:
            payload: CompositionPayload = descriptor.payload
            return payload.branches[payload.selected]
        selected = self._builder.selections.get(tuple(path), 0) if self._builder else 0
        return branches[selected] if 0 <= selected < len(branches) else branches[0]
