"""Tests for control tree building."""

from __future__ import annotations

from typing import Any

import pytest

from dazzle_forms.builder.leaf import EMPTY_OPTION_LABEL, choice_options, leaf_constraints, leaf_flavor
from dazzle_forms.builder.tree import TreeBuilder, item_entry_label
from dazzle_forms.core.paths import Path
from dazzle_forms.core.schema import SchemaNode
from dazzle_forms.core.store import DataStore
from dazzle_forms.renderers.registry import RendererDefinition, RendererRegistry
from dazzle_forms.specs.control import ControlKind, InputFlavor
from dazzle_forms.specs.ui_schema import UiElement


def _build(
    schema: dict[str, Any],
    data: Any = None,
    ui: dict[str, Any] | None = None,
    registry: RendererRegistry | None = None,
    apply_defaults: bool = True,
) -> tuple[Any, DataStore, TreeBuilder]:
    store = DataStore(data)
    builder = TreeBuilder(
        SchemaNode.from_raw(schema),
        store,
        registry=registry,
        ui_schema=UiElement.from_raw(ui) if ui is not None else None,
        apply_defaults=apply_defaults,
    )
    return builder.build(), store, builder


# ============================================================================
# Schema walk
# ============================================================================


class TestSchemaWalk:
    """Descriptor kinds follow the schema shape."""

    def test_object_with_leaves(self, person_schema) -> None:
        tree, _, _ = _build(person_schema)
        assert tree.kind == ControlKind.OBJECT_GROUP
        assert tree.path == Path()
        name = tree.find(Path(("name",)))
        age = tree.find(Path(("age",)))
        assert name.kind == ControlKind.LEAF
        assert name.required
        assert name.label == "name"
        assert age.payload.flavor == InputFlavor.INTEGER
        assert not age.required

    def test_title_becomes_label(self, pets_schema) -> None:
        tree, _, _ = _build(pets_schema)
        assert tree.find(Path(("owner",))).label == "Owner"

    def test_min_items_seed_store(self, pets_schema) -> None:
        tree, store, _ = _build(pets_schema)
        pets = tree.find(Path(("pets",)))
        assert pets.kind == ControlKind.ARRAY_GROUP
        assert len(pets.children) == 1
        assert store.get(Path(("pets",))) == [{}]
        assert pets.children[0].path == Path(("pets", 0))
        assert pets.children[0].kind == ControlKind.OBJECT_GROUP

    def test_existing_items_win(self, pets_schema) -> None:
        data = {"pets": [{"name": "a"}, {"name": "b"}]}
        tree, store, _ = _build(pets_schema, data)
        assert len(tree.find(Path(("pets",))).children) == 2
        assert store.get(Path(("pets", 1, "name"))) == "b"

    def test_item_affordances(self, pets_schema) -> None:
        data = {"pets": [{"name": "a"}, {"name": "b"}, {"name": "c"}]}
        tree, _, _ = _build(pets_schema, data)
        pets = tree.find(Path(("pets",)))
        first, middle, last = (child.affordances for child in pets.children)
        assert first.can_remove and not first.can_move_up and first.can_move_down
        assert middle.can_move_up and middle.can_move_down
        assert not last.can_move_down
        assert not pets.payload.can_append

    def test_single_item_at_min_cannot_be_removed(self, pets_schema) -> None:
        tree, _, _ = _build(pets_schema)
        item = tree.find(Path(("pets",))).children[0]
        assert not item.affordances.can_remove

    def test_leaf_default_written(self) -> None:
        schema = {"type": "object", "properties": {"n": {"type": "integer", "default": 5}}}
        _, store, _ = _build(schema)
        assert store.value == {"n": 5}

    def test_leaf_default_does_not_overwrite(self) -> None:
        schema = {"type": "object", "properties": {"n": {"type": "integer", "default": 5}}}
        _, store, _ = _build(schema, {"n": 9})
        assert store.value == {"n": 9}

    def test_defaults_skipped_when_disabled(self) -> None:
        schema = {
            "type": "object",
            "properties": {
                "n": {"type": "integer", "default": 5},
                "tags": {"type": "array", "default": ["x"], "items": {"type": "string"}},
            },
        }
        _, store, _ = _build(schema, apply_defaults=False)
        assert store.value == {}

    def test_array_default(self) -> None:
        schema = {
            "type": "object",
            "properties": {"tags": {"type": "array", "default": ["x", "y"], "items": {"type": "string"}}},
        }
        tree, store, _ = _build(schema)
        assert store.get(Path(("tags",))) == ["x", "y"]
        assert len(tree.find(Path(("tags",))).children) == 2

    def test_all_of_merged(self) -> None:
        schema = {
            "allOf": [
                {"type": "object", "properties": {"a": {"type": "string"}}},
                {"properties": {"b": {"type": "boolean"}}},
            ]
        }
        tree, _, _ = _build(schema)
        assert tree.kind == ControlKind.OBJECT_GROUP
        assert tree.find(Path(("b",))).payload.flavor == InputFlavor.CHECKBOX

    def test_composition_switch(self, contact_schema) -> None:
        tree, _, _ = _build(contact_schema)
        switch = tree.find(Path(("contact",)))
        assert switch.kind == ControlKind.COMPOSITION_SWITCH
        assert switch.payload.labels == ["Email", "Phone"]
        assert switch.payload.selected == 0
        assert len(switch.children) == 1
        email = tree.find(Path(("contact", "email")))
        assert email.payload.flavor == InputFlavor.EMAIL

    def test_composition_remembered_selection(self, contact_schema) -> None:
        store = DataStore()
        builder = TreeBuilder(SchemaNode.from_raw(contact_schema), store)
        builder.selections[("contact",)] = 1
        tree = builder.build()
        assert tree.find(Path(("contact",))).payload.selected == 1
        assert tree.find(Path(("contact", "phone"))) is not None

    def test_untitled_branch_labels(self) -> None:
        schema = {"anyOf": [{"type": "string"}, {"type": "integer"}]}
        tree, _, _ = _build(schema)
        assert tree.payload.labels == ["anyOf #1", "anyOf #2"]


class TestLeafDerivation:
    """Leaf flavors, options and constraints."""

    @pytest.mark.parametrize(
        "raw, flavor",
        [
            ({"type": "string"}, InputFlavor.TEXT),
            ({"type": "string", "format": "email"}, InputFlavor.EMAIL),
            ({"type": "string", "format": "uri"}, InputFlavor.URL),
            ({"type": "string", "format": "date-time"}, InputFlavor.DATETIME),
            ({"type": "string", "format": "textarea"}, InputFlavor.TEXTAREA),
            ({"type": "string", "x-ui-widget": "password"}, InputFlavor.PASSWORD),
            ({"type": "string", "contentEncoding": "base64"}, InputFlavor.FILE),
            ({"type": "string", "contentMediaType": "image/png"}, InputFlavor.FILE),
            ({"type": "integer", "x-ui-widget": "range"}, InputFlavor.RANGE),
            ({"type": "number"}, InputFlavor.NUMBER),
            ({"type": "boolean"}, InputFlavor.CHECKBOX),
            ({"type": "string", "enum": ["a"]}, InputFlavor.CHOICE),
            ({}, InputFlavor.TEXT),
        ],
    )
    def test_flavor(self, raw: dict[str, Any], flavor: InputFlavor) -> None:
        assert leaf_flavor(SchemaNode.from_raw(raw)) == flavor

    def test_optional_choice_has_empty_option(self) -> None:
        options = choice_options(SchemaNode.from_raw({"enum": ["dog", "cat"]}), required=False)
        assert options[0].value is None
        assert options[0].label == EMPTY_OPTION_LABEL
        assert [o.value for o in options[1:]] == ["dog", "cat"]

    def test_required_choice_has_no_empty_option(self) -> None:
        options = choice_options(SchemaNode.from_raw({"enum": ["dog"]}), required=True)
        assert [o.value for o in options] == ["dog"]

    def test_choice_labels(self) -> None:
        schema = SchemaNode.from_raw(
            {"enum": [True, False, None], "enumNames": ["Yes"], "default": True}
        )
        assert [o.label for o in choice_options(schema, required=False)] == ["Yes", "false", "null"]

    def test_constraints_keyed_by_keyword(self) -> None:
        schema = SchemaNode.from_raw({"type": "string", "minLength": 2, "pattern": "^a"})
        assert leaf_constraints(schema) == {"minLength": 2, "pattern": "^a"}


# ============================================================================
# UI Schema walk
# ============================================================================


class TestUiSchemaWalk:
    """Layouts, groups, categories and special controls."""

    def test_layout_controls(self, person_schema) -> None:
        ui = {
            "type": "VerticalLayout",
            "elements": [
                {"type": "Control", "scope": "#/properties/name", "label": "Full name"},
                {"type": "Control", "scope": "#/properties/age", "label": False},
            ],
        }
        tree, _, _ = _build(person_schema, ui=ui)
        assert tree.kind == ControlKind.LAYOUT
        assert tree.path is None
        name, age = tree.children
        assert name.label == "Full name"
        assert name.required
        assert age.label is None
        assert name.element.scope == "#/properties/name"

    def test_group(self, person_schema) -> None:
        ui = {
            "type": "Group",
            "label": "Person",
            "elements": [{"type": "Control", "scope": "#/properties/name"}],
        }
        tree, _, _ = _build(person_schema, ui=ui)
        assert tree.kind == ControlKind.GROUP
        assert tree.label == "Person"
        assert tree.children[0].label == "name"

    def test_control_options_widget(self, person_schema) -> None:
        ui = {"type": "Control", "scope": "#/properties/name", "options": {"widget": "textarea"}}
        tree, _, _ = _build(person_schema, ui=ui)
        assert tree.payload.flavor == InputFlavor.TEXTAREA

    def test_categorization(self, person_schema) -> None:
        ui = {
            "type": "Categorization",
            "elements": [
                {"type": "Category", "label": "Main", "elements": [
                    {"type": "Control", "scope": "#/properties/name"},
                ]},
                {"type": "Control", "scope": "#/properties/age"},
                {"type": "Category", "elements": []},
            ],
        }
        tree, _, _ = _build(person_schema, ui=ui)
        assert tree.kind == ControlKind.CATEGORY_TABS
        assert [c.label for c in tree.children] == ["Main", "Category 2"]
        assert all(c.kind == ControlKind.CATEGORY for c in tree.children)
        assert tree.payload.selected == 0

    def test_unknown_element_becomes_placeholder(self, person_schema) -> None:
        ui = {
            "type": "VerticalLayout",
            "elements": [
                {"type": "Frobnicate"},
                {"type": "Control", "scope": "#/properties/name"},
            ],
        }
        tree, _, _ = _build(person_schema, ui=ui)
        placeholder, name = tree.children
        assert placeholder.kind == ControlKind.PLACEHOLDER
        assert "Frobnicate" in placeholder.payload.message
        assert name.kind == ControlKind.LEAF

    def test_table(self, pets_schema) -> None:
        ui = {"type": "Control", "scope": "#/properties/pets", "options": {"renderer": "Table"}}
        tree, _, _ = _build(pets_schema, ui=ui)
        assert tree.kind == ControlKind.ARRAY_TABLE
        assert tree.payload.columns == ["name", "kind"]
        assert len(tree.children) == 1

    def test_list_with_detail(self, pets_schema) -> None:
        ui = {
            "type": "ListWithDetail",
            "scope": "#/properties/pets",
            "detail": {
                "type": "VerticalLayout",
                "elements": [{"type": "Control", "scope": "#/properties/name"}],
            },
        }
        tree, _, builder = _build(pets_schema, {"pets": [{"name": "a"}, {"name": "b"}]}, ui=ui)
        assert tree.kind == ControlKind.LIST_DETAIL
        assert tree.payload.entries == [item_entry_label(0), item_entry_label(1)]
        assert tree.payload.selected == 0
        pane = tree.children[0]
        assert pane.kind == ControlKind.LAYOUT
        name = pane.children[0]
        assert name.path == Path(("pets", 0, "name"))
        assert name.required

        tree.payload.selected = 1
        builder.rebuild_detail(tree, 2)
        assert tree.find(Path(("pets", 1, "name"))) is not None
        assert tree.find(Path(("pets", 0, "name"))) is None

    def test_inline_rule_attached(self, person_schema) -> None:
        ui = {
            "type": "Control",
            "scope": "#/properties/age",
            "rule": {"effect": "hide", "condition": {"scope": "#/properties/name"}},
        }
        tree, _, _ = _build(person_schema, ui=ui)
        assert tree.rule is not None
        assert tree.rule.effect.value == "HIDE"


# ============================================================================
# Custom renderers
# ============================================================================


class TestCustomRenderers:
    def test_tester_selects_custom_kind(self) -> None:
        registry = RendererRegistry()
        registry.register(
            RendererDefinition(
                name="stars",
                tester=lambda ctx: 10 if ctx.schema.format == "rating" else -1,
                render=lambda ctx: {"stars": str(ctx.path)},
            )
        )
        schema = {
            "type": "object",
            "properties": {"score": {"type": "integer", "format": "rating"}, "note": {"type": "string"}},
        }
        tree, _, _ = _build(schema, registry=registry)
        score = tree.find(Path(("score",)))
        assert score.kind == ControlKind.CUSTOM
        assert score.payload.renderer == "stars"
        assert score.payload.view == {"stars": "score"}
        assert tree.find(Path(("note",))).kind == ControlKind.LEAF

    def test_create_default_builds_builtin(self) -> None:
        captured: list = []
        registry = RendererRegistry()
        registry.register(
            RendererDefinition(
                name="wrapper",
                tester=lambda ctx: 1 if ctx.path == Path(("name",)) else 0,
                render=lambda ctx: captured.append(ctx.create_default()),
            )
        )
        _build({"properties": {"name": {"type": "string"}}}, registry=registry)
        assert captured[0].kind == ControlKind.LEAF
        assert captured[0].path == Path(("name",))

    def test_named_request_from_element(self, person_schema) -> None:
        registry = RendererRegistry()
        registry.register(RendererDefinition(name="fancy", render=lambda ctx: "fancy"))
        ui = {"type": "Control", "scope": "#/properties/name", "options": {"renderer": "fancy"}}
        tree, _, _ = _build(person_schema, ui=ui, registry=registry)
        assert tree.kind == ControlKind.CUSTOM
        assert tree.payload.view == "fancy"


# ============================================================================
# Incremental maintenance
# ============================================================================


class TestReconcile:
    def test_surviving_items_are_reused(self, pets_schema) -> None:
        data = {"pets": [{"name": "a"}, {"name": "b"}, {"name": "c"}]}
        tree, store, builder = _build(pets_schema, data)
        pets = tree.find(Path(("pets",)))
        second = pets.children[1]

        calls: list = []
        store.add_reindex_listener(lambda path, mapping, n: calls.append((mapping, n)))
        store.remove_at(Path(("pets",)), 0, min_items=1)
        mapping, length = calls[0]
        builder.reconcile_array(pets, mapping, length)

        assert len(pets.children) == 2
        assert pets.children[0] is second
        assert second.path == Path(("pets", 0))
        assert second.find(Path(("pets", 0, "name"))) is not None
        assert pets.payload.can_append

    def test_new_slot_is_built(self) -> None:
        schema = {"type": "object", "properties": {"tags": {"type": "array", "items": {"type": "string"}}}}
        tree, store, builder = _build(schema, {"tags": ["a"]})
        tags = tree.find(Path(("tags",)))
        first = tags.children[0]
        store.insert_at(Path(("tags",)), 0, "z")
        builder.reconcile_array(tags, {0: 1}, 2)
        assert tags.children[1] is first
        assert first.path == Path(("tags", 1))
        assert tags.children[0].path == Path(("tags", 0))

    def test_remap_selections(self) -> None:
        builder = TreeBuilder(SchemaNode(), DataStore())
        builder.selections = {("items", 0, "c"): 1, ("items", 2, "c"): 1, ("other",): 1}
        builder.remap_selections(Path(("items",)), {0: None, 1: 0, 2: 1})
        assert builder.selections == {("items", 1, "c"): 1, ("other",): 1}
