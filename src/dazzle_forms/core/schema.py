"""
Schema resolution for form building.

Wraps raw JSON Schema dicts in frozen :class:`SchemaNode` models and
resolves the effective sub-schema at a data path. ``allOf`` is always
merged before a node is inspected; ``oneOf``/``anyOf`` branches are exposed
as ordered candidate lists and never chosen here.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from dazzle_forms.core.errors import ErrorContext, SchemaParseError
from dazzle_forms.core.paths import Path, PathToken


def _normalise_subschema(value: Any) -> Any:
    # Boolean schemas: ``true`` accepts anything; ``false`` is kept permissive
    # for building purposes and left to the validator.
    if isinstance(value, bool):
        return {}
    return value


class SchemaNode(BaseModel):
    """
    Immutable view of a JSON Schema subtree.

    Unknown keywords are kept as extras so that renderer testers and the
    validator can still see them.

    Example:
        node = SchemaNode.from_raw({"type": "object", "properties": {"name": {"type": "string"}}})
        node.properties["name"].primary_type  # "string"
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    type: str | list[str] | None = Field(default=None, description="Declared JSON type(s)")
    properties: dict[str, SchemaNode] = Field(default_factory=dict)
    items: SchemaNode | list[SchemaNode] | None = Field(default=None)
    required: list[str] = Field(default_factory=list)

    one_of: list[SchemaNode] | None = Field(default=None, alias="oneOf")
    any_of: list[SchemaNode] | None = Field(default=None, alias="anyOf")
    all_of: list[SchemaNode] | None = Field(default=None, alias="allOf")

    # Value constraints
    min_length: int | None = Field(default=None, alias="minLength")
    max_length: int | None = Field(default=None, alias="maxLength")
    minimum: int | float | None = None
    maximum: int | float | None = None
    # draft-4 used booleans here
    exclusive_minimum: bool | int | float | None = Field(default=None, alias="exclusiveMinimum")
    exclusive_maximum: bool | int | float | None = Field(default=None, alias="exclusiveMaximum")
    multiple_of: int | float | None = Field(default=None, alias="multipleOf")
    pattern: str | None = None
    min_items: int | None = Field(default=None, alias="minItems")
    max_items: int | None = Field(default=None, alias="maxItems")
    enum: list[Any] | None = None
    const: Any = None

    # Presentation hints
    title: str | None = None
    description: str | None = None
    default: Any = None
    format: str | None = None
    widget: str | None = Field(default=None, alias="x-ui-widget")
    placeholder: str | None = None
    read_only: bool = Field(default=False, alias="readOnly")
    enum_names: list[Any] | None = Field(default=None, alias="enumNames")
    content_media_type: str | None = Field(default=None, alias="contentMediaType")
    content_encoding: str | None = Field(default=None, alias="contentEncoding")

    @field_validator("properties", mode="before")
    @classmethod
    def _properties_mapping(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {name: _normalise_subschema(sub) for name, sub in v.items()}
        return v

    @field_validator("items", mode="before")
    @classmethod
    def _items_schema(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [_normalise_subschema(sub) for sub in v]
        return _normalise_subschema(v)

    @field_validator("one_of", "any_of", "all_of", mode="before")
    @classmethod
    def _composition_list(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [_normalise_subschema(sub) for sub in v]
        return v

    @field_validator("required", mode="before")
    @classmethod
    def _required_list(cls, v: Any) -> Any:
        # Draft-3 style ``required: true`` on a property carries no names
        if isinstance(v, bool):
            return []
        if isinstance(v, list):
            return list(dict.fromkeys(v))
        return v

    @classmethod
    def from_raw(cls, raw: Any, label: str = "schema") -> SchemaNode:
        """
        Build a node from a raw JSON Schema value.

        Args:
            raw: Dict, boolean schema, or JSON text
            label: Name used in error messages ("schema", "ui schema", ...)

        Raises:
            SchemaParseError: If the input is not a usable schema object
        """
        if isinstance(raw, (str, bytes)):
            raw = parse_json_document(raw, label)
        raw = _normalise_subschema(raw)
        if not isinstance(raw, dict):
            raise SchemaParseError(
                f"{label} must be a JSON object, got {type(raw).__name__}",
                ErrorContext(source=label),
            )
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise SchemaParseError(f"Invalid {label}: {e}", ErrorContext(source=label)) from e

    @property
    def has_const(self) -> bool:
        return "const" in self.model_fields_set

    @property
    def has_default(self) -> bool:
        return "default" in self.model_fields_set and self.default is not None

    @property
    def primary_type(self) -> str | None:
        """First non-null declared type."""
        if isinstance(self.type, list):
            for t in self.type:
                if t != "null":
                    return t
            return "null" if self.type else None
        return self.type

    @property
    def is_object_like(self) -> bool:
        """Object-typed, or untyped with declared properties."""
        if self.primary_type == "object":
            return True
        return self.type is None and bool(self.properties)

    @property
    def is_array(self) -> bool:
        return self.primary_type == "array"

    @property
    def item_schema(self) -> SchemaNode:
        """Schema of array items (first entry for tuple-style ``items``)."""
        if isinstance(self.items, list):
            return self.items[0] if self.items else EMPTY_SCHEMA
        return self.items if self.items is not None else EMPTY_SCHEMA

    @property
    def option_labels(self) -> list[Any] | None:
        """Enum labels from ``enumNames`` or ``x-enumNames``."""
        if self.enum_names is not None:
            return self.enum_names
        extra = self.model_extra or {}
        labels = extra.get("x-enumNames")
        return labels if isinstance(labels, list) else None

    def keyword(self, name: str, default: Any = None) -> Any:
        """Look up an extension keyword that has no dedicated field."""
        return (self.model_extra or {}).get(name, default)

    def to_raw(self) -> dict[str, Any]:
        """Dump back to a JSON Schema dict (only keywords that were set)."""
        return self.model_dump(by_alias=True, exclude_unset=True)


SchemaNode.model_rebuild()

EMPTY_SCHEMA = SchemaNode()


def parse_json_document(text: str | bytes, label: str = "schema") -> Any:
    """
    Parse JSON text supplied by a caller.

    Raises:
        SchemaParseError: If the text is not valid JSON
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise SchemaParseError(
            f"Invalid {label} JSON: {e.msg}", ErrorContext(source=label, position=e.pos)
        ) from e


# =============================================================================
# Composition
# =============================================================================


def merge_all_of(node: SchemaNode) -> SchemaNode:
    """
    Merge ``allOf`` members into the node.

    Only object-like members contribute. Their ``properties`` are unioned
    into the accumulator with later members overwriting same-named earlier
    ones, and their ``required`` lists are unioned in order. A node without
    ``allOf`` is returned as-is, which makes the merge idempotent.
    """
    if not node.all_of:
        return node

    properties = dict(node.properties)
    required = list(node.required)
    contributed = False

    for member in node.all_of:
        member = merge_all_of(member)
        if not member.is_object_like:
            continue
        contributed = True
        properties.update(member.properties)
        for name in member.required:
            if name not in required:
                required.append(name)

    update: dict[str, Any] = {"all_of": None}
    if contributed:
        update.update(type="object", properties=properties, required=required)

    merged = node.model_copy(update=update)
    # model_copy keeps all_of in the set fields; drop it so to_raw() is clean
    merged.__pydantic_fields_set__.discard("all_of")
    return merged


def composition_keyword(node: SchemaNode) -> str | None:
    """Return ``"oneOf"`` or ``"anyOf"`` when the node offers branches."""
    if node.one_of is not None:
        return "oneOf"
    if node.any_of is not None:
        return "anyOf"
    return None


def composition_branches(node: SchemaNode) -> list[SchemaNode]:
    """Ordered candidate branches (``oneOf`` preferred over ``anyOf``)."""
    if node.one_of is not None:
        return list(node.one_of)
    if node.any_of is not None:
        return list(node.any_of)
    return []


def branch_label(node: SchemaNode, keyword: str, index: int) -> str:
    """Selector label for a branch: its title, else ``oneOf #1`` style."""
    return node.title or f"{keyword} #{index + 1}"


# =============================================================================
# Resolution
# =============================================================================


def _descend(node: SchemaNode, token: PathToken) -> SchemaNode:
    node = merge_all_of(node)
    if isinstance(token, int):
        return node.item_schema
    return node.properties.get(token, EMPTY_SCHEMA)


def resolve(root: SchemaNode, path: tuple[PathToken, ...]) -> SchemaNode:
    """
    Resolve the effective schema at a data path.

    Unknown properties resolve to the empty permissive schema; this is the
    "unknown path is untyped" policy, so coercion falls back to passthrough.

    Example:
        >>> resolve(root, Path(("pets", 0, "name"))).primary_type
        'string'
    """
    node = root
    for token in path:
        node = _descend(node, token)
    return merge_all_of(node)


def is_required(root: SchemaNode, path: tuple[PathToken, ...]) -> bool:
    """Check whether the last name token is listed in its parent's ``required``."""
    if not path:
        return False
    last = path[-1]
    if isinstance(last, int):
        return False
    parent = resolve(root, Path(tuple(path[:-1])))
    return last in parent.required


def apply_ui_options(node: SchemaNode, options: dict[str, Any] | None) -> SchemaNode:
    """
    Overlay UI Schema control options onto a schema node.

    Supported options: ``widget`` (stored as ``x-ui-widget``),
    ``placeholder`` and ``description``.
    """
    if not options:
        return node
    update: dict[str, Any] = {}
    if options.get("widget"):
        update["widget"] = options["widget"]
    if options.get("placeholder"):
        update["placeholder"] = options["placeholder"]
    if options.get("description"):
        update["description"] = options["description"]
    if not update:
        return node
    return node.model_copy(update=update)


def empty_value_for(node: SchemaNode) -> Any:
    """Empty-shaped value used for new array items."""
    node = merge_all_of(node)
    if node.is_object_like:
        return {}
    if node.is_array:
        return []
    return None


__all__ = [
    "EMPTY_SCHEMA",
    "SchemaNode",
    "apply_ui_options",
    "branch_label",
    "composition_branches",
    "composition_keyword",
    "empty_value_for",
    "is_required",
    "merge_all_of",
    "parse_json_document",
    "resolve",
]
