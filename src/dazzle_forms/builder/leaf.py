"""
Leaf control derivation.

Maps a scalar schema to a presentation flavor, choice options and the
constraints a rendering backend should carry through unchanged.
"""

from __future__ import annotations

from typing import Any

from dazzle_forms.core.schema import SchemaNode
from dazzle_forms.specs.control import ChoiceOption, InputFlavor, LeafPayload

EMPTY_OPTION_LABEL = "-- select --"

_FORMAT_FLAVORS: dict[str, InputFlavor] = {
    "email": InputFlavor.EMAIL,
    "uri": InputFlavor.URL,
    "url": InputFlavor.URL,
    "date": InputFlavor.DATE,
    "date-time": InputFlavor.DATETIME,
    "time": InputFlavor.TIME,
    "textarea": InputFlavor.TEXTAREA,
    "password": InputFlavor.PASSWORD,
}

_CONSTRAINT_FIELDS = (
    "min_length",
    "max_length",
    "minimum",
    "maximum",
    "exclusive_minimum",
    "exclusive_maximum",
    "multiple_of",
    "pattern",
)


def display_value(value: Any) -> str:
    """Display form of an enum value (``true``/``false``/``null`` as in JSON)."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def choice_options(schema: SchemaNode, required: bool) -> list[ChoiceOption]:
    """
    Options for an ``enum`` leaf.

    Labels come from ``enumNames``/``x-enumNames`` aligned by index, else
    the value's display form. An empty option leads the list when the field
    is optional and has no default.
    """
    labels = schema.option_labels or []
    options: list[ChoiceOption] = []
    if not required and not schema.has_default:
        options.append(ChoiceOption(value=None, label=EMPTY_OPTION_LABEL))
    for idx, value in enumerate(schema.enum or []):
        label = labels[idx] if idx < len(labels) and labels[idx] else None
        options.append(
            ChoiceOption(
                value=value,
                label=str(label) if label is not None else display_value(value),
            )
        )
    return options


def leaf_flavor(schema: SchemaNode) -> InputFlavor:
    """Derive the presentation flavor for a scalar schema."""
    if schema.enum is not None:
        return InputFlavor.CHOICE

    widget = schema.widget
    kind = schema.primary_type

    if kind in ("number", "integer"):
        if widget == "range":
            return InputFlavor.RANGE
        return InputFlavor.INTEGER if kind == "integer" else InputFlavor.NUMBER

    if kind == "boolean":
        return InputFlavor.CHECKBOX

    if kind == "string":
        if widget == "textarea" or schema.format == "textarea":
            return InputFlavor.TEXTAREA
        if (
            widget == "file"
            or schema.content_encoding == "base64"
            or schema.content_media_type is not None
        ):
            return InputFlavor.FILE
        if widget == "password":
            return InputFlavor.PASSWORD
        if schema.format:
            return _FORMAT_FLAVORS.get(schema.format, InputFlavor.TEXT)

    return InputFlavor.TEXT


def leaf_constraints(schema: SchemaNode) -> dict[str, Any]:
    """Constraint keywords present on the schema, keyed by JSON Schema name."""
    constraints: dict[str, Any] = {}
    for name in _CONSTRAINT_FIELDS:
        value = getattr(schema, name)
        if value is not None:
            alias = SchemaNode.model_fields[name].alias or name
            constraints[alias] = value
    if schema.content_media_type is not None:
        constraints["contentMediaType"] = schema.content_media_type
    return constraints


def build_leaf_payload(schema: SchemaNode, required: bool) -> LeafPayload:
    flavor = leaf_flavor(schema)
    return LeafPayload(
        flavor=flavor,
        options=choice_options(schema, required) if flavor == InputFlavor.CHOICE else [],
        constraints=leaf_constraints(schema),
        placeholder=schema.placeholder,
        read_only=schema.read_only,
    )
