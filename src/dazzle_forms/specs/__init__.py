"""
Form specification types.

This module exports the control descriptor, rule and UI Schema types.
"""

from dazzle_forms.specs.control import (
    ARRAY_KINDS,
    ArrayPayload,
    CategoriesPayload,
    ChoiceOption,
    CompositionPayload,
    ControlDescriptor,
    ControlKind,
    CustomPayload,
    InputFlavor,
    ItemAffordances,
    LeafPayload,
    PlaceholderPayload,
)
from dazzle_forms.specs.rule import ConstSchema, Rule, RuleCondition, RuleEffect
from dazzle_forms.specs.ui_schema import (
    LAYOUT_TYPES,
    LIST_DETAIL_RENDERER,
    TABLE_RENDERER,
    UiElement,
)

__all__ = [
    # Descriptor types
    "ARRAY_KINDS",
    "ArrayPayload",
    "CategoriesPayload",
    "ChoiceOption",
    "CompositionPayload",
    "ControlDescriptor",
    "ControlKind",
    "CustomPayload",
    "InputFlavor",
    "ItemAffordances",
    "LeafPayload",
    "PlaceholderPayload",
    # Rule types
    "ConstSchema",
    "Rule",
    "RuleCondition",
    "RuleEffect",
    # UI Schema types
    "LAYOUT_TYPES",
    "LIST_DETAIL_RENDERER",
    "TABLE_RENDERER",
    "UiElement",
]
