"""
Control tree construction from a data schema and optional UI Schema.
"""

from dazzle_forms.builder.leaf import build_leaf_payload, choice_options, leaf_flavor
from dazzle_forms.builder.tree import (
    ContextFactory,
    TreeBuilder,
    item_entry_label,
    refresh_affordances,
)

__all__ = [
    "ContextFactory",
    "TreeBuilder",
    "build_leaf_payload",
    "choice_options",
    "item_entry_label",
    "leaf_flavor",
    "refresh_affordances",
]
