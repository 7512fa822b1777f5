"""
Custom renderer registration and selection.
"""

from dazzle_forms.renderers.registry import (
    GLOBAL_REGISTRY,
    RendererContext,
    RendererDefinition,
    RendererRegistry,
    RendererScore,
    clear_renderers,
    register_renderer,
)

__all__ = [
    "GLOBAL_REGISTRY",
    "RendererContext",
    "RendererDefinition",
    "RendererRegistry",
    "RendererScore",
    "clear_renderers",
    "register_renderer",
]
