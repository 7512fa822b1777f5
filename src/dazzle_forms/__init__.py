"""
dazzle-forms: schema-driven form control trees.

Builds an abstract control tree from a JSON Schema and an optional UI
Schema, binds it to a single data store, and keeps data, tree and
rule-driven presentation state consistent under edits.

Usage:
    from dazzle_forms import Form

    form = Form()
    form.load({"type": "object", "properties": {"name": {"type": "string"}}})
    form.handle_input("name", "Ada")
    form.get_data()  # {"name": "Ada"}
"""

from dazzle_forms._version import __version__
from dazzle_forms.config import FormOptions, get_default_locale
from dazzle_forms.core.errors import (
    FormError,
    MalformedPathError,
    PathTypeConflictError,
    SchemaParseError,
    UnsupportedElementError,
)
from dazzle_forms.core.paths import Path
from dazzle_forms.events.bus import FormEvent, FormEventName
from dazzle_forms.renderers.registry import (
    GLOBAL_REGISTRY,
    RendererContext,
    RendererDefinition,
    RendererRegistry,
    clear_renderers,
    register_renderer,
)
from dazzle_forms.runtime.form import Form
from dazzle_forms.runtime.validation import FieldError, ValidationResult
from dazzle_forms.specs.control import ControlDescriptor, ControlKind
from dazzle_forms.specs.rule import Rule, RuleEffect

__all__ = [
    "ControlDescriptor",
    "ControlKind",
    "FieldError",
    "Form",
    "FormError",
    "FormEvent",
    "FormEventName",
    "FormOptions",
    "GLOBAL_REGISTRY",
    "MalformedPathError",
    "Path",
    "PathTypeConflictError",
    "RendererContext",
    "RendererDefinition",
    "RendererRegistry",
    "Rule",
    "RuleEffect",
    "SchemaParseError",
    "UnsupportedElementError",
    "ValidationResult",
    "__version__",
    "clear_renderers",
    "get_default_locale",
    "register_renderer",
]
