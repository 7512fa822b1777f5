"""
Renderer registry.

Custom renderers are ordered ``{name?, tester?, render}`` records. Selection
is deterministic:

1. An explicit renderer name on the UI element wins outright
2. Otherwise every tester is scored against a :class:`RendererContext`
3. The strictly highest positive score wins; ties go to the earliest
   registration
4. A non-positive best score falls back to the built-in control kind

Selection never looks at the rendered view; ``ViewT`` is opaque here.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from dazzle_forms.core.paths import Path
from dazzle_forms.core.schema import EMPTY_SCHEMA, SchemaNode

logger = logging.getLogger(__name__)

ViewT = TypeVar("ViewT")


def _noop(*_args: Any, **_kwargs: Any) -> Any:
    return None


@dataclass
class RendererContext:
    """
    Everything a tester or render callable may inspect.

    The callables are bound to the owning form: ``create_default`` builds
    the built-in descriptor for this location, ``emit`` publishes an event,
    ``get_value``/``set_value`` read and write the data store, and
    ``validate`` runs form validation.
    """

    path: Path
    schema: SchemaNode = EMPTY_SCHEMA
    root_schema: SchemaNode = EMPTY_SCHEMA
    element: Any = None
    ui_schema: Any = None
    label: str | None = None
    required: bool = False
    form: Any = None
    create_default: Callable[[], Any] = _noop
    emit: Callable[..., Any] = _noop
    get_value: Callable[..., Any] = _noop
    set_value: Callable[..., Any] = _noop
    validate: Callable[[], Any] = _noop


@dataclass(frozen=True)
class RendererDefinition(Generic[ViewT]):
    """
    A registered custom renderer.

    Example:
        RendererDefinition(
            name="star-rating",
            tester=lambda ctx: 5 if ctx.schema.format == "rating" else -1,
            render=lambda ctx: StarWidget(ctx.path),
        )
    """

    render: Callable[[RendererContext], ViewT]
    name: str | None = None
    tester: Callable[[RendererContext], float] | None = None

    @property
    def display_name(self) -> str:
        return self.name or getattr(self.render, "__name__", "<anonymous>")


@dataclass
class RendererScore:
    """Score for a renderer candidate."""

    definition: RendererDefinition[Any]
    score: float
    reason: str


@dataclass
class RendererRegistry:
    """
    Ordered list of renderer definitions.

    A form clones the registry it is given, so registrations made on the
    shared registry after construction do not affect existing forms.
    """

    definitions: list[RendererDefinition[Any]] = field(default_factory=list)

    def register(self, definition: RendererDefinition[Any]) -> None:
        self.definitions.append(definition)
        logger.debug("Registered renderer %s", definition.display_name)

    def unregister(self, name: str) -> bool:
        """Remove every definition registered under ``name``."""
        before = len(self.definitions)
        self.definitions = [d for d in self.definitions if d.name != name]
        return len(self.definitions) != before

    def clear(self) -> None:
        self.definitions.clear()

    def clone(self) -> RendererRegistry:
        return RendererRegistry(definitions=list(self.definitions))

    def get(self, name: str) -> RendererDefinition[Any] | None:
        for definition in self.definitions:
            if definition.name == name:
                return definition
        return None

    def __len__(self) -> int:
        return len(self.definitions)

    def score(self, context: RendererContext) -> list[RendererScore]:
        """
        Score every definition with a tester, in registration order.

        A tester that raises, or returns a non-finite number, scores ``-inf``
        and is logged.
        """
        scores: list[RendererScore] = []
        for definition in self.definitions:
            if definition.tester is None:
                continue
            try:
                value = float(definition.tester(context))
            except Exception:
                logger.exception("Renderer tester %s failed", definition.display_name)
                scores.append(RendererScore(definition, float("-inf"), "tester raised"))
                continue
            if not math.isfinite(value):
                logger.warning(
                    "Renderer tester %s returned non-finite score %r",
                    definition.display_name,
                    value,
                )
                reason = f"tester returned {value!r}"
                scores.append(RendererScore(definition, float("-inf"), reason))
                continue
            scores.append(RendererScore(definition, value, f"tester returned {value:g}"))
        return scores

    def select(
        self, context: RendererContext, requested: str | None = None
    ) -> RendererDefinition[Any] | None:
        """
        Pick the renderer for a location.

        Args:
            context: Renderer context for the location
            requested: Renderer name requested by the UI element

        Returns:
            The winning definition, or None to use the built-in kind
        """
        if requested:
            named = self.get(requested)
            if named is not None:
                return named
            logger.debug("Requested renderer %s is not registered", requested)

        best: RendererScore | None = None
        for candidate in self.score(context):
            # Strictly greater keeps the earliest registration on ties
            if best is None or candidate.score > best.score:
                best = candidate
        if best is None or not best.score > 0:
            return None
        return best.definition


GLOBAL_REGISTRY = RendererRegistry()


def register_renderer(definition: RendererDefinition[Any]) -> None:
    """Register a renderer on the shared registry."""
    GLOBAL_REGISTRY.register(definition)


def clear_renderers() -> None:
    """Remove every renderer from the shared registry."""
    GLOBAL_REGISTRY.clear()


__all__ = [
    "GLOBAL_REGISTRY",
    "RendererContext",
    "RendererDefinition",
    "RendererRegistry",
    "RendererScore",
    "clear_renderers",
    "register_renderer",
]
