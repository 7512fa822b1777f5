"""
UI Schema element model.

A UI Schema is a JSONForms-style tree of layout elements (``VerticalLayout``,
``HorizontalLayout``, ``Group``, ``Categorization``, ``Category``) and
``Control`` leaves that point into the data schema via ``scope``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from dazzle_forms.core.errors import ErrorContext, SchemaParseError
from dazzle_forms.core.paths import Path, as_path
from dazzle_forms.core.schema import parse_json_document
from dazzle_forms.specs.rule import Rule, check_path

LAYOUT_TYPES = frozenset({"VerticalLayout", "HorizontalLayout"})
TABLE_RENDERER = "Table"
LIST_DETAIL_RENDERER = "ListWithDetail"


class UiElement(BaseModel):
    """
    One UI Schema element.

    Unknown keys are kept so custom renderer testers can inspect them.

    Example:
        UiElement(type="Control", scope="#/properties/name", label="Full name")
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    type: str = Field(description="Element type (Control, VerticalLayout, Group, ...)")
    scope: str | None = Field(default=None, description="Schema pointer or human path")
    label: str | bool | None = Field(default=None, description="Label text, or false to hide")
    elements: list[UiElement] = Field(default_factory=list)
    rule: Rule | None = None
    options: dict[str, Any] = Field(default_factory=dict)
    renderer: str | None = Field(default=None, description="Named renderer request")
    detail: UiElement | None = Field(default=None, description="List-with-detail pane layout")

    @field_validator("scope")
    @classmethod
    def _check_scope(cls, value: str | None) -> str | None:
        return check_path(value)

    @classmethod
    def from_raw(cls, raw: Any) -> UiElement:
        """
        Build an element tree from a dict or JSON text.

        Raises:
            SchemaParseError: If the input is not a usable UI Schema
        """
        if isinstance(raw, (str, bytes)):
            raw = parse_json_document(raw, "ui schema")
        if not isinstance(raw, dict):
            raise SchemaParseError(
                f"ui schema must be a JSON object, got {type(raw).__name__}",
                ErrorContext(source="ui schema"),
            )
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise SchemaParseError(
                f"Invalid ui schema: {e}", ErrorContext(source="ui schema")
            ) from e

    @property
    def scope_path(self) -> Path:
        return as_path(self.scope)

    @property
    def requested_renderer(self) -> str | None:
        """Renderer name from ``renderer`` or ``options.renderer``."""
        if self.renderer:
            return self.renderer
        value = self.options.get("renderer")
        return value if isinstance(value, str) else None

    @property
    def is_table(self) -> bool:
        return self.type == TABLE_RENDERER or self.requested_renderer == TABLE_RENDERER

    @property
    def is_list_detail(self) -> bool:
        return (
            self.type == LIST_DETAIL_RENDERER
            or self.requested_renderer == LIST_DETAIL_RENDERER
        )

    @property
    def custom_renderer_name(self) -> str | None:
        """Requested renderer name other than the built-in table/list-detail ones."""
        name = self.requested_renderer
        if name in (TABLE_RENDERER, LIST_DETAIL_RENDERER):
            return None
        return name


UiElement.model_rebuild()
