"""
Form configuration.

Options are fixed at construction; live validation and the locale can be
changed later through the form's setters.

The DAZZLE_FORMS_LOCALE environment variable sets the default message
locale for new forms:

    DAZZLE_FORMS_LOCALE=de-DE  ->  "de"
    (unset)                    ->  "en"

Usage:
    from dazzle_forms.config import FormOptions

    options = FormOptions(live_validate=True)
    form = Form(options)
"""

from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dazzle_forms.runtime.messages import DEFAULT_LOCALE, normalize_locale

# Environment variable name
LOCALE_ENV_VAR = "DAZZLE_FORMS_LOCALE"


def get_default_locale() -> str:
    """Get the default message locale from DAZZLE_FORMS_LOCALE.

    Returns:
        Language code such as "de"; "en" when the variable is unset or empty.

    Examples:
        >>> import os
        >>> os.environ["DAZZLE_FORMS_LOCALE"] = "fr_CA"
        >>> get_default_locale()
        'fr'
    """
    value = os.environ.get(LOCALE_ENV_VAR, "").strip()
    if not value:
        return DEFAULT_LOCALE
    return normalize_locale(value)


class FormOptions(BaseModel):
    """
    Construction options for a form.

    Example:
        FormOptions(live_validate=True, locale="es", renderers=[star_rating])
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    live_validate: bool = Field(default=False, description="Validate after every edit")
    locale: str = Field(default_factory=get_default_locale, description="Message locale")
    renderers: list[Any] = Field(
        default_factory=list, description="Renderer definitions local to this form"
    )

    @field_validator("locale", mode="before")
    @classmethod
    def _normalize(cls, v: Any) -> Any:
        return normalize_locale(v) if isinstance(v, str) or v is None else v
