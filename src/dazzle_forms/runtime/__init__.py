"""
Form runtime: validation adapter and localized messages.

The :class:`~dazzle_forms.runtime.form.Form` class is exported from the
top-level package.
"""

from dazzle_forms.runtime.messages import LOCALE_MESSAGES, localize, normalize_locale
from dazzle_forms.runtime.validation import (
    FieldError,
    JsonSchemaValidator,
    RawError,
    ValidationResult,
    Validator,
    ValidatorOutcome,
)

__all__ = [
    "FieldError",
    "JsonSchemaValidator",
    "LOCALE_MESSAGES",
    "RawError",
    "ValidationResult",
    "Validator",
    "ValidatorOutcome",
    "localize",
    "normalize_locale",
]
