"""
Error types for path handling, data binding and schema loading.

Validation outcomes are deliberately not part of this hierarchy: a failed
``validate()`` is a normal result (see ``dazzle_forms.runtime.validation``).
"""

from __future__ import annotations

from dataclasses import dataclass


class FormError(Exception):
    """Base exception for all dazzle-forms errors."""

    def __init__(self, message: str, context: ErrorContext | None = None):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        if self.context:
            return f"{self.context.format()}\n{self.message}"
        return self.message


class MalformedPathError(FormError):
    """
    Raised when a path string cannot be tokenized or serialized.

    Examples:
    - Unterminated index bracket (``items[0``)
    - Non-integer or negative index (``items[x]``, ``items[-1]``)
    - Characters outside the identifier-safe set (``a b``)
    """

    pass


class PathTypeConflictError(FormError):
    """
    Raised when a write meets a container of the wrong kind.

    Examples:
    - Index token applied to a mapping
    - Name token applied to a sequence
    - Descending into a scalar
    """

    pass


class SchemaParseError(FormError):
    """
    Raised when a caller-supplied schema or UI schema cannot be used.

    Examples:
    - Text that is not valid JSON
    - A JSON document that is not an object
    - Keyword values of the wrong shape (``properties`` as a list)
    """

    pass


class UnsupportedElementError(FormError):
    """
    Raised by the builder for an unknown UI Schema element type.

    The builder catches this and substitutes a placeholder descriptor so
    one unknown element never fails the whole form.
    """

    pass


@dataclass
class ErrorContext:
    """
    Location information for an error.

    Attributes:
        source: The offending input (path string, schema label, element type)
        position: Optional 0-indexed character position within ``source``
    """

    source: str
    position: int | None = None

    def format(self) -> str:
        """
        Format the context as a human-readable string.

        Returns:
            ``source`` alone, or ``source`` with a caret under ``position``
        """
        if self.position is None:
            return repr(self.source)
        return f"{self.source}\n{' ' * self.position}^"


def make_path_error(message: str, source: str, position: int | None = None) -> MalformedPathError:
    """
    Helper to create a MalformedPathError with context.

    Args:
        message: Error description
        source: The path string being processed
        position: Character position of the problem

    Returns:
        MalformedPathError with context attached
    """
    return MalformedPathError(message, ErrorContext(source=source, position=position))
