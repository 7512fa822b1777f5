"""
Validation adapter.

The form never validates by itself. It compiles the loaded schema through a
:class:`Validator` collaborator and maps the collaborator's raw errors to
path-addressed, localized :class:`FieldError` records.

The default collaborator is :class:`JsonSchemaValidator`, backed by the
``jsonschema`` library.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any, Protocol

from jsonschema import Draft202012Validator
from jsonschema.validators import validator_for

from dazzle_forms.core.paths import (
    Path,
    PathToken,
    instance_path_to_path,
    path_to_instance_pointer,
)
from dazzle_forms.runtime.messages import localize
from dazzle_forms.specs.control import ControlDescriptor

logger = logging.getLogger(__name__)


# =============================================================================
# Collaborator protocol
# =============================================================================


@dataclass(frozen=True)
class RawError:
    """One failure as reported by a validator collaborator."""

    instance_pointer: str
    keyword: str
    params: dict[str, Any] = field(default_factory=dict)
    message: str = ""


@dataclass(frozen=True)
class ValidatorOutcome:
    valid: bool
    errors: list[RawError] = field(default_factory=list)


CompiledValidator = Callable[[Any], ValidatorOutcome]


class Validator(Protocol):
    """Compiles a JSON Schema into a reusable check."""

    def compile(self, schema: dict[str, Any]) -> CompiledValidator: ...


# =============================================================================
# jsonschema adapter
# =============================================================================


def _nan_pointers(value: Any, prefix: tuple[PathToken, ...] = ()) -> Iterator[str]:
    """Instance pointers of every NaN in ``value``."""
    if isinstance(value, float) and math.isnan(value):
        yield path_to_instance_pointer(prefix)
    elif isinstance(value, dict):
        for key, sub in value.items():
            yield from _nan_pointers(sub, (*prefix, str(key)))
    elif isinstance(value, list):
        for idx, sub in enumerate(value):
            yield from _nan_pointers(sub, (*prefix, idx))


class JsonSchemaValidator:
    """
    Validator collaborator backed by ``jsonschema``.

    The draft is picked from ``$schema`` (2020-12 when absent) and formats
    are checked with the draft's ``FORMAT_CHECKER``.

    Example:
        check = JsonSchemaValidator().compile({"type": "integer"})
        check("x").valid  # False
    """

    def compile(self, schema: dict[str, Any]) -> CompiledValidator:
        """
        Compile ``schema``.

        Raises:
            jsonschema.exceptions.SchemaError: If the schema itself is invalid
        """
        cls = validator_for(schema, default=Draft202012Validator)
        cls.check_schema(schema)
        validator = cls(schema, format_checker=cls.FORMAT_CHECKER)

        def run(data: Any) -> ValidatorOutcome:
            errors = self._collect(validator, data)
            return ValidatorOutcome(valid=not errors, errors=errors)

        return run

    @staticmethod
    def _collect(validator: Any, data: Any) -> list[RawError]:
        errors: list[RawError] = []
        # Successive required errors at one location name successive missing keys
        pending_missing: dict[tuple[str, int], list[str]] = {}

        for err in validator.iter_errors(data):
            pointer = path_to_instance_pointer(tuple(err.absolute_path))
            keyword = str(err.validator)
            params: dict[str, Any] = {keyword: err.validator_value}

            if keyword == "required":
                key = (pointer, id(err.validator_value))
                if key not in pending_missing:
                    present = err.instance if isinstance(err.instance, dict) else {}
                    pending_missing[key] = [
                        name for name in err.validator_value if name not in present
                    ]
                missing = pending_missing[key]
                if missing:
                    params["missingProperty"] = missing.pop(0)

            errors.append(RawError(pointer, keyword, params, err.message))

        # NaN passes "number" checks; coercion failures must still surface
        typed = {e.instance_pointer for e in errors if e.keyword == "type"}
        for pointer in _nan_pointers(data):
            if pointer not in typed:
                errors.append(
                    RawError(pointer, "type", {"type": "number"}, "NaN is not a valid number")
                )
        return errors


# =============================================================================
# Mapping to field errors
# =============================================================================


@dataclass(frozen=True)
class FieldError:
    """A validation failure at a data path, with a localized message."""

    path: Path
    keyword: str
    params: dict[str, Any]
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "keyword": self.keyword,
            "params": self.params,
            "message": self.message,
        }


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of ``Form.validate()``."""

    valid: bool
    errors: list[FieldError] = field(default_factory=list)

    def errors_at(self, path: tuple[PathToken, ...]) -> list[FieldError]:
        return [e for e in self.errors if tuple(e.path) == tuple(path)]

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "errors": [e.to_dict() for e in self.errors]}


def to_field_error(raw: RawError, locale: str | None) -> FieldError:
    """Map a raw error to a path, appending ``missingProperty`` for ``required``."""
    path = instance_path_to_path(raw.instance_pointer)
    missing = raw.params.get("missingProperty")
    if raw.keyword == "required" and missing:
        path = path.child(str(missing))
    return FieldError(
        path=path,
        keyword=raw.keyword,
        params=dict(raw.params),
        message=localize(raw.keyword, raw.message, locale),
    )


def to_validation_result(outcome: ValidatorOutcome, locale: str | None) -> ValidationResult:
    errors = [to_field_error(raw, locale) for raw in outcome.errors]
    return ValidationResult(valid=outcome.valid and not errors, errors=errors)


def attach_errors(tree: ControlDescriptor | None, errors: list[FieldError]) -> int:
    """
    Attach error messages to descriptors.

    Each error goes to the descriptor bound at its path, or to the nearest
    bound ancestor when there is none (e.g. a missing required field with
    no control of its own).

    Returns:
        Number of errors attached
    """
    if tree is None:
        return 0
    by_path: dict[tuple[PathToken, ...], ControlDescriptor] = {}
    for node in tree.walk():
        node.errors = []
        if node.path is not None and tuple(node.path) not in by_path:
            by_path[tuple(node.path)] = node

    attached = 0
    for error in errors:
        path = tuple(error.path)
        while True:
            target = by_path.get(path)
            if target is not None:
                target.errors.append(error.message)
                attached += 1
                break
            if not path:
                tree.errors.append(error.message)
                attached += 1
                break
            path = path[:-1]
    return attached


__all__ = [
    "CompiledValidator",
    "FieldError",
    "JsonSchemaValidator",
    "RawError",
    "ValidationResult",
    "Validator",
    "ValidatorOutcome",
    "attach_errors",
    "to_field_error",
    "to_validation_result",
]
