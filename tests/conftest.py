"""Shared pytest fixtures for dazzle-forms tests."""

from pathlib import Path
from typing import Any

import pytest

from dazzle_forms import Form, FormOptions
from dazzle_forms.renderers.registry import GLOBAL_REGISTRY


@pytest.fixture(autouse=True)
def clean_global_registry():
    """Keep renderer registrations from leaking between tests."""
    GLOBAL_REGISTRY.clear()
    yield
    GLOBAL_REGISTRY.clear()


@pytest.fixture
def fixtures_dir() -> Path:
    """Return path to fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def person_schema() -> dict[str, Any]:
    """Return a simple person schema with one required field."""
    return {
        "type": "object",
        "required": ["name"],
        "properties": {
            "name": {"type": "string"},
            "age": {"type": "integer", "minimum": 0},
        },
    }


@pytest.fixture
def pets_schema() -> dict[str, Any]:
    """Return a schema with a bounded array of objects."""
    return {
        "type": "object",
        "properties": {
            "owner": {"type": "string", "title": "Owner"},
            "pets": {
                "type": "array",
                "minItems": 1,
                "maxItems": 3,
                "items": {
                    "type": "object",
                    "required": ["name"],
                    "properties": {
                        "name": {"type": "string"},
                        "kind": {"type": "string", "enum": ["dog", "cat"]},
                    },
                },
            },
        },
    }


@pytest.fixture
def contact_schema() -> dict[str, Any]:
    """Return a schema with a oneOf composition."""
    return {
        "type": "object",
        "properties": {
            "contact": {
                "oneOf": [
                    {
                        "title": "Email",
                        "type": "object",
                        "properties": {"email": {"type": "string", "format": "email"}},
                    },
                    {
                        "title": "Phone",
                        "type": "object",
                        "properties": {"phone": {"type": "string"}},
                    },
                ]
            }
        },
    }


@pytest.fixture
def form() -> Form:
    """Return a form with default options."""
    return Form(FormOptions(locale="en"))
