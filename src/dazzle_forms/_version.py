"""Version of the dazzle-forms distribution."""

import tomllib
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _metadata_version
from pathlib import Path

DISTRIBUTION = "dazzle-forms"

_PYPROJECT = Path(__file__).resolve().parents[2] / "pyproject.toml"


def _source_tree_version() -> str | None:
    if not _PYPROJECT.is_file():
        return None
    with _PYPROJECT.open("rb") as fh:
        project = tomllib.load(fh).get("project", {})
    if project.get("name") != DISTRIBUTION:
        return None
    return project.get("version")


def get_version() -> str:
    """Source checkouts read pyproject.toml; installs read package metadata."""
    found = _source_tree_version()
    if found:
        return found
    try:
        return _metadata_version(DISTRIBUTION)
    except PackageNotFoundError:
        return "0.0.0"


__version__ = get_version()
