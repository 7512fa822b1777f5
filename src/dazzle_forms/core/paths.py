"""
Path algebra for form data locations.

Converts between three notations for the same location:

- human paths: ``address.lines[0].street``
- schema pointers: ``#/properties/address/properties/lines/items/properties/street``
- validator instance pointers: ``/address/lines/0/street``

Internally a location is a :class:`Path`, an immutable sequence of name
(``str``) and index (``int``) tokens.
"""

from __future__ import annotations

import re

from dazzle_forms.core.errors import MalformedPathError, make_path_error

PathToken = str | int

# Identifier-safe name characters
_NAME_RE = re.compile(r"[A-Za-z0-9_-]+")
_DIGITS_RE = re.compile(r"\d+")


class Path(tuple[PathToken, ...]):
    """
    Immutable token sequence addressing a location in the data value.

    Example:
        >>> p = Path(("lines", 0, "street"))
        >>> str(p)
        'lines[0].street'
        >>> p.parent
        Path('lines[0]')
    """

    __slots__ = ()

    def __new__(cls, tokens: tuple[PathToken, ...] | list[PathToken] = ()) -> Path:
        return super().__new__(cls, tokens)

    def __str__(self) -> str:
        try:
            return serialize(self)
        except MalformedPathError:
            return "/".join(str(t) for t in self)

    def __repr__(self) -> str:
        return f"Path({str(self)!r})"

    def child(self, token: PathToken) -> Path:
        """Return this path extended by one token."""
        return Path((*self, token))

    def join(self, other: tuple[PathToken, ...]) -> Path:
        """Return this path extended by every token of ``other``."""
        return Path((*self, *other))

    @property
    def parent(self) -> Path:
        """Path without its last token (the root is its own parent)."""
        return Path(self[:-1])

    @property
    def last(self) -> PathToken | None:
        """Last token, or None for the root path."""
        return self[-1] if self else None

    @property
    def is_root(self) -> bool:
        return len(self) == 0

    def startswith(self, prefix: tuple[PathToken, ...]) -> bool:
        """Check whether ``prefix`` is a leading token run of this path."""
        return len(prefix) <= len(self) and tuple(self[: len(prefix)]) == tuple(prefix)

    def rebase(self, old_prefix: tuple[PathToken, ...], new_prefix: tuple[PathToken, ...]) -> Path:
        """
        Replace ``old_prefix`` with ``new_prefix``.

        Paths that do not start with ``old_prefix`` are returned unchanged.
        """
        if not self.startswith(old_prefix):
            return self
        return Path((*new_prefix, *self[len(old_prefix) :]))


def _is_index(token: PathToken) -> bool:
    return isinstance(token, int) and not isinstance(token, bool)


def tokenize(path_string: str) -> Path:
    """
    Tokenize a human path string.

    Args:
        path_string: Path such as ``a.b[0].c`` (empty string is the root)

    Returns:
        Path of name and index tokens

    Raises:
        MalformedPathError: On unterminated brackets, non-integer indices
            or characters outside the identifier-safe set
    """
    tokens: list[PathToken] = []
    i = 0
    n = len(path_string)

    while i < n:
        c = path_string[i]

        if c == ".":
            i += 1
            continue

        if c == "[":
            close = path_string.find("]", i)
            if close == -1:
                raise make_path_error("Unterminated index bracket", path_string, i)
            inner = path_string[i + 1 : close]
            if not _DIGITS_RE.fullmatch(inner):
                raise make_path_error(
                    f"Index must be a non-negative integer, got {inner!r}", path_string, i + 1
                )
            tokens.append(int(inner))
            i = close + 1
            continue

        m = _NAME_RE.match(path_string, i)
        if m is None:
            raise make_path_error(f"Unexpected character: {c!r}", path_string, i)
        tokens.append(m.group(0))
        i = m.end()

    return Path(tokens)


def serialize(path: tuple[PathToken, ...]) -> str:
    """
    Serialize a path to its canonical string form.

    Raises:
        MalformedPathError: If a name token is empty or not identifier-safe
    """
    parts: list[str] = []
    for token in path:
        if _is_index(token):
            if token < 0:  # type: ignore[operator]
                raise make_path_error(f"Negative index token: {token}", repr(tuple(path)))
            parts.append(f"[{token}]")
            continue
        name = str(token)
        if not _NAME_RE.fullmatch(name):
            raise make_path_error(f"Name token is not identifier-safe: {name!r}", repr(tuple(path)))
        parts.append(f".{name}" if parts else name)
    return "".join(parts)


def _unescape_pointer_segment(segment: str) -> str:
    return segment.replace("~1", "/").replace("~0", "~")


def _escape_pointer_segment(segment: str) -> str:
    return segment.replace("~", "~0").replace("/", "~1")


def pointer_to_path(pointer: str) -> Path:
    """
    Convert a schema pointer (UI Schema ``scope``) to a path.

    ``properties`` segments are dropped and their following segment becomes
    a name token. ``items`` segments contribute no token: a scope describes
    an item's schema shape, not a specific array element.

    Example:
        >>> pointer_to_path("#/properties/pets/items/properties/name")
        Path('pets.name')
    """
    if not pointer:
        return Path()
    body = pointer[1:] if pointer.startswith("#") else pointer
    segments = [_unescape_pointer_segment(s) for s in body.split("/") if s]

    tokens: list[PathToken] = []
    i = 0
    while i < len(segments):
        segment = segments[i]
        if segment == "properties":
            i += 1
            if i < len(segments):
                tokens.append(segments[i])
        # "items" and any other keyword contribute nothing
        i += 1
    return Path(tokens)


def path_to_pointer(path: tuple[PathToken, ...]) -> str:
    """
    Convert a path to its canonical schema pointer.

    Index tokens become ``items`` segments, so this is only lossless for
    paths without indices.
    """
    segments = ["#"]
    for token in path:
        if _is_index(token):
            segments.append("items")
        else:
            segments.append("properties")
            segments.append(_escape_pointer_segment(str(token)))
    return "/".join(segments)


def instance_path_to_path(pointer: str) -> Path:
    """
    Convert a validator instance pointer (``/pets/0/name``) to a path.

    All-digit segments become index tokens; everything else is a name.
    """
    if not pointer:
        return Path()
    body = pointer[1:] if pointer.startswith("#") else pointer
    tokens: list[PathToken] = []
    for raw in body.split("/"):
        if raw == "":
            continue
        segment = _unescape_pointer_segment(raw)
        tokens.append(int(segment) if _DIGITS_RE.fullmatch(segment) else segment)
    return Path(tokens)


def path_to_instance_pointer(path: tuple[PathToken, ...]) -> str:
    """Inverse of :func:`instance_path_to_path`."""
    return "".join(f"/{_escape_pointer_segment(str(t))}" for t in path)


def as_path(value: Path | str | tuple[PathToken, ...] | list[PathToken] | None) -> Path:
    """
    Normalise a public-API path argument.

    Accepts a :class:`Path`, a token tuple/list, a schema pointer
    (``#/properties/a``), an instance pointer (``/a/0``) or a human path.
    """
    if value is None:
        return Path()
    if isinstance(value, Path):
        return value
    if isinstance(value, (tuple, list)):
        return Path(tuple(value))
    if value.startswith("#"):
        return pointer_to_path(value)
    if value.startswith("/"):
        return instance_path_to_path(value)
    return tokenize(value)


__all__ = [
    "Path",
    "PathToken",
    "as_path",
    "instance_path_to_path",
    "path_to_instance_pointer",
    "path_to_pointer",
    "pointer_to_path",
    "serialize",
    "tokenize",
]
