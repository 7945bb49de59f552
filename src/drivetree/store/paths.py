"""Materialized paths, name rules, and field validators."""

from __future__ import annotations

import mimetypes
import re
from typing import TYPE_CHECKING

from .exceptions import ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable

# =============================================================================
# Constants
# =============================================================================

SEPARATOR = "/"

MAX_NAME_LENGTH = 255
MAX_TAG_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 500

PERMISSIONS = ("read", "write")

_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")


# =============================================================================
# Names and paths
# =============================================================================


def validate_name(name: str) -> str:
    """Return *name* stripped of surrounding whitespace, or raise.

    Names are single path segments: they may not contain the separator,
    NUL or other ASCII control characters, and may not be ``.`` or ``..``.
    """
    if not isinstance(name, str):
        raise ValidationError("Name must be a string")

    name = name.strip()
    if not name:
        raise ValidationError("Name cannot be empty")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Name too long (max {MAX_NAME_LENGTH} characters)")
    if SEPARATOR in name:
        raise ValidationError(f"Name cannot contain {SEPARATOR!r}: {name}")
    if name in (".", ".."):
        raise ValidationError(f"Reserved name: {name}")

    for ch in name:
        code = ord(ch)
        if code < 0x20 or code == 0x7F:
            raise ValidationError(f"Name contains control character: 0x{code:02x}")

    return name


def compute_path(name: str, parent_path: str | None) -> str:
    """Materialize the path of a node called *name* under *parent_path*.

    Examples:
        compute_path("Docs", None) -> "/Docs"
        compute_path("2024", "/Docs") -> "/Docs/2024"
    """
    name = validate_name(name)
    if parent_path is None:
        return SEPARATOR + name
    return parent_path + SEPARATOR + name


def is_same_or_descendant(path: str, ancestor_path: str) -> bool:
    """True if *path* equals *ancestor_path* or lies underneath it.

    Matching happens on segment boundaries, so ``/Docs2`` is not under
    ``/Docs``.
    """
    return path == ancestor_path or path.startswith(ancestor_path + SEPARATOR)


def split_segments(path: str) -> list[str]:
    """Split a materialized path into its names, root first."""
    return [segment for segment in path.split(SEPARATOR) if segment]


# =============================================================================
# Field validators
# =============================================================================


def validate_color(color: str) -> str:
    """Return *color* if it is a ``#RRGGBB`` hex string, else raise."""
    if not isinstance(color, str) or not _COLOR_RE.match(color):
        raise ValidationError(f"Invalid color: {color!r}. Must be a hex value like '#1976d2'.")
    return color.lower()


def guess_mime_type(filename: str) -> str:
    """Guess the MIME type of a file based on its name."""
    mime_type, _ = mimetypes.guess_type(filename)
    return mime_type or "application/octet-stream"


def validate_permission(permission: str) -> str:
    if permission not in PERMISSIONS:
        raise ValidationError(
            f"Invalid permission: {permission!r}. Must be 'read' or 'write'."
        )
    return permission


def validate_description(description: str | None) -> str | None:
    if description is None:
        return None
    description = description.strip()
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"Description too long (max {MAX_DESCRIPTION_LENGTH} characters)"
        )
    return description or None


def validate_tags(tags: Iterable[str] | None) -> list[str]:
    """Strip tags, drop duplicates (keeping order) and enforce length."""
    if tags is None:
        return []
    cleaned: list[str] = []
    for tag in tags:
        tag = tag.strip()
        if not tag:
            raise ValidationError("Tags cannot be empty")
        if len(tag) > MAX_TAG_LENGTH:
            raise ValidationError(f"Tag too long (max {MAX_TAG_LENGTH} characters): {tag}")
        if tag not in cleaned:
            cleaned.append(tag)
    return cleaned
