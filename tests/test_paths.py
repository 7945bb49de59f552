"""Tests for path materialization and field validators."""

from __future__ import annotations

import pytest

from drivetree.store.exceptions import ValidationError
from drivetree.store.paths import (
    MAX_NAME_LENGTH,
    compute_path,
    guess_mime_type,
    is_same_or_descendant,
    split_segments,
    validate_color,
    validate_description,
    validate_name,
    validate_permission,
    validate_tags,
)

# ---------------------------------------------------------------------------
# validate_name
# ---------------------------------------------------------------------------


class TestValidateName:
    def test_strips_whitespace(self):
        assert validate_name("  Docs  ") == "Docs"

    def test_allows_spaces_and_unicode(self):
        assert validate_name("Relatório final 2024") == "Relatório final 2024"

    @pytest.mark.parametrize("name", ["", "   ", "a/b", "/", ".", "..", "bad\x00name", "tab\tname"])
    def test_rejects_invalid(self, name):
        with pytest.raises(ValidationError):
            validate_name(name)

    def test_rejects_too_long(self):
        with pytest.raises(ValidationError, match="too long"):
            validate_name("x" * (MAX_NAME_LENGTH + 1))

    def test_accepts_max_length(self):
        assert validate_name("x" * MAX_NAME_LENGTH) == "x" * MAX_NAME_LENGTH

    def test_rejects_non_string(self):
        with pytest.raises(ValidationError):
            validate_name(None)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# compute_path / containment
# ---------------------------------------------------------------------------


class TestComputePath:
    def test_root(self):
        assert compute_path("Docs", None) == "/Docs"

    def test_nested(self):
        assert compute_path("2024", "/Docs") == "/Docs/2024"

    def test_validates_name(self):
        with pytest.raises(ValidationError):
            compute_path("a/b", "/Docs")


class TestContainment:
    def test_same_path(self):
        assert is_same_or_descendant("/Docs", "/Docs")

    def test_descendant(self):
        assert is_same_or_descendant("/Docs/2024/a.txt", "/Docs")

    def test_sibling_with_shared_prefix(self):
        assert not is_same_or_descendant("/Docs2", "/Docs")

    def test_ancestor_is_not_descendant(self):
        assert not is_same_or_descendant("/Docs", "/Docs/2024")

    def test_split_segments(self):
        assert split_segments("/Docs/2024/a.txt") == ["Docs", "2024", "a.txt"]
        assert split_segments("/") == []


# ---------------------------------------------------------------------------
# Field validators
# ---------------------------------------------------------------------------


class TestFieldValidators:
    def test_color_lowercased(self):
        assert validate_color("#1976D2") == "#1976d2"

    @pytest.mark.parametrize("color", ["1976d2", "#fff", "#gggggg", "blue", ""])
    def test_color_invalid(self, color):
        with pytest.raises(ValidationError, match="Invalid color"):
            validate_color(color)

    def test_permission(self):
        assert validate_permission("read") == "read"
        assert validate_permission("write") == "write"
        with pytest.raises(ValidationError, match="Invalid permission"):
            validate_permission("admin")

    def test_description(self):
        assert validate_description(None) is None
        assert validate_description("   ") is None
        assert validate_description(" notes ") == "notes"
        with pytest.raises(ValidationError):
            validate_description("x" * 501)

    def test_tags(self):
        assert validate_tags(None) == []
        assert validate_tags([" a ", "b", "a"]) == ["a", "b"]
        with pytest.raises(ValidationError):
            validate_tags(["ok", " "])
        with pytest.raises(ValidationError, match="Tag too long"):
            validate_tags(["x" * 51])

    def test_guess_mime_type(self):
        assert guess_mime_type("a.txt") == "text/plain"
        assert guess_mime_type("noextension") == "application/octet-stream"
