"""
Unit tests for item key resolution and default caps.
"""

import pytest

from modules.item_keys import (
    DEFAULT_MAX_WHEN_UNKNOWN,
    default_max_for_item,
    default_max_for_key,
    normalize_item_name,
    resolve_key,
)


class TestNormalizeItemName:
    """Test name normalization."""

    def test_lowercases_and_trims(self):
        assert normalize_item_name("  Polo Jacket ") == "polo jacket"

    def test_collapses_inner_whitespace(self):
        assert normalize_item_name("Jogging \t  Pants") == "jogging pants"

    def test_empty_name(self):
        assert normalize_item_name("") == ""
        assert normalize_item_name(None) == ""


class TestResolveKey:
    """Test canonical key resolution."""

    def test_case_and_whitespace_insensitive(self):
        assert resolve_key("Jogging Pants") == resolve_key("jogging  pants")

    @pytest.mark.parametrize("name", [
        "Jogging Pants",
        "Small Jogging Pants",
        "Jogging Pants (Elementary)",
        "XL JOGGING PANTS",
    ])
    def test_jogging_pants_family(self, name):
        assert resolve_key(name) == "jogging pants"

    def test_new_logo_patch_family(self):
        assert resolve_key("New Logo Patch (College)") == "new logo patch"

    def test_aliases(self):
        assert resolve_key("Kinder Dress (Kindergarten)") == "kinder dress"
        assert resolve_key("Shorts") == "short"
        assert resolve_key("Logo Patch - Elementary") == "logo patch"
        assert resolve_key("PE Jersey") == "jersey"

    def test_unknown_name_is_its_normalized_form(self):
        assert resolve_key("  Varsity   Jacket ") == "varsity jacket"

    def test_empty_name_has_no_key(self):
        assert resolve_key("") == ""


class TestDefaultMax:
    """Test conservative default caps."""

    def test_accessories_default_above_one(self):
        assert default_max_for_key("logo patch") == 3
        assert default_max_for_key("id lace") == 2

    def test_unknown_key_defaults_to_one(self):
        assert default_max_for_key("varsity jacket") == DEFAULT_MAX_WHEN_UNKNOWN == 1

    def test_default_for_display_name(self):
        assert default_max_for_item("Logo Patch (Elementary)") == 3
        assert default_max_for_item("Jogging Pants") == 1
