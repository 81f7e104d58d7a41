"""
Item key resolution for per-student limit lookups.

The limits endpoint keys every map (maxQuantities, alreadyOrdered,
claimedItems) by a canonical item key, not by display name. Display names
vary by education level ("Jogging Pants (Elementary)"), by size prefix
("Small Jogging Pants") and by casing/whitespace. The alias table below
must stay in sync with the upstream ITEM_ALIASES.
"""

from __future__ import annotations

import re
from typing import Dict

# Default max when neither the API nor the defaults table supplies a limit.
# Every item has a max; 1 is the conservative choice.
DEFAULT_MAX_WHEN_UNKNOWN = 1

# Items that default above 1 (accessories handed out in multiples).
DEFAULT_MAX_BY_KEY: Dict[str, int] = {
    "logo patch": 3,
    "new logo patch": 3,
    "number patch": 2,
    "id lace": 2,
}

# Names containing one of these collapse to the family key.
_FAMILY_KEYS = ("jogging pants", "new logo patch")

_WHITESPACE = re.compile(r"\s+")

ITEM_ALIASES: Dict[str, str] = {
    "shorts": "short",
    "logo patch (kindergarten)": "logo patch",
    "logo patch - kindergarten": "logo patch",
    "logo patch (elementary)": "logo patch",
    "logo patch - elementary": "logo patch",
    "logo patch (junior high school)": "logo patch",
    "logo patch (senior high school)": "logo patch",
    "logo patch (college)": "logo patch",
    "kinder dress (kindergarten)": "kinder dress",
    "kinder dress - kindergarten": "kinder dress",
    "kinder necktie (kindergarten)": "kinder necktie",
    "elem skirt (elementary)": "elem skirt",
    "elem blouse (elementary)": "elem blouse",
    "jhs skirt (junior high school)": "jhs skirt",
    "jhs blouse (junior high school)": "jhs blouse",
    "shs skirt (senior high school)": "shs skirt",
    "shs blouse (senior high school)": "shs blouse",
    "shs pants (senior high school)": "shs pants",
    "shs long-sleeve (senior high school)": "shs long-sleeve",
    "college skirt (college)": "college skirt",
    "college blouse (college)": "college blouse",
    "polo straight (college)": "polo straight",
    "polo jacket (kindergarten)": "polo jacket",
    "id lace (preschool)": "id lace",
    "id lace (kindergarten)": "id lace",
    "id lace (elementary)": "id lace",
    "id lace (junior high school)": "id lace",
    "id lace (senior high school)": "id lace",
    "id lace (college)": "id lace",
    "elementary skirt": "elem skirt",
    "elementary blouse": "elem blouse",
    "junior high skirt": "jhs skirt",
    "junior high blouse": "jhs blouse",
    "senior high skirt": "shs skirt",
    "senior high blouse": "shs blouse",
    "senior high pants": "shs pants",
    "senior high long-sleeve": "shs long-sleeve",
    "necktie (girls)": "necktie girls",
    "necktie (boys)": "necktie boys",
    "number patch (grade level)": "number patch",
    "number patch (per grade)": "number patch",
    "pe jersey": "jersey",
    "jersey (kindergarten)": "jersey",
    "jersey (preschool)": "jersey",
}


def normalize_item_name(name: str) -> str:
    """Lower-case, trim and collapse inner whitespace."""
    return _WHITESPACE.sub(" ", (name or "").strip().lower())


def resolve_key(name: str) -> str:
    """
    Resolve a display name to the canonical limit key.

    Examples:
        resolve_key("Jogging Pants")            -> "jogging pants"
        resolve_key("Small  Jogging Pants")     -> "jogging pants"
        resolve_key("Kinder dress (Kindergarten)") -> "kinder dress"
        resolve_key("Shorts")                   -> "short"

    A key missing from a limit snapshot means "unknown", not zero.
    """
    normalized = normalize_item_name(name)
    if not normalized:
        return ""
    for family in _FAMILY_KEYS:
        if family in normalized:
            return family
    return ITEM_ALIASES.get(normalized, normalized)


def default_max_for_key(key: str) -> int:
    """Conservative default cap for a canonical key."""
    return DEFAULT_MAX_BY_KEY.get(key, DEFAULT_MAX_WHEN_UNKNOWN)


def default_max_for_item(name: str) -> int:
    """Conservative default cap for a display name."""
    return default_max_for_key(resolve_key(name))
