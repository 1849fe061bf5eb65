"""Icon description normalization.

The sentence produced here is the exact text embedded for every catalog
icon, so vector caches are only reusable while this output stays stable.
"""

import re

# Applied in order; later rules see the output of earlier ones.
TERM_REPLACEMENTS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bplus\b"), "add"),
    (re.compile(r"\bminus\b"), "remove"),
    (re.compile(r"\bdelete\b"), "remove"),
    (re.compile(r"\btrash\b"), "delete"),
    (re.compile(r"\barrow left\b"), "left arrow"),
    (re.compile(r"\barrow right\b"), "right arrow"),
    (re.compile(r"\buser\b"), "user profile"),
    (re.compile(r"\baccount\b"), "user account"),
    (re.compile(r"\bsettings\b"), "system settings"),
    (re.compile(r"\bwifi\b"), "wireless network"),
    (re.compile(r" +"), " "),
)

GENERIC_CATEGORY = "Other"


def normalize_icon_name(name: str) -> str:
    """Turn a hyphenated icon name into lowercase words with domain terms."""
    normalized = name.replace("-", " ").lower().strip()
    for pattern, replacement in TERM_REPLACEMENTS:
        normalized = pattern.sub(replacement, normalized)
    return normalized


def category_keywords(category: str | None, normalized_name: str) -> list[str]:
    """Split a ``"A / B"`` category into keywords not already in the name."""
    if not category or category == GENERIC_CATEGORY:
        return []

    keywords = [part.strip().lower() for part in category.split("/")]
    return [kw for kw in keywords if kw and kw not in normalized_name]


def describe_icon(name: str, category: str | None) -> str:
    """Build the natural-language sentence embedded for an icon.

    Args:
        name: Icon name, e.g. ``"access-point-minus"``.
        category: Semantic series such as ``"Network / Connectivity"``.

    Returns:
        ``"An icon representing <name>[, related to <keywords>]."``
    """
    normalized_name = normalize_icon_name(name)
    keywords = category_keywords(category, normalized_name)

    description = f"An icon representing {normalized_name}"
    if keywords:
        description += f", related to {', '.join(keywords)}"
    description += "."

    return re.sub(r"\s+", " ", description).strip()
