"""Canonical taxonomy definitions for closet items.

Categories are a closed set shared with the classifier schema; tags stay
free-form and keep the order (and duplicates) the user or model gave them.
"""

from typing import Iterable, List

CATEGORIES: List[str] = ["Tops", "Bottoms", "Dresses", "Shoes", "Accessories"]

DEFAULT_SCENARIOS: List[str] = ["Casual", "Work", "Party", "Sport", "Vacation"]

_CATEGORY_LOOKUP = {label.lower(): label for label in CATEGORIES}


def validate_category(value: str) -> str:
    """Validate and normalise a category value.

    Matching is case-insensitive; the canonical label is returned. Raises a
    :class:`ValueError` if the category is not part of the taxonomy.
    """

    key = str(value).strip().lower()
    if key not in _CATEGORY_LOOKUP:
        raise ValueError(f"Unsupported category '{value}'. Allowed: {CATEGORIES}")
    return _CATEGORY_LOOKUP[key]


def normalise_tags(values: Iterable[str]) -> List[str]:
    """Strip tags and drop empty ones, keeping order and duplicates."""

    tags = []
    for value in values or []:
        tag = str(value).strip()
        if tag:
            tags.append(tag)
    return tags


def merge_scenarios(existing: Iterable[str]) -> List[str]:
    """Default scenarios followed by any custom ones already in use."""

    merged = list(DEFAULT_SCENARIOS)
    for scenario in existing:
        if scenario and scenario not in merged:
            merged.append(scenario)
    return merged


__all__ = [
    "CATEGORIES",
    "DEFAULT_SCENARIOS",
    "validate_category",
    "normalise_tags",
    "merge_scenarios",
]
