"""Catalog filtering and substring search."""

from iconsearch.catalog.models import FilterOptions, Icon
from iconsearch.search.models import SearchResult


def filter_icons(icons: list[Icon], filters: FilterOptions | None) -> list[Icon]:
    """Icons satisfying ``filters``, in catalog order."""
    if filters is None:
        return list(icons)
    return [icon for icon in icons if filters.matches(icon)]


def substring_search(icons: list[Icon], query: str, limit: int) -> list[SearchResult]:
    """Icons whose name, tags or synonyms contain ``query``.

    Matching is case-insensitive, keeps catalog order and scores every hit 0.
    """
    needle = query.strip().lower()
    if limit <= 0:
        return []

    results = []
    for icon in icons:
        if needle in icon.search_text():
            results.append(SearchResult(icon=icon, score=0.0))
            if len(results) >= limit:
                break
    return results
