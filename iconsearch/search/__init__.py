"""Icon search orchestration module."""

from iconsearch.search.models import (
    IconEmbedding,
    SearchOutcome,
    SearchReport,
    SearchResult,
)
from iconsearch.search.service import IconSearchService
from iconsearch.search.substring import filter_icons, substring_search

__all__ = [
    "IconEmbedding",
    "IconSearchService",
    "SearchOutcome",
    "SearchReport",
    "SearchResult",
    "filter_icons",
    "substring_search",
]
