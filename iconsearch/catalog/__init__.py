"""Icon catalog module."""

from iconsearch.catalog.loader import (
    CatalogLoader,
    FileCatalogLoader,
    IconifyCatalogLoader,
    WritableCatalog,
)
from iconsearch.catalog.models import FilterOptions, Icon, make_icon_id

__all__ = [
    "CatalogLoader",
    "FileCatalogLoader",
    "FilterOptions",
    "Icon",
    "IconifyCatalogLoader",
    "WritableCatalog",
    "make_icon_id",
]
