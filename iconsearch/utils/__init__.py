"""Shared utilities."""

from iconsearch.utils.hashing import generate_hash
from iconsearch.utils.text import describe_icon
from iconsearch.utils.timeout import with_timeout

__all__ = [
    "describe_icon",
    "generate_hash",
    "with_timeout",
]
