#!/usr/bin/env python
"""Pre-build icon vectors for the configured store.

Usage:
    python -m scripts.build_vectors --libraries lucide heroicons --force

Loads the catalog, embeds every icon (or reuses the durable cache) and
writes the vectors into the active vector store, so the first search after
a deployment does not pay for embedding the whole catalog.
"""

import argparse
import asyncio
import sys

from iconsearch.config import get_settings
from iconsearch.context import build_context
from iconsearch.exceptions import IconSearchError
from iconsearch.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


async def build_vectors(libraries: list[str] | None, force: bool) -> bool:
    """Initialize the search service once and report what was built.

    Args:
        libraries: Libraries to load. Stored preference or defaults if omitted.
        force: Re-embed the catalog even when cached vectors match it.

    Returns:
        True if the catalog loaded and vectors were produced with the model.
    """
    settings = get_settings()
    setup_logging(level=settings.log_level)

    context = build_context(settings)
    search = context.search
    try:
        if libraries:
            await context.preferences.set_selected_libraries(libraries)
        await search.initialize(force_regenerate=force, libraries=libraries)
        count = await search.vector_store.get_vector_count()
    except IconSearchError as e:
        logger.error(f"Vector build failed: {e.message}", extra={"details": e.details})
        return False
    finally:
        await context.close()

    fallback = context.embeddings.is_using_fallback()

    print("\n" + "=" * 60)
    print("VECTOR BUILD SUMMARY")
    print("=" * 60)
    print(f"Vector Store: {search.vector_store_config.type}")
    print(f"Icons: {len(search.icons)}")
    print(f"Vectors: {count}")
    print(f"Catalog Fingerprint: {search.catalog_fingerprint}")
    print(f"Embeddings: {'fallback' if fallback else context.embeddings.model_name}")
    print("=" * 60)

    return not fallback


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Pre-build icon vectors for the configured store",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--libraries",
        nargs="+",
        default=None,
        help="Icon libraries to load (stored selection is updated)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Ignore cached vectors and re-embed the catalog",
    )

    args = parser.parse_args()

    ok = asyncio.run(build_vectors(libraries=args.libraries, force=args.force))

    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
