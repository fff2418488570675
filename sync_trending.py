"""Main entry point for syncing trending repositories.

Run on a schedule (cron, CI) or by hand to populate the database.
"""
import asyncio
import sys
import logging
from trending.bootstrap import create_cache, create_storage, run_sync
from trending.config import Settings, configure_logging, load_env
from trending.domain.errors import ConfigurationError

# Load environment variables from .env or env file
load_env()


logger = logging.getLogger(__name__)


async def main():
    """Execute the sync operation."""
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    try:
        settings.require_github_token()
    except ConfigurationError as e:
        logger.error(f"{e}")
        sys.exit(1)

    logger.info("Starting sync of trending repositories")

    # Initialize infrastructure components
    storage = create_storage(settings)
    cache = create_cache(settings)

    try:
        result = await run_sync(settings, storage, cache)

        # Log results
        logger.info("=" * 50)
        logger.info("Sync Results:")
        for range_result in result.time_ranges:
            logger.info(
                f"  {range_result.time_range.value}: synced {range_result.synced} repos "
                f"({range_result.created} created, {range_result.updated} updated)"
            )
            if range_result.errors > 0:
                logger.info(f"    {range_result.errors} errors")
        logger.info(f"  Duration: {result.duration_ms / 1000:.2f} seconds")
        logger.info("=" * 50)

    except Exception as e:
        logger.error(f"Sync failed: {e}", exc_info=True)
        sys.exit(1)
    finally:
        if cache is not None:
            await cache.close()
        storage.close()


if __name__ == "__main__":
    asyncio.run(main())
