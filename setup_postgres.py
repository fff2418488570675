"""Database initialization script.

Creates the repositories and repository_snapshots tables.

Schema design considerations:
- repositories is keyed by GitHub's numeric id; full_name is unique too
- repository_snapshots keeps one row per repository, period and window start,
  enforced by a unique constraint so overlapping syncs cannot duplicate a window
- old windows are kept as history; rankings only read the newest one
"""
import sys
import logging
from trending.config import LOG_FORMAT, Settings, load_env
from trending.infrastructure.postgres_repository import PostgresTrendingStorage

# Load environment variables from .env or env file
load_env()


logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)


def main():
    """Initialize the database."""
    try:
        settings = Settings.from_env()
        logger.info("Connecting to database...")

        storage = PostgresTrendingStorage(settings.connection_string)
        try:
            storage.create_schema()
        finally:
            storage.close()

        logger.info("Database initialization completed successfully")

    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
