"""Serve the trending API over HTTP."""
import logging
from aiohttp import web
from trending.bootstrap import create_cache, create_query_service, create_storage, run_sync
from trending.config import Settings, configure_logging, load_env
from trending.interfaces.http_api import create_app

# Load environment variables from .env or env file
load_env()


logger = logging.getLogger(__name__)


def main():
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    storage = create_storage(settings)
    cache = create_cache(settings)

    async def sync_runner():
        return await run_sync(settings, storage, cache)

    async def on_cleanup(app: web.Application) -> None:
        if cache is not None:
            await cache.close()
        storage.close()

    app = create_app(create_query_service(storage), sync_runner, settings.cron_secret)
    app.on_cleanup.append(on_cleanup)

    if not settings.cron_secret:
        logger.warning("CRON_SECRET not set, the sync endpoint accepts unauthenticated calls")

    web.run_app(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    main()
