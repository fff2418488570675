"""HTTP endpoints for the sync trigger and the ranking queries (aiohttp)."""
import asyncio
import hmac
import logging
from typing import Awaitable, Callable, Optional
from aiohttp import web
from trending.application.query_schemas import TrendingQuery
from trending.application.query_service import TrendingQueryService
from trending.domain.errors import InternalError, InvalidQuery
from trending.domain.models import SyncResult


logger = logging.getLogger(__name__)

SyncRunner = Callable[[], Awaitable[SyncResult]]

QUERY_SERVICE = web.AppKey("query_service", TrendingQueryService)
SYNC_RUNNER = web.AppKey("sync_runner", object)
CRON_SECRET = web.AppKey("cron_secret", object)


def is_authorized(authorization: Optional[str], cron_secret: Optional[str]) -> bool:
    """Without a configured secret every caller is trusted."""
    if not cron_secret:
        return True
    return hmac.compare_digest(authorization or "", f"Bearer {cron_secret}")


async def sync_repos(request: web.Request) -> web.Response:
    """Run a full sync; always answers with a structured JSON result."""
    if not is_authorized(request.headers.get("Authorization"), request.app[CRON_SECRET]):
        return web.Response(status=401, text="Unauthorized")

    try:
        result = await request.app[SYNC_RUNNER]()
    except Exception as e:
        logger.error(f"Cron job error: {e}", exc_info=True)
        return web.json_response({"success": False, "error": str(e) or "Unknown error"}, status=500)

    return web.json_response({
        "success": True,
        "message": "Sync completed successfully",
        "result": result.to_dict(),
    })


async def get_trending(request: web.Request) -> web.Response:
    service = request.app[QUERY_SERVICE]
    try:
        query = TrendingQuery.parse(request.query)
        page = await asyncio.get_running_loop().run_in_executor(None, service.get_trending_page, query)
    except InvalidQuery as e:
        return web.json_response({"error": str(e)}, status=400)
    except InternalError as e:
        return web.json_response({"error": str(e)}, status=500)

    return web.json_response(page.to_dict())


async def get_repository(request: web.Request) -> web.Response:
    service = request.app[QUERY_SERVICE]
    full_name = f"{request.match_info['owner']}/{request.match_info['name']}"
    try:
        repository = await asyncio.get_running_loop().run_in_executor(None, service.get_by_full_name, full_name)
    except InvalidQuery as e:
        return web.json_response({"error": str(e)}, status=400)
    except InternalError as e:
        return web.json_response({"error": str(e)}, status=500)

    return web.json_response(repository.to_dict() if repository is not None else None)


def create_app(
    query_service: TrendingQueryService,
    sync_runner: SyncRunner,
    cron_secret: Optional[str] = None
) -> web.Application:
    """Build the web application around already constructed services."""
    app = web.Application()
    app[QUERY_SERVICE] = query_service
    app[SYNC_RUNNER] = sync_runner
    app[CRON_SECRET] = cron_secret
    app.router.add_get("/api/cron/sync-repos", sync_repos)
    app.router.add_get("/api/repos/trending", get_trending)
    app.router.add_get("/api/repos/{owner}/{name}", get_repository)
    return app
