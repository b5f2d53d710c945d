import logging

from gidgethub import GitHubException
from sanic import Request, Sanic, response
from sanic.log import logger
import sanic.log
from prometheus_client import core
from prometheus_client.exposition import CONTENT_TYPE_LATEST, generate_latest

from prwatch.config import SETTINGS, Settings
from prwatch.errors import PrWatchError
from prwatch.github import GitHubClientProvider
from prwatch.logger import get_log_handlers
from prwatch.metric import error_counter, request_counter
from prwatch.pipeline.response import error_response
from prwatch.pipeline.service import StatusService


logging.basicConfig(
    format="%(asctime)s %(name)s %(levelname)s - %(message)s", level=logging.INFO
)


def _error(message: str, status: int):
    return response.json(
        error_response(message).model_dump(mode="json", by_alias=True),
        status=status,
    )


async def handle_status_request(app, request):
    pr_number = request.args.get("prNumber")
    polling_attempt = request.args.get("pollingAttempt")
    logger.debug("Status request pr=%s attempt=%s", pr_number, polling_attempt)
    try:
        result = await app.ctx.service.get_status(pr_number, polling_attempt)
    except PrWatchError as e:
        if e.status_code >= 500:
            error_counter.labels(context="status_pr").inc()
            logger.error("Status request failed pr=%s", pr_number, exc_info=True)
        else:
            logger.info(
                "Status request rejected pr=%s status=%d error=%s",
                pr_number,
                e.status_code,
                e,
            )
        return _error(str(e), e.status_code)
    except GitHubException as e:
        error_counter.labels(context="status_pr").inc()
        logger.error("GitHub error for pr=%s", pr_number, exc_info=True)
        return _error(f"GitHub API error: {e}", 500)
    except Exception as e:  # noqa: BLE001
        error_counter.labels(context="status_pr").inc()
        logger.error("Unexpected error for pr=%s", pr_number, exc_info=True)
        return _error(str(e) or "An unexpected error occurred.", 500)

    return response.json(result.model_dump(mode="json", by_alias=True))


def create_app(
    settings: Settings = SETTINGS,
    provider: GitHubClientProvider | None = None,
    name: str = "prwatch",
) -> Sanic:
    app = Sanic(name)

    logging.getLogger().setLevel(settings.log_level)
    get_log_handlers(sanic.log.logger, settings)

    app.ctx.settings = settings
    app.ctx.provider = provider if provider is not None else GitHubClientProvider(settings)
    app.ctx.service = StatusService(app.ctx.provider, settings)

    @app.listener("after_server_stop")
    async def close_provider(app, loop):
        logger.debug("Closing GitHub client")
        await app.ctx.provider.close()

    @app.on_request
    async def on_request(request: Request):
        if request.path == "/metrics":
            return
        request_counter.labels(path=request.path).inc()

    @app.get("/status")
    async def status(request):
        logger.debug("status check")
        return response.text("ok")

    @app.get("/api/status-pr")
    async def status_pr(request: Request):
        return await handle_status_request(app, request)

    @app.get("/metrics")
    async def metrics(request):
        data = generate_latest(core.REGISTRY)
        return response.raw(data, content_type=CONTENT_TYPE_LATEST)

    return app
