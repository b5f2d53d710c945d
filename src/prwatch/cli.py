import asyncio
import logging
import time
from typing import Optional

import humanize
import typer
from tabulate import tabulate

from prwatch.config import SETTINGS
from prwatch.errors import PrWatchError
from prwatch.github import GitHubClientProvider
from prwatch.logger import get_log_handlers
from prwatch.model import StatusResponse
from prwatch.pipeline.service import StatusService
from prwatch.web import create_app


logging.basicConfig(
    format="%(asctime)s %(name)s %(levelname)s - %(message)s", level=logging.INFO
)
logger = logging.getLogger("prwatch")


app = typer.Typer()


@app.callback()
def init():
    logging.getLogger().setLevel(SETTINGS.log_level)
    logger.setLevel(SETTINGS.log_level)
    get_log_handlers(logger)


def checks_table(result: StatusResponse) -> str:
    rows = [
        (check.name, check.status or "-", check.conclusion or "-")
        for check in result.checks
    ]
    return tabulate(rows, headers=["check", "status", "conclusion"])


def describe(result: StatusResponse) -> str:
    actions = result.automated_actions
    lines = [
        f"PR #{result.pr_number} {result.pr_title or ''}".rstrip(),
        f"  state:  {actions.pipeline_state} ({actions.ui_hint})",
        f"  next:   {actions.next_expected_action}",
        f"  status: {actions.status_summary}",
    ]
    if result.deploy_preview_url:
        lines.append(f"  preview: {result.deploy_preview_url}")
    if actions.last_bot_comment is not None:
        comment = actions.last_bot_comment
        lines.append(
            f"  last bot comment: {comment.bot_name} "
            f"{humanize.naturaltime(result.last_updated - comment.timestamp)}: "
            f"{comment.summary}"
        )
    return "\n".join(lines)


async def _summary(pr_number: int, polling_attempt: int) -> StatusResponse:
    provider = GitHubClientProvider(SETTINGS)
    try:
        return await StatusService(provider, SETTINGS).get_status(
            pr_number, polling_attempt
        )
    finally:
        await provider.close()


@app.command()
def summary(pr_number: int, polling_attempt: int = 0):
    """Print the current status of a pull request as JSON."""
    try:
        result = asyncio.run(_summary(pr_number, polling_attempt))
    except PrWatchError as e:
        typer.echo(f"Error ({e.status_code}): {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo(result.model_dump_json(by_alias=True, indent=2))


async def watch_loop(
    service: StatusService,
    pr_number: int,
    interval: float,
    max_attempts: int,
) -> StatusResponse:
    started = time.monotonic()
    last_state = None
    attempt = 0
    while True:
        result = await service.get_status(pr_number, attempt)
        actions = result.automated_actions
        if actions.pipeline_state != last_state:
            last_state = actions.pipeline_state
            typer.echo(describe(result))
            if result.checks:
                typer.echo(checks_table(result))
        logger.debug(
            "Poll pr=%d attempt=%d state=%s elapsed=%s",
            pr_number,
            attempt,
            actions.pipeline_state,
            humanize.naturaldelta(time.monotonic() - started),
        )
        if not actions.should_continue_polling or attempt >= max_attempts:
            return result
        attempt += 1
        await asyncio.sleep(interval)


async def _watch(pr_number: int, interval: float, max_attempts: int) -> StatusResponse:
    provider = GitHubClientProvider(SETTINGS)
    try:
        return await watch_loop(
            StatusService(provider, SETTINGS), pr_number, interval, max_attempts
        )
    finally:
        await provider.close()


@app.command()
def watch(
    pr_number: int,
    interval: Optional[float] = None,
    max_attempts: Optional[int] = None,
):
    """Poll a pull request until its pipeline reaches a final state."""
    interval = SETTINGS.POLL_INTERVAL if interval is None else interval
    max_attempts = SETTINGS.MAX_POLLING_ATTEMPTS if max_attempts is None else max_attempts
    try:
        result = asyncio.run(_watch(pr_number, interval, max_attempts))
    except PrWatchError as e:
        typer.echo(f"Error ({e.status_code}): {e}", err=True)
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        raise typer.Exit(code=130)
    typer.echo(f"Final state: {result.automated_actions.pipeline_state}")


@app.command()
def serve(host: str = "0.0.0.0", port: int = 8000, debug: bool = False):
    """Run the HTTP status endpoint."""
    create_app(SETTINGS).run(
        host=host, port=port, debug=debug, single_process=True, access_log=debug
    )
