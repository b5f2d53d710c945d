from __future__ import annotations

import re
from typing import Iterable

from sanic.log import logger

from prwatch.config import Settings
from prwatch.github.model import CheckRun, CheckSuite
from prwatch.pipeline.types import (
    ClassifiedComment,
    CommentOrigin,
    DeploymentCheck,
    DeploymentStatus,
)

PREVIEW_CHECK_NAME = "deploy preview"
PREVIEW_COMMENT_MARKER = "Deploy Preview"


def find_deployment_suite(
    suites: Iterable[CheckSuite], settings: Settings
) -> CheckSuite | None:
    for suite in suites:
        if suite.app is not None and suite.app.slug == settings.DEPLOY_APP_SLUG:
            return suite
    return None


def is_preview_check(name: str) -> bool:
    return PREVIEW_CHECK_NAME in name.lower().replace("-", " ")


def preview_check_url(deployment: DeploymentStatus) -> str | None:
    for check in deployment.check_runs:
        if is_preview_check(check.name) and check.details_url:
            return check.details_url
    return None


def _preview_pattern(settings: Settings) -> re.Pattern:
    return re.compile(settings.DEPLOY_PREVIEW_URL_PATTERN)


def _preview_url_from_check_runs(
    check_runs: Iterable[CheckRun], pattern: re.Pattern
) -> str | None:
    for check_run in check_runs:
        if not is_preview_check(check_run.name):
            continue
        if check_run.details_url is not None:
            m = pattern.search(check_run.details_url)
            if m is not None:
                return m.group(0)
        if check_run.output is None:
            continue
        for text in (
            check_run.output.summary,
            check_run.output.text,
            check_run.output.title,
        ):
            if not text:
                continue
            m = pattern.search(text)
            if m is not None:
                return m.group(0)
    return None


def _preview_url_from_comments(
    comments: Iterable[ClassifiedComment], pattern: re.Pattern
) -> str | None:
    for comment in comments:
        if comment.origin is not CommentOrigin.deployment:
            continue
        if PREVIEW_COMMENT_MARKER not in comment.body:
            continue
        m = pattern.search(comment.body)
        if m is not None:
            return m.group(0)
    return None


def resolve_preview_url(
    check_runs: Iterable[CheckRun],
    comments: Iterable[ClassifiedComment],
    settings: Settings,
) -> str | None:
    """Find the deploy preview base URL.

    Check runs of the deployment suite are scanned first, then the newest
    deployment bot comment announcing the preview. ``comments`` must be
    ordered newest first.
    """
    pattern = _preview_pattern(settings)
    url = _preview_url_from_check_runs(check_runs, pattern)
    if url is None:
        url = _preview_url_from_comments(comments, pattern)
    return url


def tool_preview_url(base_url: str | None, tool_directive: str | None) -> str | None:
    if base_url is None:
        return None
    if tool_directive is None:
        return base_url
    return f"{base_url.rstrip('/')}/tool/{tool_directive}"


def resolve_deployment(
    suite: CheckSuite | None,
    check_runs: Iterable[CheckRun],
    comments: Iterable[ClassifiedComment],
    settings: Settings,
) -> DeploymentStatus | None:
    if suite is None:
        logger.debug("No %s check suite on head commit", settings.DEPLOY_APP_SLUG)
        return None
    check_runs = list(check_runs)
    preview_url = resolve_preview_url(check_runs, comments, settings)
    logger.debug(
        "Deployment suite %d: status=%s conclusion=%s preview_url=%s",
        suite.id,
        suite.status,
        suite.conclusion,
        preview_url,
    )
    return DeploymentStatus(
        suite_id=suite.id,
        status=suite.status,
        conclusion=suite.conclusion,
        app_slug=suite.app.slug if suite.app is not None else None,
        details_url=suite.url,
        preview_url=preview_url,
        check_runs=tuple(
            DeploymentCheck(
                name=cr.name,
                status=cr.status,
                conclusion=cr.conclusion,
                details_url=cr.details_url,
                summary=cr.output.summary if cr.output is not None else None,
            )
            for cr in check_runs
        ),
    )
