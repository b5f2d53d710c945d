from __future__ import annotations

import asyncio
import re
from typing import Awaitable, List, Tuple, TypeVar

import aiohttp
from gidgethub import BadRequest, GitHubException
from sanic.log import logger

from prwatch.config import SETTINGS, Settings
from prwatch.errors import PartialEvidenceError, github_status
from prwatch.github.api import API
from prwatch.github.model import CheckRun, CheckSuite, IssueComment, PullRequest, WorkflowRun
from prwatch.metric import partial_evidence_counter
from prwatch.model import ToolGenerationInfoFile
from prwatch.pipeline.categorize import categorize_runs, summarize_run
from prwatch.pipeline.comments import asset_url_from_comments, classify_comments
from prwatch.pipeline.deployment import find_deployment_suite, resolve_deployment
from prwatch.pipeline.types import (
    CategorizedRuns,
    EvidenceSnapshot,
    GenerationInfo,
    GenerationInfoStatus,
    PullRequestInfo,
    RunSummary,
)

T = TypeVar("T")

# failures of a single sub-fetch that degrade to "no data for this piece"
PARTIAL_ERRORS = (GitHubException, aiohttp.ClientError, asyncio.TimeoutError, ValueError)


async def gather_all(*aws: Awaitable) -> List:
    """Await all of ``aws`` concurrently.

    If one of them raises, the others are cancelled before the error
    propagates. Cancelling the caller cancels all of them.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def tool_directive_from_branch(branch: str | None, prefix: str) -> str | None:
    if not branch or not branch.startswith(prefix):
        return None
    return re.sub(r"-\d+$", "", branch[len(prefix) :]) or None


def pr_info(pull: PullRequest) -> PullRequestInfo:
    return PullRequestInfo(
        number=pull.number,
        title=pull.title,
        state=pull.state,
        merged=pull.is_merged,
        branch=pull.head.ref,
        head_sha=pull.head.sha,
        base_branch=pull.base.ref,
        url=pull.html_url,
        user=pull.user.login if pull.user is not None else None,
        created_at=pull.created_at,
        updated_at=pull.updated_at,
    )


def is_linked_run(run: WorkflowRun, pull: PullRequest) -> bool:
    if run.head_sha == pull.head.sha:
        return True
    return any(
        linked.id == pull.id and linked.number == pull.number
        for linked in run.pull_requests
    )


class EvidenceFetcher:
    """Collects everything the synthesizer looks at for one pull request."""

    def __init__(self, api: API, settings: Settings = SETTINGS):
        self.api = api
        self.settings = settings

    async def fetch(self, pr_number: int) -> EvidenceSnapshot:
        pull = await self.api.get_pull(pr_number)
        pr = pr_info(pull)
        directive = tool_directive_from_branch(
            pr.branch, self.settings.TOOL_BRANCH_PREFIX
        )
        logger.debug(
            "Fetching evidence pr=%d sha=%s branch=%s directive=%s",
            pr.number,
            pr.short_sha,
            pr.branch,
            directive,
        )

        runs, (suite, check_runs), raw_comments, generation_info = await gather_all(
            self._fetch_runs(pull),
            self._fetch_deployment_inputs(pr.head_sha),
            self._fetch_comments(pr_number),
            self._fetch_generation_info(directive, pr.head_sha),
        )

        comments = classify_comments(
            raw_comments, self.settings, limit=self.settings.COMMENTS_PAGE_SIZE
        )
        deployment = resolve_deployment(suite, check_runs, comments, self.settings)

        logger.debug(
            "Evidence pr=%d validation_runs=%d dependency_runs=%d lint_runs=%d "
            "comments=%d deployment=%s generation_info=%s",
            pr.number,
            len(runs.validation),
            len(runs.dependency),
            len(runs.lint),
            len(comments),
            deployment.status if deployment is not None else None,
            generation_info.status.value,
        )

        return EvidenceSnapshot(
            pr=pr,
            runs=runs,
            comments=comments,
            deployment=deployment,
            generation_info=generation_info,
            tool_directive=directive,
            asset_url=asset_url_from_comments(comments),
        )

    async def _piece(self, piece: str, aw: Awaitable[T]) -> T:
        try:
            return await aw
        except PARTIAL_ERRORS as e:
            raise PartialEvidenceError(f"{piece}: {e}", piece=piece) from e

    async def _tolerant(self, piece: str, aw: Awaitable[T], default: T) -> T:
        try:
            return await self._piece(piece, aw)
        except PartialEvidenceError as e:
            self._record_partial(e)
            return default

    def _record_partial(self, exc: PartialEvidenceError) -> None:
        logger.warning(
            "Partial evidence piece=%s error=%s", exc.piece, exc.__cause__ or exc
        )
        partial_evidence_counter.labels(piece=exc.piece).inc()

    async def _fetch_runs(self, pull: PullRequest) -> CategorizedRuns:
        runs = await self.api.get_workflow_runs(self.settings.WORKFLOW_RUNS_PAGE_SIZE)
        linked = [run for run in runs if is_linked_run(run, pull)]
        logger.debug(
            "Workflow runs pr=%d fetched=%d linked=%d",
            pull.number,
            len(runs),
            len(linked),
        )
        summaries = await gather_all(*(self._summarize_run(run) for run in linked))
        return categorize_runs(summaries, self.settings)

    async def _summarize_run(self, run: WorkflowRun) -> RunSummary:
        jobs, artifacts = await gather_all(
            self._tolerant("jobs", self.api.get_jobs_for_run(run.id), []),
            self._tolerant("artifacts", self.api.get_artifacts_for_run(run.id), []),
        )
        return summarize_run(run, jobs, artifacts)

    async def _fetch_deployment_inputs(
        self, head_sha: str
    ) -> Tuple[CheckSuite | None, List[CheckRun]]:
        suites = [suite async for suite in self.api.get_check_suites_for_ref(head_sha)]
        suite = find_deployment_suite(suites, self.settings)
        if suite is None:
            return None, []
        check_runs = await self._tolerant(
            "deployment_check_runs", self.api.get_check_runs_for_suite(suite), []
        )
        return suite, check_runs

    async def _fetch_comments(self, pr_number: int) -> List[IssueComment]:
        return [c async for c in self.api.get_issue_comments(pr_number)]

    async def _fetch_generation_info(
        self, directive: str | None, head_sha: str
    ) -> GenerationInfo:
        if directive is None:
            return GenerationInfo.not_applicable()
        path = self.settings.GENERATION_INFO_PATH.format(directive=directive)
        try:
            return await self._piece(
                "generation_info", self._load_generation_info(path, head_sha)
            )
        except PartialEvidenceError as e:
            self._record_partial(e)
            return GenerationInfo(status=GenerationInfoStatus.error, error=str(e))

    async def _load_generation_info(self, path: str, head_sha: str) -> GenerationInfo:
        try:
            content = await self.api.get_content(path, head_sha)
        except BadRequest as e:
            if github_status(e) != 404:
                raise
            logger.debug("Generation info not found path=%s ref=%s", path, head_sha)
            return GenerationInfo(
                status=GenerationInfoStatus.missing,
                error=f"File not found: {path} at ref {head_sha}",
            )

        data = ToolGenerationInfoFile.model_validate_json(content.decoded_content())
        return GenerationInfo(
            status=GenerationInfoStatus.found,
            dependencies_fulfilled=data.npm_dependencies_fulfilled,
            lint_fixes_attempted=data.lint_fixes_attempted,
            identified_dependencies=tuple(
                dep.package_name for dep in data.identified_dependencies or ()
            ),
        )
