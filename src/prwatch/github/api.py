from typing import AsyncIterator, List
from urllib.parse import quote

from gidgethub.abc import GitHubAPI
from sanic.log import logger

from prwatch.github.model import (
    ActionsJob,
    Artifact,
    CheckRun,
    CheckSuite,
    Content,
    IssueComment,
    PullRequest,
    WorkflowRun,
)
from prwatch.metric import record_api_call


class API:
    gh: GitHubAPI
    repo_url: str

    call_count: int

    def __init__(self, gh: GitHubAPI, repo_url: str):
        self.gh = gh
        self.repo_url = repo_url
        self.call_count = 0

    def _count(self, url: str) -> None:
        self.call_count += 1
        record_api_call(endpoint=url)

    async def get_pull(self, number: int) -> PullRequest:
        url = f"{self.repo_url}/pulls/{number}"
        self._count(url)
        logger.debug("Get pull %s", url)
        return PullRequest.model_validate(await self.gh.getitem(url))

    async def get_workflow_runs(self, per_page: int) -> List[WorkflowRun]:
        url = f"{self.repo_url}/actions/runs?per_page={per_page}"
        self._count(url)
        logger.debug("Get recent workflow runs %s", url)
        data = await self.gh.getitem(url)
        return [WorkflowRun.model_validate(r) for r in data["workflow_runs"]]

    async def get_jobs_for_run(self, run_id: int) -> List[ActionsJob]:
        url = f"{self.repo_url}/actions/runs/{run_id}/jobs?per_page=100"
        self._count(url)
        logger.debug("Get jobs for run %d", run_id)
        data = await self.gh.getitem(url)
        return [ActionsJob.model_validate(j) for j in data["jobs"]]

    async def get_artifacts_for_run(self, run_id: int) -> List[Artifact]:
        url = f"{self.repo_url}/actions/runs/{run_id}/artifacts?per_page=100"
        self._count(url)
        logger.debug("Get artifacts for run %d", run_id)
        data = await self.gh.getitem(url)
        return [Artifact.model_validate(a) for a in data["artifacts"]]

    async def get_check_suites_for_ref(self, ref: str) -> AsyncIterator[CheckSuite]:
        url = f"{self.repo_url}/commits/{ref}/check-suites"
        self._count(url)
        logger.debug("Get check suites for ref %s", url)
        async for item in self.gh.getiter(url, iterable_key="check_suites"):
            yield CheckSuite.model_validate(item)

    async def get_check_runs_for_suite(self, suite: CheckSuite) -> List[CheckRun]:
        url = suite.check_runs_url or f"{self.repo_url}/check-suites/{suite.id}/check-runs"
        self._count(url)
        logger.debug("Get check runs for suite %d", suite.id)
        return [
            CheckRun.model_validate(item)
            async for item in self.gh.getiter(url, iterable_key="check_runs")
        ]

    async def get_issue_comments(self, number: int) -> AsyncIterator[IssueComment]:
        # the issue comments endpoint only lists oldest-first, so callers page
        # through everything and keep the tail
        url = f"{self.repo_url}/issues/{number}/comments?per_page=100"
        self._count(url)
        logger.debug("Get issue comments %s", url)
        async for item in self.gh.getiter(url):
            yield IssueComment.model_validate(item)

    async def get_content(self, path: str, ref: str) -> Content:
        url = f"{self.repo_url}/contents/{quote(path)}?ref={ref}"
        self._count(url)
        logger.debug("Get file content: %s", url)
        return Content.model_validate(await self.gh.getitem(url))
