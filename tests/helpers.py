from __future__ import annotations

import base64
import json
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from prwatch.config import Settings
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
from prwatch.pipeline.categorize import categorize_runs
from prwatch.pipeline.comments import classify_comment
from prwatch.pipeline.types import (
    ArtifactSummary,
    DeploymentStatus,
    EvidenceSnapshot,
    GenerationInfo,
    GenerationInfoStatus,
    JobSummary,
    PullRequestInfo,
    RunSummary,
)

SETTINGS = Settings()

HEAD_SHA = "a" * 40
OLD_SHA = "b" * 40
BRANCH = "feat/gen-json-formatter-17"
DIRECTIVE = "json-formatter"

VALIDATION = "validate_generated_tool_pr.yml"
DEPENDENCY = "ai_dependency_manager.yml"
LINT = "ai_lint_fixer.yml"

VALIDATION_HEADING = "## 🛡️ OET Tool PR Validation Status"
DEPENDENCY_HEADING = "## 🤖 AI Dependency Manager Results"
LINT_HEADING = "## 🤖 AI Lint Fixer Results"

BASE_TIME = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def ts(minutes: float = 0) -> datetime:
    return BASE_TIME + timedelta(minutes=minutes)


def iso(minutes: float = 0) -> str:
    return ts(minutes).isoformat().replace("+00:00", "Z")


def make_pr(**overrides) -> PullRequestInfo:
    data = dict(
        number=42,
        title="feat: Add JSON Formatter tool",
        state="open",
        merged=False,
        branch=BRANCH,
        head_sha=HEAD_SHA,
        base_branch="main",
        url="https://github.com/Online-Everything-Tool/oet/pull/42",
        user="OET Bot",
        created_at=ts(0),
        updated_at=ts(1),
    )
    data.update(overrides)
    return PullRequestInfo(**data)


def make_run(
    id: int,
    filename: str = VALIDATION,
    *,
    status: str = "completed",
    conclusion: Optional[str] = "success",
    head_sha: str = HEAD_SHA,
    minute: float = 0,
    run_attempt: int = 1,
    jobs: Iterable[JobSummary] = (),
    artifacts: Iterable[ArtifactSummary] = (),
) -> RunSummary:
    return RunSummary(
        id=id,
        name=filename,
        workflow_filename=filename,
        status=status,
        conclusion=conclusion if status == "completed" else None,
        head_sha=head_sha,
        created_at=ts(minute),
        updated_at=ts(minute + 1),
        run_attempt=run_attempt,
        html_url=f"https://github.com/Online-Everything-Tool/oet/actions/runs/{id}",
        jobs=tuple(jobs),
        artifacts=tuple(artifacts),
    )


def make_job(name: str, conclusion: Optional[str] = "success", id: int = 1) -> JobSummary:
    return JobSummary(
        id=id,
        name=name,
        status="completed",
        conclusion=conclusion,
        html_url=f"https://github.com/jobs/{id}",
        started_at=ts(0),
        completed_at=ts(2),
    )


def make_artifact(name: str, id: int = 1) -> ArtifactSummary:
    return ArtifactSummary(
        id=id, name=name, size_in_bytes=100, expired=False, expires_at=None
    )


def make_comment(
    id: int,
    body: str,
    *,
    login: str = "github-actions[bot]",
    bot: bool = True,
    minute: float = 0,
) -> IssueComment:
    return IssueComment.model_validate(
        {
            "id": id,
            "body": body,
            "user": {"login": login, "type": "Bot" if bot else "User"},
            "created_at": iso(minute),
            "updated_at": iso(minute),
            "html_url": f"https://github.com/Online-Everything-Tool/oet/pull/42#issuecomment-{id}",
        }
    )


def validation_comment(id: int, run_id: int, text: str, minute: float = 0):
    body = (
        f"{VALIDATION_HEADING}\n\n"
        f"Run: https://github.com/Online-Everything-Tool/oet/actions/runs/{run_id}\n\n"
        f"{text}\n"
    )
    return make_comment(id, body, minute=minute)


def make_deployment(
    status: str = "completed",
    conclusion: Optional[str] = "success",
    preview_url: Optional[str] = "https://deploy-preview-42--oet.netlify.app",
) -> DeploymentStatus:
    return DeploymentStatus(
        suite_id=900,
        status=status,
        conclusion=conclusion,
        app_slug="netlify",
        details_url="https://api.github.com/repos/o/r/check-suites/900",
        preview_url=preview_url,
    )


def found_info(**overrides) -> GenerationInfo:
    data = dict(
        status=GenerationInfoStatus.found,
        dependencies_fulfilled="true",
        lint_fixes_attempted=False,
        identified_dependencies=(),
    )
    data.update(overrides)
    return GenerationInfo(**data)


def missing_info() -> GenerationInfo:
    return GenerationInfo(
        status=GenerationInfoStatus.missing,
        error="File not found: app/tool/json-formatter/tool-generation-info.json",
    )


def make_snapshot(
    *,
    pr: Optional[PullRequestInfo] = None,
    runs: Iterable[RunSummary] = (),
    comments: Iterable[IssueComment] = (),
    deployment: Optional[DeploymentStatus] = None,
    generation_info: Optional[GenerationInfo] = None,
    tool_directive: Optional[str] = DIRECTIVE,
    asset_url: Optional[str] = None,
) -> EvidenceSnapshot:
    classified = sorted(
        (classify_comment(c, SETTINGS) for c in comments),
        key=lambda c: (c.created_at, c.id),
        reverse=True,
    )
    return EvidenceSnapshot(
        pr=pr or make_pr(),
        runs=categorize_runs(runs, SETTINGS),
        comments=tuple(classified),
        deployment=deployment,
        generation_info=generation_info or found_info(),
        tool_directive=tool_directive,
        asset_url=asset_url,
    )


def pull_payload(branch: str = BRANCH) -> dict:
    return {
        "url": "https://api.github.com/repos/Online-Everything-Tool/oet/pulls/42",
        "id": 5001,
        "number": 42,
        "title": "feat: Add JSON Formatter tool",
        "state": "open",
        "merged": False,
        "merged_at": None,
        "created_at": iso(0),
        "updated_at": iso(1),
        "html_url": "https://github.com/Online-Everything-Tool/oet/pull/42",
        "user": {"login": "OET Bot", "type": "Bot"},
        "head": {"ref": branch, "sha": HEAD_SHA},
        "base": {"ref": "main", "sha": "c" * 40},
    }


def run_payload(id: int, head_sha: str = HEAD_SHA, pull_requests=(), minute: int = 0) -> dict:
    return {
        "id": id,
        "name": "Validate Generated Tool PR",
        "path": f".github/workflows/{VALIDATION}",
        "head_sha": head_sha,
        "status": "completed",
        "conclusion": "failure",
        "created_at": iso(minute),
        "updated_at": iso(minute + 1),
        "pull_requests": list(pull_requests),
    }


def generation_info_content(data: dict) -> Content:
    raw = json.dumps(data).encode()
    return Content.model_validate(
        {
            "type": "file",
            "encoding": "base64",
            "size": len(raw),
            "name": "tool-generation-info.json",
            "path": "app/tool/json-formatter/tool-generation-info.json",
            "content": base64.b64encode(raw).decode(),
            "sha": "d" * 40,
        }
    )


class FakeAPI:
    """Stands in for prwatch.github.api.API, keyed failures raise on call."""

    def __init__(
        self,
        *,
        branch: str = BRANCH,
        runs: Optional[List[dict]] = None,
        comments=(),
        suites: Optional[List[dict]] = None,
        check_runs: Optional[List[dict]] = None,
        content=None,
        failures: Optional[Dict[str, Exception]] = None,
    ):
        self.branch = branch
        self.runs = runs or []
        self.comments = list(comments)
        self.suites = suites or []
        self.check_runs = check_runs or []
        self.content = content if content is not None else generation_info_content({})
        self.failures = failures or {}
        self.calls: List[str] = []
        self.call_count = 0

    def _call(self, name: str, key: Optional[str] = None):
        self.calls.append(name)
        self.call_count += 1
        failure = self.failures.get(key or name)
        if failure is not None:
            raise failure

    async def get_pull(self, number: int):
        self._call("get_pull")
        return PullRequest.model_validate(pull_payload(self.branch))

    async def get_workflow_runs(self, per_page: int):
        self._call("get_workflow_runs")
        return [WorkflowRun.model_validate(r) for r in self.runs]

    async def get_jobs_for_run(self, run_id: int):
        self._call("get_jobs_for_run", f"jobs:{run_id}")
        return [
            ActionsJob.model_validate(
                {"id": run_id * 10, "run_id": run_id, "name": "1. Build", "conclusion": "failure"}
            )
        ]

    async def get_artifacts_for_run(self, run_id: int):
        self._call("get_artifacts_for_run", f"artifacts:{run_id}")
        return [Artifact.model_validate({"id": run_id, "name": "lint-failure-data"})]

    async def get_check_suites_for_ref(self, ref: str):
        self._call("get_check_suites_for_ref")
        for suite in self.suites:
            yield CheckSuite.model_validate(suite)

    async def get_check_runs_for_suite(self, suite):
        self._call("get_check_runs_for_suite")
        return [CheckRun.model_validate(cr) for cr in self.check_runs]

    async def get_issue_comments(self, number: int):
        self._call("get_issue_comments")
        for comment in self.comments:
            yield comment

    async def get_content(self, path: str, ref: str):
        self._call("get_content")
        return self.content


