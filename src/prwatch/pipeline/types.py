from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Stage(str, Enum):
    validation = "validation"
    dependency = "dependency"
    lint = "lint"
    other = "other"


STAGE_LABELS = {
    Stage.validation: "VPR",
    Stage.dependency: "ADM",
    Stage.lint: "ALF",
    Stage.other: "Other",
}


class CommentOrigin(str, Enum):
    validation = "VPR"
    validation_generic = "VPR_generic"
    dependency = "ADM"
    dependency_generic = "ADM_generic"
    lint = "ALF"
    lint_generic = "ALF_generic"
    pr_creator = "PR_CREATOR_BOT"
    deployment = "Deployment"
    automation_other = "GitHubActionsBot_Other"
    other_bot = "OtherBot"
    human = "Human"

    @property
    def stage(self) -> Stage | None:
        return _ORIGIN_STAGES.get(self)


_ORIGIN_STAGES = {
    CommentOrigin.validation: Stage.validation,
    CommentOrigin.validation_generic: Stage.validation,
    CommentOrigin.dependency: Stage.dependency,
    CommentOrigin.dependency_generic: Stage.dependency,
    CommentOrigin.lint: Stage.lint,
    CommentOrigin.lint_generic: Stage.lint,
}


class PipelineState(str, Enum):
    VALIDATION_PENDING = "VALIDATION_PENDING"
    VALIDATION_RUNNING = "VALIDATION_RUNNING"
    VALIDATION_FINALIZING = "VALIDATION_FINALIZING"
    DEPENDENCY_FIX_EXPECTED = "DEPENDENCY_FIX_EXPECTED"
    DEPENDENCY_FIX_RUNNING = "DEPENDENCY_FIX_RUNNING"
    LINT_FIX_EXPECTED = "LINT_FIX_EXPECTED"
    LINT_FIX_RUNNING = "LINT_FIX_RUNNING"
    DEPLOY_PREVIEW_PENDING = "DEPLOY_PREVIEW_PENDING"
    USER_REVIEW_READY = "USER_REVIEW_READY"
    MANUAL_REVIEW_CRITICAL = "MANUAL_REVIEW_CRITICAL"
    MANUAL_REVIEW_UNKNOWN_FAILURE = "MANUAL_REVIEW_UNKNOWN_FAILURE"
    MANUAL_REVIEW_LINT_PERSISTS = "MANUAL_REVIEW_LINT_PERSISTS"
    MANUAL_REVIEW_DEPLOY_FAILED = "MANUAL_REVIEW_DEPLOY_FAILED"
    MANUAL_REVIEW_TIMEOUT = "MANUAL_REVIEW_TIMEOUT"
    CLOSED_MERGED = "CLOSED_MERGED"
    CLOSED_UNMERGED = "CLOSED_UNMERGED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {
        PipelineState.USER_REVIEW_READY,
        PipelineState.MANUAL_REVIEW_CRITICAL,
        PipelineState.MANUAL_REVIEW_UNKNOWN_FAILURE,
        PipelineState.MANUAL_REVIEW_LINT_PERSISTS,
        PipelineState.MANUAL_REVIEW_DEPLOY_FAILED,
        PipelineState.MANUAL_REVIEW_TIMEOUT,
        PipelineState.CLOSED_MERGED,
        PipelineState.CLOSED_UNMERGED,
    }
)


class NextAction(str, Enum):
    VPR_PENDING = "VPR_PENDING"
    VPR_RUNNING = "VPR_RUNNING"
    VPR_FINALIZING = "VPR_FINALIZING"
    ADM_EXPECTED = "ADM_EXPECTED"
    ADM_RUNNING = "ADM_RUNNING"
    ALF_EXPECTED = "ALF_EXPECTED"
    ALF_RUNNING = "ALF_RUNNING"
    DEPLOY_PREVIEW = "NETLIFY_PREVIEW"
    USER_REVIEW_PREVIEW = "USER_REVIEW_PREVIEW"
    MANUAL_REVIEW_CI_ERROR = "MANUAL_REVIEW_CI_ERROR"
    MANUAL_REVIEW_VPR_UNKNOWN = "MANUAL_REVIEW_VPR_UNKNOWN"
    MANUAL_REVIEW_DEPS = "MANUAL_REVIEW_DEPS"
    MANUAL_REVIEW_LINT = "MANUAL_REVIEW_LINT"
    MANUAL_REVIEW_LINT_API_FAIL = "MANUAL_REVIEW_LINT_API_FAIL"
    MANUAL_REVIEW_DEPLOY = "MANUAL_REVIEW_NETLIFY"
    MANUAL_REVIEW_TIMEOUT = "MANUAL_REVIEW_TIMEOUT"
    NONE = "NONE"


NEXT_ACTION_BY_STATE = {
    PipelineState.VALIDATION_PENDING: NextAction.VPR_PENDING,
    PipelineState.VALIDATION_RUNNING: NextAction.VPR_RUNNING,
    PipelineState.VALIDATION_FINALIZING: NextAction.VPR_FINALIZING,
    PipelineState.DEPENDENCY_FIX_EXPECTED: NextAction.ADM_EXPECTED,
    PipelineState.DEPENDENCY_FIX_RUNNING: NextAction.ADM_RUNNING,
    PipelineState.LINT_FIX_EXPECTED: NextAction.ALF_EXPECTED,
    PipelineState.LINT_FIX_RUNNING: NextAction.ALF_RUNNING,
    PipelineState.DEPLOY_PREVIEW_PENDING: NextAction.DEPLOY_PREVIEW,
    PipelineState.USER_REVIEW_READY: NextAction.USER_REVIEW_PREVIEW,
    PipelineState.MANUAL_REVIEW_CRITICAL: NextAction.MANUAL_REVIEW_CI_ERROR,
    PipelineState.MANUAL_REVIEW_UNKNOWN_FAILURE: NextAction.MANUAL_REVIEW_VPR_UNKNOWN,
    PipelineState.MANUAL_REVIEW_LINT_PERSISTS: NextAction.MANUAL_REVIEW_LINT,
    PipelineState.MANUAL_REVIEW_DEPLOY_FAILED: NextAction.MANUAL_REVIEW_DEPLOY,
    PipelineState.MANUAL_REVIEW_TIMEOUT: NextAction.MANUAL_REVIEW_TIMEOUT,
    PipelineState.CLOSED_MERGED: NextAction.NONE,
    PipelineState.CLOSED_UNMERGED: NextAction.NONE,
}


class GenerationInfoStatus(str, Enum):
    found = "found"
    missing = "missing"
    error = "error"
    not_applicable = "not_applicable"


@dataclass(frozen=True)
class PullRequestInfo:
    number: int
    title: str | None
    state: str
    merged: bool
    branch: str | None
    head_sha: str
    base_branch: str
    url: str
    user: str | None
    created_at: datetime
    updated_at: datetime

    @property
    def is_open(self) -> bool:
        return self.state == "open"

    @property
    def short_sha(self) -> str:
        return self.head_sha[:7]


@dataclass(frozen=True)
class StepSummary:
    name: str
    status: str | None
    conclusion: str | None


@dataclass(frozen=True)
class JobSummary:
    id: int
    name: str
    status: str | None
    conclusion: str | None
    html_url: str | None
    started_at: datetime | None
    completed_at: datetime | None
    steps: tuple[StepSummary, ...] = ()


@dataclass(frozen=True)
class ArtifactSummary:
    id: int
    name: str
    size_in_bytes: int
    expired: bool
    expires_at: datetime | None


@dataclass(frozen=True)
class RunSummary:
    id: int
    name: str
    workflow_filename: str
    status: str | None
    conclusion: str | None
    head_sha: str
    created_at: datetime
    updated_at: datetime
    run_attempt: int = 1
    html_url: str | None = None
    event: str | None = None
    jobs: tuple[JobSummary, ...] = ()
    artifacts: tuple[ArtifactSummary, ...] = ()

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    @property
    def is_active(self) -> bool:
        return self.status in ("queued", "in_progress", "requested", "pending", "waiting")

    @property
    def sort_key(self) -> tuple[datetime, int, int]:
        return (self.created_at, self.run_attempt, self.id)


@dataclass(frozen=True)
class CategorizedRuns:
    validation: tuple[RunSummary, ...] = ()
    dependency: tuple[RunSummary, ...] = ()
    lint: tuple[RunSummary, ...] = ()
    other: tuple[RunSummary, ...] = ()

    def for_stage(self, stage: Stage) -> tuple[RunSummary, ...]:
        return getattr(self, stage.value)


@dataclass(frozen=True)
class DeploymentCheck:
    name: str
    status: str | None
    conclusion: str | None
    details_url: str | None
    summary: str | None = None


@dataclass(frozen=True)
class DeploymentStatus:
    suite_id: int
    status: str | None
    conclusion: str | None
    app_slug: str | None
    details_url: str | None = None
    preview_url: str | None = None
    check_runs: tuple[DeploymentCheck, ...] = ()

    @property
    def is_pending(self) -> bool:
        return self.status in (None, "queued", "in_progress", "requested", "pending", "waiting")

    @property
    def succeeded(self) -> bool:
        return self.status == "completed" and self.conclusion == "success"

    @property
    def failed(self) -> bool:
        return self.status == "completed" and self.conclusion in (
            "failure",
            "cancelled",
            "timed_out",
        )


@dataclass(frozen=True)
class ClassifiedComment:
    id: int
    author: str | None
    is_bot: bool
    created_at: datetime
    updated_at: datetime
    body: str
    html_url: str | None
    origin: CommentOrigin
    run_id: int | None = None
    asset_url: str | None = None


@dataclass(frozen=True)
class GenerationInfo:
    status: GenerationInfoStatus
    dependencies_fulfilled: str | None = None
    lint_fixes_attempted: bool = False
    identified_dependencies: tuple[str, ...] = ()
    error: str | None = None

    @classmethod
    def not_applicable(cls) -> "GenerationInfo":
        return cls(status=GenerationInfoStatus.not_applicable)


@dataclass(frozen=True)
class EvidenceSnapshot:
    pr: PullRequestInfo
    runs: CategorizedRuns
    comments: tuple[ClassifiedComment, ...]
    deployment: DeploymentStatus | None
    generation_info: GenerationInfo
    tool_directive: str | None = None
    asset_url: str | None = None


@dataclass(frozen=True)
class LastBotComment:
    bot_name: str
    summary: str
    body: str
    timestamp: datetime
    url: str | None


@dataclass(frozen=True)
class PipelineDecision:
    state: PipelineState
    summary: str
    next_action: NextAction
    continue_polling: bool
    ui_hint: str
    overall_check_status: str = "unknown"
    active_stage: str | None = None
    last_bot_comment: LastBotComment | None = None
    deployment_succeeded: bool = False
    preview_url: str | None = None
