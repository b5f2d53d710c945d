"""Derives the pipeline state of a pull request from an evidence snapshot.

``synthesize`` is a pure function: the same snapshot always yields the same
decision, and contradictory evidence is resolved by the fixed rule order below
rather than raised.

1. closed pull requests
2. validation finalized, deployment tracking
3. latest validation run on the head commit
4. dependency or lint fixer running on the head commit
5. waiting for validation to start
"""

from __future__ import annotations

from typing import Optional, Tuple

from prwatch.config import SETTINGS, Settings
from prwatch.pipeline.categorize import active_run_for_head, latest_run_for_head
from prwatch.pipeline.comments import last_bot_comment_digest, newest_of
from prwatch.pipeline.deployment import resolve_preview_url, tool_preview_url
from prwatch.pipeline.types import (
    NEXT_ACTION_BY_STATE,
    STAGE_LABELS,
    EvidenceSnapshot,
    GenerationInfoStatus,
    NextAction,
    PipelineDecision,
    PipelineState,
    RunSummary,
    Stage,
)

# ordered, matched case-insensitively against the validation comment for the failed run
FAILURE_MARKERS: Tuple[Tuple[str, PipelineState], ...] = (
    ("dependency pending", PipelineState.DEPENDENCY_FIX_EXPECTED),
    ("build/lint errors", PipelineState.LINT_FIX_EXPECTED),
    ("critical initial validation failed", PipelineState.MANUAL_REVIEW_CRITICAL),
    ("errors could not be captured", PipelineState.MANUAL_REVIEW_CRITICAL),
)

REPORT_JOB_NAME = "Report PR Validation Status"
LINT_ARTIFACT_PREFIX = "lint-failure-data"
LINT_API_FAILURE_MARKER = "AI Lint Fix API Call Failed"

_RUNNING_STATES = {
    PipelineState.DEPENDENCY_FIX_EXPECTED: (
        Stage.dependency,
        PipelineState.DEPENDENCY_FIX_RUNNING,
    ),
    PipelineState.LINT_FIX_EXPECTED: (Stage.lint, PipelineState.LINT_FIX_RUNNING),
}

_STAGE_NAMES = {
    Stage.validation: "VPR",
    Stage.dependency: "AI Dependency Manager (ADM)",
    Stage.lint: "AI Lint Fixer (ALF)",
}


def validation_finalized(snapshot: EvidenceSnapshot, settings: Settings = SETTINGS) -> bool:
    """Whether the validation stage has finished for the head commit.

    There is no explicit completion signal: validation removes the tool's
    generation info file once it is done, so a missing file on a tool branch
    is taken as the signal. Pull requests that opt out of deployment by title
    are never considered finalized.
    """
    pr = snapshot.pr
    return (
        snapshot.generation_info.status is GenerationInfoStatus.missing
        and snapshot.tool_directive is not None
        and pr.title is not None
        and settings.SKIP_DEPLOY_TITLE_MARKER not in pr.title
    )


def _tool_name(snapshot: EvidenceSnapshot) -> str:
    return snapshot.tool_directive or snapshot.pr.branch or f"PR #{snapshot.pr.number}"


def _decision(
    snapshot: EvidenceSnapshot,
    state: PipelineState,
    summary: str,
    ui_hint: str,
    overall_check_status: str,
    next_action: Optional[NextAction] = None,
    preview_url: Optional[str] = None,
) -> PipelineDecision:
    deployment = snapshot.deployment
    return PipelineDecision(
        state=state,
        summary=summary,
        next_action=next_action or NEXT_ACTION_BY_STATE[state],
        continue_polling=not state.is_terminal,
        ui_hint=ui_hint,
        overall_check_status=overall_check_status,
        active_stage=_active_stage(snapshot),
        last_bot_comment=last_bot_comment_digest(snapshot.comments),
        deployment_succeeded=deployment is not None and deployment.succeeded,
        preview_url=preview_url,
    )


def _active_stage(snapshot: EvidenceSnapshot) -> Optional[str]:
    for stage in (Stage.validation, Stage.dependency, Stage.lint):
        if active_run_for_head(snapshot.runs, stage, snapshot.pr.head_sha):
            return STAGE_LABELS[stage]
    return None


def _closed(snapshot: EvidenceSnapshot, settings: Settings) -> PipelineDecision:
    pr = snapshot.pr
    name = _tool_name(snapshot)
    if snapshot.deployment is not None and snapshot.deployment.preview_url:
        preview_url = snapshot.deployment.preview_url
    else:
        preview_url = resolve_preview_url((), snapshot.comments, settings)

    if pr.merged:
        return _decision(
            snapshot,
            PipelineState.CLOSED_MERGED,
            f"PR #{pr.number} for '{name}' was MERGED!",
            "success",
            "success",
            preview_url=preview_url,
        )

    overall = "unknown"
    if snapshot.runs.validation:
        conclusion = snapshot.runs.validation[0].conclusion
        if conclusion in ("success", "failure"):
            overall = conclusion
    return _decision(
        snapshot,
        PipelineState.CLOSED_UNMERGED,
        f"PR #{pr.number} for '{name}' was CLOSED without merging.",
        "info",
        overall,
        preview_url=preview_url,
    )


def _deployment_tracking(
    snapshot: EvidenceSnapshot, settings: Settings
) -> PipelineDecision:
    name = _tool_name(snapshot)
    provider = settings.DEPLOY_PROVIDER_NAME
    deployment = snapshot.deployment

    if deployment is not None and deployment.succeeded:
        return _decision(
            snapshot,
            PipelineState.USER_REVIEW_READY,
            f"{provider} Deploy Preview for '{name}' is READY!",
            "success",
            "success",
            preview_url=tool_preview_url(deployment.preview_url, snapshot.tool_directive),
        )
    if deployment is not None and deployment.failed:
        return _decision(
            snapshot,
            PipelineState.MANUAL_REVIEW_DEPLOY_FAILED,
            f"VPR checks passed, but {provider} Deploy Preview FAILED for "
            f"'{name}'. Manual review needed.",
            "error",
            "success",
        )
    if deployment is None or deployment.is_pending:
        status = deployment.status if deployment is not None else None
        return _decision(
            snapshot,
            PipelineState.DEPLOY_PREVIEW_PENDING,
            f"VPR checks passed! {provider} Deploy Preview is {status or 'pending'} "
            f"for '{name}'.",
            "loading",
            "success",
        )
    return _decision(
        snapshot,
        PipelineState.DEPLOY_PREVIEW_PENDING,
        f"VPR checks passed for commit {snapshot.pr.short_sha}. "
        f"Waiting for {provider}...",
        "loading",
        "success",
    )


def _lint_outcome(
    snapshot: EvidenceSnapshot,
) -> Tuple[PipelineState, str, Optional[NextAction]]:
    if snapshot.generation_info.lint_fixes_attempted:
        return (
            PipelineState.MANUAL_REVIEW_LINT_PERSISTS,
            "AI Lint Fixer previously tried. Build/lint issues persist. "
            "Manual review of PR required.",
            None,
        )
    lint_comment = newest_of(snapshot.comments, lambda c: c.origin.stage is Stage.lint)
    if lint_comment is not None and LINT_API_FAILURE_MARKER in lint_comment.body:
        return (
            PipelineState.MANUAL_REVIEW_LINT_PERSISTS,
            "AI Lint Fixer API error. Manual review required.",
            NextAction.MANUAL_REVIEW_LINT_API_FAIL,
        )
    return (
        PipelineState.LINT_FIX_EXPECTED,
        "VPR detected build/lint issues. Expecting AI Lint Fixer (ALF) to run.",
        None,
    )


def _dependency_outcome() -> Tuple[PipelineState, str, Optional[NextAction]]:
    return (
        PipelineState.DEPENDENCY_FIX_EXPECTED,
        "VPR identified new dependencies. Expecting AI Dependency Manager (ADM) to run.",
        None,
    )


def classify_failure(
    snapshot: EvidenceSnapshot, run: RunSummary
) -> Tuple[PipelineState, str, Optional[NextAction]]:
    """Decide why the validation run failed.

    The validation comment referencing this exact run is consulted first.
    Without a recognizable comment, job results, artifacts and the generation
    info file are used.
    """
    comment = newest_of(
        snapshot.comments,
        lambda c: c.origin.stage is Stage.validation and c.run_id == run.id,
    )
    if comment is not None:
        body = comment.body.lower()
        for marker, state in FAILURE_MARKERS:
            if marker not in body:
                continue
            if state is PipelineState.DEPENDENCY_FIX_EXPECTED:
                return _dependency_outcome()
            if state is PipelineState.LINT_FIX_EXPECTED:
                return _lint_outcome(snapshot)
            return (
                state,
                f"Critical VPR failure reported for run {run.id}. "
                "Manual review of Actions logs needed.",
                None,
            )

    report_job = next((job for job in run.jobs if REPORT_JOB_NAME in job.name), None)
    if report_job is not None and report_job.conclusion == "failure":
        return (
            PipelineState.MANUAL_REVIEW_CRITICAL,
            f"Critical VPR Error: 'Report PR Status' job failed (run {run.id}). "
            "Manual review of Actions logs needed.",
            None,
        )

    if any(art.name.startswith(LINT_ARTIFACT_PREFIX) for art in run.artifacts):
        return _lint_outcome(snapshot)

    info = snapshot.generation_info
    if info.identified_dependencies and info.dependencies_fulfilled == "absent":
        return _dependency_outcome()
    if info.dependencies_fulfilled == "false":
        return (
            PipelineState.MANUAL_REVIEW_UNKNOWN_FAILURE,
            "AI Dependency Manager previously failed. Manual review required.",
            NextAction.MANUAL_REVIEW_DEPS,
        )

    return (
        PipelineState.MANUAL_REVIEW_UNKNOWN_FAILURE,
        f"VPR failed (commit {snapshot.pr.short_sha}). Cause unclear. "
        "Manual review of PR & Actions needed.",
        None,
    )


def _running_summary(stage: Stage, run: RunSummary, short_sha: str) -> str:
    return f"{_STAGE_NAMES[stage]} is {run.status} for commit {short_sha}..."


def _validation_run(
    snapshot: EvidenceSnapshot, run: RunSummary, settings: Settings
) -> PipelineDecision:
    sha = snapshot.pr.short_sha
    if not run.is_completed:
        return _decision(
            snapshot,
            PipelineState.VALIDATION_RUNNING,
            f"VPR workflow is {run.status} for commit {sha}...",
            "loading",
            "pending",
        )

    if run.conclusion == "success":
        return _decision(
            snapshot,
            PipelineState.VALIDATION_FINALIZING,
            f"VPR checks passed for commit {sha}. "
            f"Finalizing for {settings.DEPLOY_PROVIDER_NAME} preview...",
            "loading",
            "success",
        )

    if run.conclusion != "failure":
        overall = "neutral" if run.conclusion == "neutral" else "failure"
        return _decision(
            snapshot,
            PipelineState.MANUAL_REVIEW_UNKNOWN_FAILURE,
            f"VPR concluded '{run.conclusion}' for commit {sha}. "
            "Manual review of PR & Actions needed.",
            "error",
            overall,
        )

    state, summary, next_action = classify_failure(snapshot, run)
    if state in _RUNNING_STATES:
        stage, running_state = _RUNNING_STATES[state]
        active = active_run_for_head(snapshot.runs, stage, snapshot.pr.head_sha)
        if active is not None:
            state = running_state
            summary = _running_summary(stage, active, sha)
    return _decision(
        snapshot,
        state,
        summary,
        "error" if state.is_terminal else "loading",
        "failure",
        next_action=next_action,
    )


def synthesize(
    snapshot: EvidenceSnapshot, settings: Settings = SETTINGS
) -> PipelineDecision:
    pr = snapshot.pr
    if not pr.is_open:
        return _closed(snapshot, settings)

    if validation_finalized(snapshot, settings):
        return _deployment_tracking(snapshot, settings)

    run = latest_run_for_head(snapshot.runs, Stage.validation, pr.head_sha)
    if run is not None:
        return _validation_run(snapshot, run, settings)

    for stage, state in (
        (Stage.dependency, PipelineState.DEPENDENCY_FIX_RUNNING),
        (Stage.lint, PipelineState.LINT_FIX_RUNNING),
    ):
        active = active_run_for_head(snapshot.runs, stage, pr.head_sha)
        if active is not None:
            return _decision(
                snapshot,
                state,
                _running_summary(stage, active, pr.short_sha),
                "loading",
                "pending",
            )

    return _decision(
        snapshot,
        PipelineState.VALIDATION_PENDING,
        f"Waiting for VPR checks to start for commit {pr.short_sha}...",
        "loading",
        "pending",
    )
