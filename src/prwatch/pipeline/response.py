from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import List

from prwatch.config import SETTINGS, Settings
from prwatch.model import (
    AutomatedActions,
    BotComment,
    CiCheck,
    ErrorResponse,
    StatusResponse,
    ToolGenerationInfoView,
)
from prwatch.pipeline.categorize import latest_run_for_head
from prwatch.pipeline.deployment import preview_check_url
from prwatch.pipeline.types import (
    NEXT_ACTION_BY_STATE,
    EvidenceSnapshot,
    GenerationInfo,
    GenerationInfoStatus,
    PipelineDecision,
    PipelineState,
    PullRequestInfo,
    Stage,
)

TIMEOUT_SUMMARY = (
    "Max polling attempts reached. Please check the PR on GitHub for the latest status."
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def apply_polling_contract(
    decision: PipelineDecision,
    pr: PullRequestInfo,
    polling_attempt: int,
    max_attempts: int,
) -> PipelineDecision:
    if not (pr.is_open and decision.continue_polling and polling_attempt >= max_attempts):
        return decision
    return replace(
        decision,
        state=PipelineState.MANUAL_REVIEW_TIMEOUT,
        summary=TIMEOUT_SUMMARY,
        next_action=NEXT_ACTION_BY_STATE[PipelineState.MANUAL_REVIEW_TIMEOUT],
        continue_polling=False,
        ui_hint="error",
    )


def flatten_checks(snapshot: EvidenceSnapshot, settings: Settings = SETTINGS) -> List[CiCheck]:
    run = latest_run_for_head(snapshot.runs, Stage.validation, snapshot.pr.head_sha)
    if run is None and snapshot.runs.validation:
        run = snapshot.runs.validation[0]

    checks = []
    if run is not None:
        checks.extend(
            CiCheck(
                name=job.name,
                status=job.status,
                conclusion=job.conclusion,
                url=job.html_url,
                started_at=job.started_at,
                completed_at=job.completed_at,
            )
            for job in run.jobs
        )

    deployment = snapshot.deployment
    if deployment is not None:
        checks.append(
            CiCheck(
                name=f"{settings.DEPLOY_PROVIDER_NAME} Deploy "
                f"({deployment.app_slug or 'site'})",
                status=deployment.status,
                conclusion=deployment.conclusion,
                url=preview_check_url(deployment),
            )
        )
    return checks


def generation_info_view(info: GenerationInfo) -> ToolGenerationInfoView:
    if info.status is GenerationInfoStatus.found:
        return ToolGenerationInfoView(
            dependencies_fulfilled=info.dependencies_fulfilled or "absent",
            lint_fixes_attempted=info.lint_fixes_attempted,
            identified_dependencies=list(info.identified_dependencies),
        )
    if info.status is GenerationInfoStatus.not_applicable:
        return ToolGenerationInfoView(
            dependencies_fulfilled="not_applicable",
            lint_fixes_attempted="not_applicable",
        )
    return ToolGenerationInfoView(
        dependencies_fulfilled="not_found",
        lint_fixes_attempted="not_found",
    )


def build_response(
    snapshot: EvidenceSnapshot,
    decision: PipelineDecision,
    settings: Settings = SETTINGS,
    now: datetime | None = None,
) -> StatusResponse:
    pr = snapshot.pr
    last = decision.last_bot_comment
    return StatusResponse(
        pr_url=pr.url,
        pr_number=pr.number,
        pr_title=pr.title,
        head_sha=pr.head_sha,
        pr_head_branch=pr.branch,
        pr_state=pr.state,
        is_merged=pr.merged,
        checks=flatten_checks(snapshot, settings),
        overall_check_status_for_head=decision.overall_check_status,
        deploy_preview_url=decision.preview_url,
        deployment_succeeded=decision.deployment_succeeded,
        asset_url=snapshot.asset_url,
        tool_generation_info=generation_info_view(snapshot.generation_info),
        automated_actions=AutomatedActions(
            status_summary=decision.summary,
            active_workflow=decision.active_stage,
            next_expected_action=decision.next_action.value,
            pipeline_state=decision.state.value,
            should_continue_polling=decision.continue_polling,
            last_bot_comment=(
                BotComment(
                    bot_name=last.bot_name,
                    summary=last.summary,
                    body=last.body,
                    timestamp=last.timestamp,
                    url=last.url,
                )
                if last is not None
                else None
            ),
            ui_hint=decision.ui_hint,
        ),
        last_updated=now or utcnow(),
    )


def error_response(message: str, now: datetime | None = None) -> ErrorResponse:
    return ErrorResponse(error=message, last_updated=now or utcnow())
