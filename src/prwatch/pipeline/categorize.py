from __future__ import annotations

from typing import Dict, Iterable, List

from prwatch.config import Settings
from prwatch.github.model import ActionsJob, Artifact, WorkflowRun
from prwatch.pipeline.types import (
    ArtifactSummary,
    CategorizedRuns,
    JobSummary,
    RunSummary,
    Stage,
    StepSummary,
)


def workflow_filenames(settings: Settings) -> Dict[str, Stage]:
    return {
        settings.WORKFLOW_FILENAME_VALIDATION: Stage.validation,
        settings.WORKFLOW_FILENAME_DEPENDENCY: Stage.dependency,
        settings.WORKFLOW_FILENAME_LINT: Stage.lint,
    }


def stage_for_filename(filename: str, settings: Settings) -> Stage:
    return workflow_filenames(settings).get(filename, Stage.other)


def summarize_run(
    run: WorkflowRun,
    jobs: Iterable[ActionsJob] = (),
    artifacts: Iterable[Artifact] = (),
) -> RunSummary:
    return RunSummary(
        id=run.id,
        name=run.name or "Unnamed Workflow",
        workflow_filename=run.workflow_filename,
        status=run.status,
        conclusion=run.conclusion,
        head_sha=run.head_sha,
        created_at=run.created_at,
        updated_at=run.updated_at,
        run_attempt=run.run_attempt,
        html_url=run.html_url,
        event=run.event,
        jobs=tuple(
            JobSummary(
                id=job.id,
                name=job.name,
                status=job.status,
                conclusion=job.conclusion,
                html_url=job.html_url,
                started_at=job.started_at,
                completed_at=job.completed_at,
                steps=tuple(
                    StepSummary(
                        name=step.name,
                        status=step.status,
                        conclusion=step.conclusion,
                    )
                    for step in job.steps
                ),
            )
            for job in jobs
        ),
        artifacts=tuple(
            ArtifactSummary(
                id=art.id,
                name=art.name,
                size_in_bytes=art.size_in_bytes,
                expired=art.expired,
                expires_at=art.expires_at,
            )
            for art in artifacts
        ),
    )


def categorize_runs(runs: Iterable[RunSummary], settings: Settings) -> CategorizedRuns:
    """Bucket runs by pipeline stage, newest attempt first within each bucket."""
    buckets: Dict[Stage, List[RunSummary]] = {stage: [] for stage in Stage}
    for run in runs:
        buckets[stage_for_filename(run.workflow_filename, settings)].append(run)

    return CategorizedRuns(
        **{
            stage.value: tuple(
                sorted(bucket, key=lambda run: run.sort_key, reverse=True)
            )
            for stage, bucket in buckets.items()
        }
    )


def latest_run_for_head(
    runs: CategorizedRuns, stage: Stage, head_sha: str
) -> RunSummary | None:
    # runs from older commits never count, however recent
    for run in runs.for_stage(stage):
        if run.head_sha == head_sha:
            return run
    return None


def active_run_for_head(
    runs: CategorizedRuns, stage: Stage, head_sha: str
) -> RunSummary | None:
    run = latest_run_for_head(runs, stage, head_sha)
    if run is not None and run.is_active:
        return run
    return None
