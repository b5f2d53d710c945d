from prwatch.github.model import ActionsJob, Artifact, WorkflowRun
from prwatch.pipeline.categorize import (
    active_run_for_head,
    categorize_runs,
    latest_run_for_head,
    stage_for_filename,
    summarize_run,
)
from prwatch.pipeline.types import Stage

from helpers import (
    DEPENDENCY,
    HEAD_SHA,
    LINT,
    OLD_SHA,
    SETTINGS,
    VALIDATION,
    iso,
    make_run,
)


def test_stage_for_filename():
    assert stage_for_filename(VALIDATION, SETTINGS) is Stage.validation
    assert stage_for_filename(DEPENDENCY, SETTINGS) is Stage.dependency
    assert stage_for_filename(LINT, SETTINGS) is Stage.lint
    assert stage_for_filename("main.yml", SETTINGS) is Stage.other


def test_categorize_buckets_and_sorts_newest_first():
    runs = categorize_runs(
        [
            make_run(1, VALIDATION, minute=0),
            make_run(2, VALIDATION, minute=10),
            make_run(3, DEPENDENCY, minute=5),
            make_run(4, LINT, minute=7),
            make_run(5, "main.yml", minute=1),
            make_run(6, VALIDATION, minute=10, run_attempt=2),
        ],
        SETTINGS,
    )
    assert [r.id for r in runs.validation] == [6, 2, 1]
    assert [r.id for r in runs.dependency] == [3]
    assert [r.id for r in runs.lint] == [4]
    assert [r.id for r in runs.other] == [5]


def test_latest_run_for_head_skips_other_commits():
    runs = categorize_runs(
        [
            make_run(1, VALIDATION, minute=0),
            make_run(2, VALIDATION, minute=10, head_sha=OLD_SHA),
        ],
        SETTINGS,
    )
    assert latest_run_for_head(runs, Stage.validation, HEAD_SHA).id == 1
    assert latest_run_for_head(runs, Stage.lint, HEAD_SHA) is None


def test_active_run_for_head():
    runs = categorize_runs(
        [
            make_run(1, LINT, minute=0, status="in_progress"),
            make_run(2, DEPENDENCY, minute=0),
        ],
        SETTINGS,
    )
    assert active_run_for_head(runs, Stage.lint, HEAD_SHA).id == 1
    assert active_run_for_head(runs, Stage.dependency, HEAD_SHA) is None


def test_summarize_run_from_wire_models():
    run = WorkflowRun.model_validate(
        {
            "id": 55,
            "name": None,
            "path": ".github/workflows/validate_generated_tool_pr.yml",
            "head_sha": HEAD_SHA,
            "status": "completed",
            "conclusion": "failure",
            "run_attempt": 2,
            "created_at": iso(0),
            "updated_at": iso(3),
            "pull_requests": [{"id": 1, "number": 42}],
        }
    )
    job = ActionsJob.model_validate(
        {
            "id": 9,
            "run_id": 55,
            "name": "1. Build",
            "status": "completed",
            "conclusion": "failure",
            "steps": [{"name": "npm ci", "status": "completed", "conclusion": "success"}],
        }
    )
    artifact = Artifact.model_validate({"id": 3, "name": "lint-failure-data-55"})

    summary = summarize_run(run, [job], [artifact])

    assert summary.name == "Unnamed Workflow"
    assert summary.workflow_filename == VALIDATION
    assert summary.run_attempt == 2
    assert summary.jobs[0].steps[0].name == "npm ci"
    assert summary.artifacts[0].name == "lint-failure-data-55"
