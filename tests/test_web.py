import json
from http import HTTPStatus
from types import SimpleNamespace

import pytest
from gidgethub import GitHubBroken

from prwatch.errors import AuthError, ConfigurationError, InputError, NotFoundError
from prwatch.metric import error_counter
from prwatch.pipeline.response import build_response
from prwatch.pipeline.synthesizer import synthesize
from prwatch.web import handle_status_request

from helpers import SETTINGS, make_run, make_snapshot


class _FakeService:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def get_status(self, pr_number, polling_attempt=None):
        self.calls.append((pr_number, polling_attempt))
        if self.error is not None:
            raise self.error
        return self.result


def _app(service):
    return SimpleNamespace(ctx=SimpleNamespace(service=service))


def _request(**args):
    return SimpleNamespace(args=args)


def _errors() -> float:
    return error_counter.labels(context="status_pr")._value.get()


@pytest.mark.asyncio
async def test_status_request_success():
    snapshot = make_snapshot(runs=[make_run(100, status="in_progress")])
    result = build_response(snapshot, synthesize(snapshot, SETTINGS), SETTINGS)
    service = _FakeService(result=result)

    resp = await handle_status_request(
        _app(service), _request(prNumber="42", pollingAttempt="3")
    )

    assert resp.status == 200
    body = json.loads(resp.body)
    assert body["prNumber"] == 42
    assert body["automatedActions"]["pipelineState"] == "VALIDATION_RUNNING"
    assert body["automatedActions"]["shouldContinuePolling"] is True
    assert service.calls == [("42", "3")]


@pytest.mark.parametrize(
    "error, status",
    [
        (InputError("Missing prNumber query parameter."), 400),
        (NotFoundError("PR #42 not found"), 404),
        (AuthError("Permission issue fetching PR #42", status_code=401), 401),
        (AuthError("Permission issue fetching PR #42"), 403),
    ],
)
@pytest.mark.asyncio
async def test_status_request_client_errors(error, status):
    before = _errors()
    resp = await handle_status_request(
        _app(_FakeService(error=error)), _request(prNumber="42")
    )

    assert resp.status == status
    body = json.loads(resp.body)
    assert body["error"] == str(error)
    assert "lastUpdated" in body
    assert _errors() == before


@pytest.mark.parametrize(
    "error, message",
    [
        (
            ConfigurationError("Server configuration error: GitHub App credentials missing."),
            "Server configuration error: GitHub App credentials missing.",
        ),
        (GitHubBroken(HTTPStatus.BAD_GATEWAY), "GitHub API error: "),
        (RuntimeError("boom"), "boom"),
    ],
)
@pytest.mark.asyncio
async def test_status_request_server_errors(error, message):
    before = _errors()
    resp = await handle_status_request(
        _app(_FakeService(error=error)), _request(prNumber="42")
    )

    assert resp.status == 500
    assert json.loads(resp.body)["error"].startswith(message)
    assert _errors() == before + 1


@pytest.mark.asyncio
async def test_missing_args_are_passed_as_none():
    service = _FakeService(error=InputError("Missing prNumber query parameter."))
    resp = await handle_status_request(_app(service), _request())
    assert resp.status == 400
    assert service.calls == [(None, None)]
