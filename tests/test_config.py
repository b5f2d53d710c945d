import logging
from http import HTTPStatus

import pytest
from gidgethub import BadRequest, GitHubBroken

from prwatch.config import Settings
from prwatch.errors import AuthError, NotFoundError, raise_for_github_error


def test_settings_from_env():
    settings = Settings.from_env(
        {
            "GITHUB_REPO_OWNER": "acme",
            "GITHUB_REPO_NAME": "tools",
            "GITHUB_APP_ID": "1234",
            "GITHUB_TOKEN": "",
            "COMMENTS_PAGE_SIZE": "500",
            "OVERRIDE_LOGGING": "debug",
            "UNRELATED": "x",
        }
    )
    assert settings.repo_path == "/repos/acme/tools"
    assert settings.GITHUB_APP_ID == 1234
    assert settings.GITHUB_TOKEN is None
    assert settings.COMMENTS_PAGE_SIZE == 100
    assert settings.log_level == logging.DEBUG


def test_settings_defaults():
    settings = Settings.from_env({})
    assert settings.WORKFLOW_RUNS_PAGE_SIZE == 75
    assert settings.MAX_POLLING_ATTEMPTS == 360
    assert settings.log_level == logging.WARNING


def test_unknown_log_level_falls_back_to_warning():
    assert Settings(OVERRIDE_LOGGING="chatty").log_level == logging.WARNING


def test_raise_for_github_error_not_found():
    with pytest.raises(NotFoundError, match="PR #7 not found"):
        raise_for_github_error(BadRequest(HTTPStatus.NOT_FOUND), what="PR #7")


@pytest.mark.parametrize("status", [HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN])
def test_raise_for_github_error_auth(status):
    with pytest.raises(AuthError, match="Permission issue fetching PR #7") as exc_info:
        raise_for_github_error(BadRequest(status), what="PR #7")
    assert exc_info.value.status_code == status.value


@pytest.mark.parametrize(
    "exc",
    [
        BadRequest(HTTPStatus.UNPROCESSABLE_ENTITY),
        GitHubBroken(HTTPStatus.SERVICE_UNAVAILABLE),
    ],
)
def test_raise_for_github_error_passes_through(exc):
    with pytest.raises(type(exc)) as exc_info:
        raise_for_github_error(exc, what="PR #7")
    assert exc_info.value is exc
