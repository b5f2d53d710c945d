from __future__ import annotations

from gidgethub import BadRequest, GitHubException


class PrWatchError(Exception):
    status_code: int = 500


class InputError(PrWatchError):
    status_code = 400


class NotFoundError(PrWatchError):
    status_code = 404


class AuthError(PrWatchError):
    status_code = 403

    def __init__(self, *args, status_code: int = 403):
        super().__init__(*args)
        self.status_code = status_code


class ConfigurationError(PrWatchError):
    status_code = 500


class PartialEvidenceError(PrWatchError):
    """A single piece of evidence could not be fetched.

    Raised inside the fetcher only; it is logged and replaced by an empty
    result, never surfaced to callers.
    """

    piece: str

    def __init__(self, *args, piece: str):
        super().__init__(*args)
        self.piece = piece


def github_status(exc: GitHubException) -> int | None:
    status = getattr(exc, "status_code", None)
    return getattr(status, "value", status)


def raise_for_github_error(exc: GitHubException, *, what: str) -> None:
    """Translate a gidgethub exception into the error taxonomy.

    Always raises. Status codes other than 404/401/403 propagate unchanged.
    """
    status_value = github_status(exc)
    if isinstance(exc, BadRequest) and status_value == 404:
        raise NotFoundError(f"{what} not found") from exc
    if isinstance(exc, BadRequest) and status_value in (401, 403):
        raise AuthError(
            f"Permission issue fetching {what}: {exc}", status_code=status_value
        ) from exc
    raise exc
