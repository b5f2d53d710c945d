from __future__ import annotations

import time
from typing import Tuple, Union

from gidgethub import BadRequest
from sanic.log import logger

from prwatch.config import SETTINGS, Settings
from prwatch.errors import InputError, raise_for_github_error
from prwatch.github import GitHubClientProvider
from prwatch.metric import synthesis_counter, timeout_override_counter
from prwatch.model import StatusResponse
from prwatch.pipeline.fetch import EvidenceFetcher
from prwatch.pipeline.response import apply_polling_contract, build_response
from prwatch.pipeline.synthesizer import synthesize

RawParam = Union[str, int, None]


def _as_int(value: RawParam) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def parse_request(pr_number: RawParam, polling_attempt: RawParam = None) -> Tuple[int, int]:
    if pr_number is None or (isinstance(pr_number, str) and pr_number.strip() == ""):
        raise InputError("Missing prNumber query parameter.")
    number = _as_int(pr_number)
    if number is None or number <= 0:
        raise InputError("Invalid prNumber.")

    if polling_attempt is None or (
        isinstance(polling_attempt, str) and polling_attempt.strip() == ""
    ):
        return number, 0
    attempt = _as_int(polling_attempt)
    if attempt is None or attempt < 0:
        raise InputError("Invalid pollingAttempt.")
    return number, attempt


class StatusService:
    def __init__(self, provider: GitHubClientProvider, settings: Settings = SETTINGS):
        self.provider = provider
        self.settings = settings

    async def get_status(
        self, pr_number: RawParam, polling_attempt: RawParam = None
    ) -> StatusResponse:
        number, attempt = parse_request(pr_number, polling_attempt)
        started = time.monotonic()

        api = await self.provider.get_api()
        calls_before = api.call_count
        try:
            snapshot = await EvidenceFetcher(api, self.settings).fetch(number)
        except BadRequest as e:
            raise_for_github_error(e, what=f"PR #{number}")

        decision = synthesize(snapshot, self.settings)
        final = apply_polling_contract(
            decision, snapshot.pr, attempt, self.settings.MAX_POLLING_ATTEMPTS
        )
        if final is not decision:
            timeout_override_counter.inc()
            logger.warning(
                "Polling timeout pr=%d attempt=%d state=%s",
                number,
                attempt,
                decision.state.value,
            )
        synthesis_counter.labels(state=final.state.value).inc()

        logger.info(
            "Status pr=%d sha=%s attempt=%d state=%s next=%s continue=%s "
            "api_calls=%d duration_ms=%.1f",
            number,
            snapshot.pr.short_sha,
            attempt,
            final.state.value,
            final.next_action.value,
            final.continue_polling,
            api.call_count - calls_before,
            (time.monotonic() - started) * 1000.0,
        )
        return build_response(snapshot, final, self.settings)
