from __future__ import annotations

import asyncio
import base64
import binascii
import time

import aiocache
import aiohttp
import cachetools
from gidgethub import BadRequest
from gidgethub import aiohttp as gh_aiohttp
from gidgethub.apps import get_installation_access_token, get_jwt
from sanic.log import logger

from prwatch.config import SETTINGS, Settings
from prwatch.errors import ConfigurationError, raise_for_github_error
from prwatch.github.api import API
from prwatch.metric import record_api_call

USER_AGENT = "prwatch"


def decode_private_key(settings: Settings) -> str:
    if settings.GITHUB_APP_ID is None or settings.GITHUB_PRIVATE_KEY_BASE64 is None:
        raise ConfigurationError(
            "Server configuration error: GitHub App credentials missing."
        )
    try:
        private_key = base64.b64decode(settings.GITHUB_PRIVATE_KEY_BASE64).decode()
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ConfigurationError(
            f"Failed to decode private key from Base64: {e}"
        ) from e
    if not private_key.startswith("-----BEGIN"):
        raise ConfigurationError(
            "Decoded private key is invalid or not in PEM format."
        )
    return private_key


async def get_access_token(
    gh: gh_aiohttp.GitHubAPI,
    installation_id: int,
    *,
    app_id: int,
    private_key: str,
) -> str:
    logger.debug("Getting NEW installation access token for %d", installation_id)
    record_api_call(endpoint="installation_token")
    access_token_response = await get_installation_access_token(
        gh,
        installation_id=installation_id,
        app_id=str(app_id),
        private_key=private_key,
    )
    return access_token_response["token"]


class GitHubClientProvider:
    """Owns the authenticated API handle.

    The handle is built lazily on first use. Concurrent first callers wait on
    one lock so only a single auth handshake happens; the handle is rebuilt
    once ``ACCESS_TOKEN_TTL`` has passed. Installation tokens are cached per
    provider for the same TTL.
    """

    def __init__(self, settings: Settings = SETTINGS):
        self.settings = settings
        self.http_cache = cachetools.LRUCache(maxsize=500)
        self.token_cache = aiocache.SimpleMemoryCache()
        self._lock = asyncio.Lock()
        self._session: aiohttp.ClientSession | None = None
        self._api: API | None = None
        self._built_at = 0.0

    async def get_api(self) -> API:
        async with self._lock:
            now = time.monotonic()
            if (
                self._api is not None
                and now - self._built_at < self.settings.ACCESS_TOKEN_TTL
            ):
                return self._api
            logger.debug(
                "Building GitHub client for %s/%s",
                self.settings.GITHUB_REPO_OWNER,
                self.settings.GITHUB_REPO_NAME,
            )
            self._api = await self._build_api()
            self._built_at = now
            return self._api

    async def _access_token(
        self, gh: gh_aiohttp.GitHubAPI, installation_id: int, private_key: str
    ) -> str:
        key = f"token_{self.settings.GITHUB_APP_ID}_{installation_id}"
        token = await self.token_cache.get(key)
        if token is None:
            token = await get_access_token(
                gh,
                installation_id,
                app_id=self.settings.GITHUB_APP_ID,
                private_key=private_key,
            )
            await self.token_cache.set(key, token, ttl=self.settings.ACCESS_TOKEN_TTL)
        return token

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _build_api(self) -> API:
        session = self._get_session()
        if self.settings.GITHUB_TOKEN is not None:
            gh = gh_aiohttp.GitHubAPI(
                session,
                USER_AGENT,
                oauth_token=self.settings.GITHUB_TOKEN,
                cache=self.http_cache,
            )
            return API(gh, self.settings.repo_path)

        private_key = decode_private_key(self.settings)
        gh_app = gh_aiohttp.GitHubAPI(session, USER_AGENT)
        jwt = get_jwt(app_id=str(self.settings.GITHUB_APP_ID), private_key=private_key)
        try:
            record_api_call(endpoint=f"{self.settings.repo_path}/installation")
            installation = await gh_app.getitem(
                f"{self.settings.repo_path}/installation", jwt=jwt
            )
            token = await self._access_token(gh_app, installation["id"], private_key)
        except BadRequest as e:
            raise_for_github_error(
                e,
                what=(
                    "App installation for "
                    f"{self.settings.GITHUB_REPO_OWNER}/{self.settings.GITHUB_REPO_NAME}"
                ),
            )
        logger.info("GitHub App authentication successful")

        gh = gh_aiohttp.GitHubAPI(
            session,
            USER_AGENT,
            oauth_token=token,
            cache=self.http_cache,
        )
        return API(gh, self.settings.repo_path)

    async def close(self) -> None:
        async with self._lock:
            self._api = None
            if self._session is not None and not self._session.closed:
                await self._session.close()
            self._session = None
