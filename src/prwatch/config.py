from __future__ import annotations

import logging
import os
from typing import Mapping

import dotenv
import pydantic

dotenv.load_dotenv()


class Settings(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(frozen=True)

    GITHUB_REPO_OWNER: str = "Online-Everything-Tool"
    GITHUB_REPO_NAME: str = "oet"
    GITHUB_APP_ID: int | None = None
    GITHUB_PRIVATE_KEY_BASE64: str | None = None
    GITHUB_TOKEN: str | None = None

    GITHUB_VPR_BOT_USERNAME: str = "github-actions[bot]"
    GITHUB_ADM_BOT_USERNAME: str = "github-actions[bot]"
    GITHUB_ALF_BOT_USERNAME: str = "github-actions[bot]"
    GITHUB_PR_CREATOR_BOT_USERNAME: str = "OET Bot"
    GENERIC_BOT_USERNAME: str = "github-actions[bot]"
    DEPLOY_BOT_USERNAME: str = "netlify[bot]"

    DEPLOY_APP_SLUG: str = "netlify"
    DEPLOY_PROVIDER_NAME: str = "Netlify"
    DEPLOY_PREVIEW_URL_PATTERN: str = (
        r"https://deploy-preview-\d+--[a-zA-Z0-9-]+\.netlify\.app"
    )
    ASSET_LINK_PROVIDER: str = "Imgur"

    WORKFLOW_FILENAME_VALIDATION: str = "validate_generated_tool_pr.yml"
    WORKFLOW_FILENAME_DEPENDENCY: str = "ai_dependency_manager.yml"
    WORKFLOW_FILENAME_LINT: str = "ai_lint_fixer.yml"

    TOOL_BRANCH_PREFIX: str = "feat/gen-"
    GENERATION_INFO_PATH: str = "app/tool/{directive}/tool-generation-info.json"
    SKIP_DEPLOY_TITLE_MARKER: str = "[skip netlify]"

    WORKFLOW_RUNS_PAGE_SIZE: int = 75
    COMMENTS_PAGE_SIZE: int = 10

    MAX_POLLING_ATTEMPTS: int = 360
    POLL_INTERVAL: float = 10.0

    ACCESS_TOKEN_TTL: float = 300.0

    OVERRIDE_LOGGING: str = "WARNING"
    TELEGRAM_TOKEN: str | None = None
    TELEGRAM_CHAT_ID: str | None = None

    @pydantic.field_validator(
        "GITHUB_APP_ID",
        "GITHUB_PRIVATE_KEY_BASE64",
        "GITHUB_TOKEN",
        "TELEGRAM_TOKEN",
        "TELEGRAM_CHAT_ID",
        mode="before",
    )
    @classmethod
    def _empty_as_none(cls, value):
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @pydantic.field_validator("WORKFLOW_RUNS_PAGE_SIZE", "COMMENTS_PAGE_SIZE")
    @classmethod
    def _clamp_page_size(cls, value: int) -> int:
        # GitHub caps per_page at 100
        return min(100, max(1, value))

    @property
    def repo_path(self) -> str:
        return f"/repos/{self.GITHUB_REPO_OWNER}/{self.GITHUB_REPO_NAME}"

    @property
    def log_level(self) -> int:
        level = logging.getLevelName(self.OVERRIDE_LOGGING.upper())
        return level if isinstance(level, int) else logging.WARNING

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        environ = os.environ if environ is None else environ
        values = {
            name: environ[name] for name in cls.model_fields if name in environ
        }
        return cls.model_validate(values)


SETTINGS = Settings.from_env()
