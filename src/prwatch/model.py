from datetime import datetime
from typing import List, Literal, Optional, Union

import pydantic
from pydantic.alias_generators import to_camel


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid")


class IdentifiedDependency(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="ignore")

    package_name: str = pydantic.Field(alias="packageName")


class ToolGenerationInfoFile(pydantic.BaseModel):
    """Contents of the per-tool generation info file committed by the generator."""

    model_config = pydantic.ConfigDict(extra="ignore")

    npm_dependencies_fulfilled: Literal["true", "false", "absent"] = pydantic.Field(
        "absent", alias="npmDependenciesFulfilled"
    )
    lint_fixes_attempted: bool = pydantic.Field(False, alias="lintFixesAttempted")
    identified_dependencies: Optional[List[IdentifiedDependency]] = pydantic.Field(
        None, alias="identifiedDependencies"
    )

    @pydantic.field_validator("npm_dependencies_fulfilled", mode="before")
    @classmethod
    def _bool_as_text(cls, value):
        if isinstance(value, bool):
            return "true" if value else "false"
        if value is None:
            return "absent"
        return value


OverallCheckStatus = Literal["pending", "success", "failure", "neutral", "unknown"]
UiHint = Literal["info", "success", "warning", "error", "loading"]


class ResponseModel(Model):
    model_config = pydantic.ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CiCheck(ResponseModel):
    name: str
    status: Optional[str] = None
    conclusion: Optional[str] = None
    url: Optional[str] = None
    # GitHub's own field names are kept for the job timestamps
    started_at: Optional[datetime] = pydantic.Field(None, alias="started_at")
    completed_at: Optional[datetime] = pydantic.Field(None, alias="completed_at")


class BotComment(ResponseModel):
    bot_name: str
    summary: str
    body: str
    timestamp: datetime
    url: Optional[str] = None


class AutomatedActions(ResponseModel):
    status_summary: str
    active_workflow: Optional[str] = None
    next_expected_action: str
    pipeline_state: str
    should_continue_polling: bool
    last_bot_comment: Optional[BotComment] = None
    ui_hint: UiHint


class ToolGenerationInfoView(ResponseModel):
    dependencies_fulfilled: Literal[
        "true", "false", "absent", "not_found", "not_applicable"
    ]
    lint_fixes_attempted: Union[bool, Literal["not_found", "not_applicable"]]
    identified_dependencies: Optional[List[str]] = None


class StatusResponse(ResponseModel):
    pr_url: str
    pr_number: int
    pr_title: Optional[str] = None
    head_sha: str
    pr_head_branch: Optional[str] = None
    pr_state: Literal["open", "closed"]
    is_merged: bool
    checks: List[CiCheck] = pydantic.Field(default_factory=list)
    overall_check_status_for_head: OverallCheckStatus
    deploy_preview_url: Optional[str] = None
    deployment_succeeded: bool
    asset_url: Optional[str] = None
    tool_generation_info: ToolGenerationInfoView
    automated_actions: AutomatedActions
    last_updated: datetime


class ErrorResponse(ResponseModel):
    error: str
    last_updated: datetime
