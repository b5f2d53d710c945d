from datetime import datetime
from typing import List, Literal, Optional
import base64

import pydantic


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="ignore")


RunStatus = Literal[
    "requested",
    "queued",
    "in_progress",
    "completed",
    "pending",
    "waiting",
]

Conclusion = Literal[
    "action_required",
    "cancelled",
    "failure",
    "neutral",
    "success",
    "skipped",
    "stale",
    "timed_out",
    "startup_failure",
]


class Content(Model):
    type: str
    encoding: Optional[str] = None
    size: int
    name: str
    path: str
    content: Optional[str] = None
    sha: str
    html_url: Optional[str] = None

    def decoded_content(self) -> str:
        if self.encoding != "base64" or self.content is None:
            raise ValueError(f"Unknown encoding {self.encoding}")
        return base64.b64decode(self.content).decode()


class User(Model):
    login: str
    type: Optional[str] = None

    @property
    def is_bot(self) -> bool:
        return self.type == "Bot"


class PrConnection(Model):
    ref: str
    sha: str


class PullRequest(Model):
    url: str
    id: int
    number: int
    title: Optional[str] = None
    state: Literal["open", "closed"]
    merged: Optional[bool] = None
    merged_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    html_url: str
    user: Optional[User] = None
    head: PrConnection
    base: PrConnection

    @property
    def is_merged(self) -> bool:
        return self.merged is True or self.merged_at is not None


class LinkedPullRequest(Model):
    id: int
    number: int


class App(Model):
    id: int
    slug: Optional[str] = None


class WorkflowRun(Model):
    id: int
    name: Optional[str] = None
    path: str = ""
    head_sha: str
    head_branch: Optional[str] = None
    event: Optional[str] = None
    status: Optional[RunStatus] = None
    conclusion: Optional[Conclusion] = None
    run_attempt: int = 1
    html_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    pull_requests: List[LinkedPullRequest] = pydantic.Field(default_factory=list)

    @property
    def workflow_filename(self) -> str:
        return self.path.rsplit("/", 1)[-1]


class JobStep(Model):
    name: str
    number: Optional[int] = None
    status: Optional[str] = None
    conclusion: Optional[str] = None


class ActionsJob(Model):
    id: int
    run_id: int
    name: str
    status: Optional[str] = None
    conclusion: Optional[str] = None
    html_url: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    run_attempt: int = 1
    steps: List[JobStep] = pydantic.Field(default_factory=list)


class Artifact(Model):
    id: int
    name: str
    size_in_bytes: int = 0
    expired: bool = False
    expires_at: Optional[datetime] = None


class CheckSuite(Model):
    id: int
    head_branch: Optional[str] = None
    head_sha: str
    status: Optional[RunStatus] = None
    conclusion: Optional[Conclusion] = None
    url: Optional[str] = None
    check_runs_url: Optional[str] = None
    app: Optional[App] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __hash__(self):
        return self.id


class CheckRunOutput(Model):
    title: Optional[str] = None
    summary: Optional[str] = None
    text: Optional[str] = None


class CheckRun(Model):
    id: int
    name: str
    head_sha: str
    status: Optional[RunStatus] = None
    conclusion: Optional[Conclusion] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    details_url: Optional[str] = None
    html_url: Optional[str] = None
    app: Optional[App] = None
    output: Optional[CheckRunOutput] = None




class IssueComment(Model):
    id: int
    body: Optional[str] = None
    user: Optional[User] = None
    created_at: datetime
    updated_at: datetime
    html_url: Optional[str] = None
