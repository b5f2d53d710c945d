"""Comment classification.

Every issue comment is tagged with the automation that wrote it. The tag is a
pure function of one comment: the author login, the author type and the body.
Rules live in an explicit ordered table so that each of them can be listed and
tested on its own; bump ``CLASSIFICATION_RULES_VERSION`` whenever the table
changes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Sequence

from prwatch.config import Settings
from prwatch.github.model import IssueComment
from prwatch.pipeline.types import (
    STAGE_LABELS,
    ClassifiedComment,
    CommentOrigin,
    LastBotComment,
    Stage,
)

CLASSIFICATION_RULES_VERSION = 1

STAGE_MARKERS = {
    Stage.validation: "OET Tool PR Validation Status",
    Stage.dependency: "AI Dependency Manager Results",
    Stage.lint: "AI Lint Fixer Results",
}

# the generic identity is shared by all stage bots, markers are tried in this order
GENERIC_MARKER_ORDER = (Stage.validation, Stage.lint, Stage.dependency)

_GENERIC_ORIGINS = {
    Stage.validation: CommentOrigin.validation_generic,
    Stage.dependency: CommentOrigin.dependency_generic,
    Stage.lint: CommentOrigin.lint_generic,
}

_RUN_ID_PATTERN = re.compile(r"/actions/runs/(\d+)")

SUMMARY_MAX_LENGTH = 100


def _marker_pattern(title: str) -> re.Pattern:
    # level-2 heading, optionally with an emoji between the hashes and the title
    return re.compile(r"^##[ \t]*(?:\S+[ \t]+)?" + re.escape(title), re.MULTILINE)


_MARKER_PATTERNS = {stage: _marker_pattern(title) for stage, title in STAGE_MARKERS.items()}


def has_marker(body: str, stage: Stage) -> bool:
    return _MARKER_PATTERNS[stage].search(body) is not None


def _login(comment: IssueComment) -> str:
    if comment.user is None:
        return ""
    return comment.user.login.lower()


def _is_bot(comment: IssueComment) -> bool:
    return comment.user is not None and comment.user.is_bot


@dataclass(frozen=True)
class ClassificationRule:
    """One row of the classification table.

    ``author`` is the settings attribute holding the login to match, ``None``
    matches any author. ``stage`` restricts the rule to bodies carrying that
    stage's marker heading.
    """

    name: str
    origin: CommentOrigin
    author: str | None = None
    stage: Stage | None = None

    def matches(self, comment: IssueComment, settings: Settings) -> bool:
        if self.author is not None:
            expected = getattr(settings, self.author).lower()
            if _login(comment) != expected:
                return False
        if self.stage is not None and not has_marker(comment.body or "", self.stage):
            return False
        return True


CLASSIFICATION_RULES: Sequence[ClassificationRule] = (
    ClassificationRule(
        "validation_bot",
        CommentOrigin.validation,
        author="GITHUB_VPR_BOT_USERNAME",
        stage=Stage.validation,
    ),
    ClassificationRule(
        "dependency_bot",
        CommentOrigin.dependency,
        author="GITHUB_ADM_BOT_USERNAME",
        stage=Stage.dependency,
    ),
    ClassificationRule(
        "lint_bot",
        CommentOrigin.lint,
        author="GITHUB_ALF_BOT_USERNAME",
        stage=Stage.lint,
    ),
    *(
        ClassificationRule(
            f"generic_{stage.value}",
            _GENERIC_ORIGINS[stage],
            author="GENERIC_BOT_USERNAME",
            stage=stage,
        )
        for stage in GENERIC_MARKER_ORDER
    ),
    ClassificationRule(
        "generic_other",
        CommentOrigin.automation_other,
        author="GENERIC_BOT_USERNAME",
    ),
    ClassificationRule(
        "pr_creator",
        CommentOrigin.pr_creator,
        author="GITHUB_PR_CREATOR_BOT_USERNAME",
    ),
    ClassificationRule(
        "deployment_bot",
        CommentOrigin.deployment,
        author="DEPLOY_BOT_USERNAME",
    ),
    ClassificationRule("other_bot", CommentOrigin.other_bot),
)


def classify_origin(comment: IssueComment, settings: Settings) -> CommentOrigin:
    # the table only applies to bot accounts
    if not _is_bot(comment):
        return CommentOrigin.human
    for rule in CLASSIFICATION_RULES:
        if rule.matches(comment, settings):
            return rule.origin
    return CommentOrigin.human


def asset_url_pattern(settings: Settings) -> re.Pattern:
    return re.compile(
        rf"Direct {re.escape(settings.ASSET_LINK_PROVIDER)} Link:\s*"
        r"(https://\S+?\.(?:png|jpg|jpeg|gif))(?=\)|\s|$)",
        re.IGNORECASE,
    )


def extract_asset_url(body: str, settings: Settings) -> str | None:
    m = asset_url_pattern(settings).search(body)
    if m is None:
        return None
    return m.group(1)


def extract_run_id(body: str) -> int | None:
    m = _RUN_ID_PATTERN.search(body)
    if m is None:
        return None
    return int(m.group(1))


def classify_comment(comment: IssueComment, settings: Settings) -> ClassifiedComment:
    body = comment.body or ""
    return ClassifiedComment(
        id=comment.id,
        author=comment.user.login if comment.user is not None else None,
        is_bot=_is_bot(comment),
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        body=body,
        html_url=comment.html_url,
        origin=classify_origin(comment, settings),
        run_id=extract_run_id(body),
        asset_url=extract_asset_url(body, settings),
    )


def sort_comments(comments: Iterable[ClassifiedComment]) -> List[ClassifiedComment]:
    return sorted(comments, key=lambda c: (c.created_at, c.id), reverse=True)


def classify_comments(
    comments: Iterable[IssueComment], settings: Settings, limit: int | None = None
) -> tuple[ClassifiedComment, ...]:
    """Classify and return the newest ``limit`` comments, newest first."""
    classified = sort_comments(classify_comment(c, settings) for c in comments)
    if limit is not None:
        classified = classified[:limit]
    return tuple(classified)


def newest_of(
    comments: Iterable[ClassifiedComment],
    predicate: Callable[[ClassifiedComment], bool],
) -> ClassifiedComment | None:
    for comment in comments:
        if predicate(comment):
            return comment
    return None


def asset_url_from_comments(comments: Iterable[ClassifiedComment]) -> str | None:
    found = newest_of(
        comments,
        lambda c: c.origin.stage is Stage.validation and c.asset_url is not None,
    )
    return found.asset_url if found is not None else None


def _origin_label(origin: CommentOrigin) -> str:
    if origin is CommentOrigin.deployment:
        return origin.value
    stage = origin.stage
    assert stage is not None
    return STAGE_LABELS[stage]


_HEADING_PREFIX = re.compile(r"^(?:#{2,3}\s*(?:<span.*?>.*?</span>\s*)?)")


def summarize_body(body: str) -> str:
    first_line = body.split("\n", 1)[0]
    return _HEADING_PREFIX.sub("", first_line)[:SUMMARY_MAX_LENGTH].strip()


def last_bot_comment_digest(
    comments: Iterable[ClassifiedComment],
) -> LastBotComment | None:
    found = newest_of(
        comments,
        lambda c: c.is_bot
        and (c.origin.stage is not None or c.origin is CommentOrigin.deployment),
    )
    if found is None:
        return None
    return LastBotComment(
        bot_name=_origin_label(found.origin),
        summary=summarize_body(found.body),
        body=found.body,
        timestamp=found.created_at,
        url=found.html_url,
    )
