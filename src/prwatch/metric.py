import re

from prometheus_client import Counter

request_counter = Counter(
    "prwatch_num_req", "Total number of requests", labelnames=["path"]
)

api_call_count = Counter(
    "prwatch_num_api_calls",
    "Total number of GitHub API calls",
    labelnames=["endpoint"],
)

synthesis_counter = Counter(
    "prwatch_synthesis_total",
    "Number of synthesized pipeline decisions",
    labelnames=["state"],
)

partial_evidence_counter = Counter(
    "prwatch_partial_evidence_total",
    "Number of evidence pieces replaced by an empty result after a failed fetch",
    labelnames=["piece"],
)

timeout_override_counter = Counter(
    "prwatch_timeout_override_total",
    "Number of decisions forced to the polling timeout state",
)

error_counter = Counter(
    "prwatch_error_total", "Total number of errors", labelnames=["context"]
)

_REPO_PREFIX = re.compile(r"^/?repos/[^/]+/[^/]+/?")


def _normalize_api_endpoint(endpoint: str) -> str:
    path = re.sub(r"^https?://[^/]+", "", endpoint.split("?", 1)[0])
    if re.match(r"^/?app/installations/\d+/access_tokens", path):
        return "installation_token"
    if not path.startswith("/") and "/" not in path:
        return path
    path = _REPO_PREFIX.sub("", path)
    if path.startswith("contents/"):
        return "contents/xxx"
    parts = [p for p in path.split("/") if p and not p.isdigit()]
    if len(parts) > 1 and re.fullmatch(r"[0-9a-f]{40}", parts[1]):
        parts.pop(1)
    return "/".join(parts) or "repo"


def record_api_call(*, endpoint: str) -> None:
    api_call_count.labels(endpoint=_normalize_api_endpoint(endpoint)).inc()
