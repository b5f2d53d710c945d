from prwatch.pipeline.fetch import EvidenceFetcher
from prwatch.pipeline.service import StatusService, parse_request
from prwatch.pipeline.synthesizer import synthesize, validation_finalized
from prwatch.pipeline.types import (
    EvidenceSnapshot,
    NextAction,
    PipelineDecision,
    PipelineState,
)

__all__ = [
    "EvidenceFetcher",
    "StatusService",
    "parse_request",
    "synthesize",
    "validation_finalized",
    "EvidenceSnapshot",
    "NextAction",
    "PipelineDecision",
    "PipelineState",
]
