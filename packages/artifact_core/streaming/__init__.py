"""Stream parsing, variant selection and stream sessions."""

from artifact_core.streaming.cleanup import clean_content, extract_approach
from artifact_core.streaming.parser import (
    ParseResult,
    VariantExtraction,
    has_variant_markers,
    is_variant_in_progress,
    parse_stream,
    strip_variant_markers,
)
from artifact_core.streaming.selector import Selection, SelectorState, VariantSelector
from artifact_core.streaming.session import (
    StreamOutcome,
    StreamSession,
    StreamSnapshot,
    StreamStatus,
)

__all__ = [
    "clean_content",
    "extract_approach",
    "ParseResult",
    "VariantExtraction",
    "has_variant_markers",
    "is_variant_in_progress",
    "parse_stream",
    "strip_variant_markers",
    "Selection",
    "SelectorState",
    "VariantSelector",
    "StreamOutcome",
    "StreamSession",
    "StreamSnapshot",
    "StreamStatus",
]
