"""Output Stream Classifier - turns noisy model output into discrete comment events."""

from astrid_agent.stream.models import ContentType, DetectedContent, ParserState
from astrid_agent.stream.parser import (
    extract_pr_url,
    flush,
    format_content_as_comment,
    parse_chunk,
)

__all__ = [
    "ContentType",
    "DetectedContent",
    "ParserState",
    "extract_pr_url",
    "flush",
    "format_content_as_comment",
    "parse_chunk",
]
