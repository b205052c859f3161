"""Comment Action Classifier - free-text comment to workflow action."""

from astrid_agent.classifier.classifier import (
    ACTIONABLE_CONFIDENCE,
    classify,
    extract_change_request,
    is_actionable,
)
from astrid_agent.classifier.models import ActionType, CommentAction

__all__ = [
    "ACTIONABLE_CONFIDENCE",
    "ActionType",
    "CommentAction",
    "classify",
    "extract_change_request",
    "is_actionable",
]
