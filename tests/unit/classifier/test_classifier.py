"""Unit tests for the comment action classifier."""

import pytest

from astrid_agent.classifier import (
    ACTIONABLE_CONFIDENCE,
    ActionType,
    CommentAction,
    classify,
    extract_change_request,
    is_actionable,
)


@pytest.mark.unit
class TestMergePrecedence:
    """Merge keywords win regardless of other families."""

    @pytest.mark.parametrize(
        "text",
        [
            "ship it",
            "Merge",
            "LGTM, merge it",
            "approved, ready to merge",
            "Looks good to merge. Excellent work!",
            "perfect, go live",
            "please publish",
            "could you fix the typo and then merge",
        ],
    )
    def test_merge_wins(self, text: str) -> None:
        """Any merge hit yields a merge action."""
        assert classify(text).type == ActionType.MERGE

    def test_merge_confidence_scales_with_hits(self) -> None:
        """Confidence is 0.3 per merge keyword hit."""
        assert classify("merge").confidence == pytest.approx(0.3)
        # "merge", "ship it", "merge it"
        assert classify("ship it, merge it").confidence == pytest.approx(0.9)

    def test_merge_confidence_capped_at_one(self) -> None:
        """Confidence never exceeds 1."""
        action = classify("merge it, ship it, ship this, go live, publish, deploy")
        assert action.confidence == 1.0

    def test_merge_has_no_feedback(self) -> None:
        """Feedback is only set for change requests."""
        assert classify("ship it").feedback is None


@pytest.mark.unit
class TestNoneResult:
    """Text with no keyword hits."""

    @pytest.mark.parametrize("text", ["", "   ", "thanks", "hello there", "what is this?"])
    def test_returns_none_with_zero_confidence(self, text: str) -> None:
        """Zero score on every family gives none with confidence 0."""
        action = classify(text)
        assert action == CommentAction(ActionType.NONE, 0.0)
        assert not is_actionable(action)


@pytest.mark.unit
class TestChangesRequested:
    """Change-request scoring and feedback extraction."""

    def test_change_request_beats_single_approval(self) -> None:
        """More change hits than approval hits yields changes_requested."""
        action = classify("Looks good but can you fix the header? Also update the footer.")

        assert action.type == ActionType.CHANGES_REQUESTED
        # "fix", "update", "can you"
        assert action.confidence == pytest.approx(0.75)

    def test_feedback_is_matching_sentences(self) -> None:
        """Feedback joins the sentences that contain a change keyword."""
        action = classify("Nice start. Please change the button color! The copy is fine.")

        assert action.type == ActionType.CHANGES_REQUESTED
        assert action.feedback == "Please change the button color"

    def test_feedback_keeps_multiple_sentences(self) -> None:
        """Several matching sentences are joined with a period."""
        action = classify("Fix the header. Update the footer.")

        assert action.feedback == "Fix the header. Update the footer"

    def test_tie_goes_to_approve(self) -> None:
        """Equal change and approval scores resolve to approve."""
        action = classify("lgtm, just fix")

        assert action.type == ActionType.APPROVE
        assert action.confidence == pytest.approx(0.3)

    def test_single_change_keyword_is_actionable(self) -> None:
        """One change hit gives 0.25, above the actionable threshold."""
        action = classify("fix the bug")

        assert action.type == ActionType.CHANGES_REQUESTED
        assert action.confidence == pytest.approx(0.25)
        assert is_actionable(action)


@pytest.mark.unit
class TestApprove:
    """Approval keywords."""

    @pytest.mark.parametrize("text", ["LGTM", "go ahead", "yes", "Perfect!", "good to go"])
    def test_single_approval_keyword(self, text: str) -> None:
        """One approval hit gives confidence 0.3."""
        action = classify(text)

        assert action.type == ActionType.APPROVE
        assert action.confidence == pytest.approx(0.3)

    def test_multiple_hits_raise_confidence(self) -> None:
        """'approved' also contains 'approve', counting twice."""
        assert classify("approved").confidence == pytest.approx(0.6)

    def test_case_and_whitespace_insensitive(self) -> None:
        """Text is lowercased and stripped before scoring."""
        assert classify("   LoOkS GoOd   ").type == ActionType.APPROVE


@pytest.mark.unit
class TestIsActionable:
    """Actionable threshold."""

    def test_threshold_value(self) -> None:
        """The threshold is 0.2."""
        assert ACTIONABLE_CONFIDENCE == 0.2

    @pytest.mark.parametrize(
        ("action", "expected"),
        [
            (CommentAction(ActionType.APPROVE, 0.2), True),
            (CommentAction(ActionType.APPROVE, 0.19), False),
            (CommentAction(ActionType.MERGE, 1.0), True),
            (CommentAction(ActionType.NONE, 1.0), False),
        ],
    )
    def test_is_actionable(self, action: CommentAction, expected: bool) -> None:
        """Type none is never actionable; others need confidence >= 0.2."""
        assert is_actionable(action) is expected


@pytest.mark.unit
class TestExtractChangeRequest:
    """Leading verb stripping."""

    @pytest.mark.parametrize(
        ("feedback", "expected"),
        [
            ("Fix the login bug", "the login bug"),
            ("update   the README", "the README"),
            ("Please fix the login bug", "Please fix the login bug"),
            ("changes everywhere", "changes everywhere"),
        ],
    )
    def test_strips_leading_verb(self, feedback: str, expected: str) -> None:
        """Only a leading change/fix/update/modify word is removed."""
        assert extract_change_request(feedback) == expected
