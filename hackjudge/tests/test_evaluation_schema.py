"""
Unit tests for evaluation payload validation.

Pure functions, no database.
"""
import pytest

from hackjudge.schemas.evaluation import (
    DraftEvaluationInput,
    FinalEvaluationInput,
    validate_evaluation_payload,
)


class TestDraftValidation:
    """Drafts accept any subset of fields; present scores must be in range."""

    def test_empty_draft_is_valid(self):
        valid, errors = validate_evaluation_payload({}, final=False)
        assert errors == []
        assert isinstance(valid, DraftEvaluationInput)
        assert valid.to_values() == {}

    def test_none_payload_is_an_empty_draft(self):
        valid, errors = validate_evaluation_payload(None, final=False)
        assert errors == []
        assert valid.to_values() == {}

    def test_partial_draft_keeps_only_sent_fields(self):
        valid, errors = validate_evaluation_payload({"score_innovation": 5}, final=False)
        assert errors == []
        assert valid.to_values() == {"score_innovation": 5}

    def test_unknown_fields_are_ignored(self):
        valid, errors = validate_evaluation_payload({"score_innovation": 5, "rating": 99}, final=False)
        assert errors == []
        assert "rating" not in valid.to_values()

    @pytest.mark.parametrize("score", [0, 11, -3, "ten"])
    def test_out_of_range_score_rejected(self, score):
        valid, errors = validate_evaluation_payload({"score_execution": score}, final=False)
        assert valid is None
        assert [e.field for e in errors] == ["score_execution"]
        assert errors[0].message == "execution score must be a number between 1 and 10."

    def test_all_bad_fields_reported_together(self):
        valid, errors = validate_evaluation_payload(
            {"score_innovation": 0, "score_presentation": 12}, final=False
        )
        assert valid is None
        assert [e.field for e in errors] == ["score_innovation", "score_presentation"]

    def test_short_comments_allowed_in_draft(self):
        valid, errors = validate_evaluation_payload({"comments": "wip"}, final=False)
        assert errors == []
        assert valid.to_values() == {"comments": "wip"}


class TestFinalValidation:
    """Submit and update require all four scores and detailed comments."""

    def test_complete_payload_is_valid(self):
        payload = {
            "score_innovation": 8,
            "score_feasibility": 7,
            "score_execution": 9,
            "score_presentation": 6,
            "comments": "Solid execution, clear demo.",
        }
        valid, errors = validate_evaluation_payload(payload, final=True)
        assert errors == []
        assert isinstance(valid, FinalEvaluationInput)
        assert valid.to_values() == payload

    def test_three_problems_reported_at_once(self):
        payload = {
            "score_innovation": 9,
            "score_feasibility": 11,
            "score_execution": 0,
            "score_presentation": 5,
            "comments": "too short!",
        }
        valid, errors = validate_evaluation_payload(payload, final=True)

        assert valid is None
        assert [e.field for e in errors] == ["score_feasibility", "score_execution", "comments"]
        assert errors[2].message == "Detailed comments (min 15 chars) are required for final submission."

    def test_missing_scores_are_required(self):
        valid, errors = validate_evaluation_payload({"comments": "A thorough review of it."}, final=True)
        assert valid is None
        assert len(errors) == 4
        assert errors[0].message == "innovation score is required for final submission."

    def test_missing_comments_are_required(self):
        payload = {
            "score_innovation": 8,
            "score_feasibility": 7,
            "score_execution": 9,
            "score_presentation": 6,
        }
        valid, errors = validate_evaluation_payload(payload, final=True)
        assert valid is None
        assert [e.field for e in errors] == ["comments"]

    def test_comment_of_exactly_fifteen_chars_passes(self):
        payload = {
            "score_innovation": 1,
            "score_feasibility": 10,
            "score_execution": 1,
            "score_presentation": 10,
            "comments": "x" * 15,
        }
        _, errors = validate_evaluation_payload(payload, final=True)
        assert errors == []
