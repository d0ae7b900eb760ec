"""
hackjudge/schemas/evaluation.py
Pydantic schemas for judge evaluation payloads

Draft saves accept any subset of the four criterion scores; final
submissions and updates require all four plus detailed comments. Validation
never stops at the first problem: every invalid field is reported so a
client can fix them all in one round trip.
"""
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from hackjudge.orm.judge_evaluation import SCORE_FIELDS

SCORE_MIN = 1
SCORE_MAX = 10
MIN_COMMENT_LENGTH = 15


class FieldError(BaseModel):
    """One invalid field of an evaluation payload"""
    field: str
    message: str


class DraftEvaluationInput(BaseModel):
    """Draft save: every field optional, present scores must be in range"""
    model_config = ConfigDict(extra="ignore")

    score_innovation: Optional[int] = Field(default=None, ge=SCORE_MIN, le=SCORE_MAX)
    score_feasibility: Optional[int] = Field(default=None, ge=SCORE_MIN, le=SCORE_MAX)
    score_execution: Optional[int] = Field(default=None, ge=SCORE_MIN, le=SCORE_MAX)
    score_presentation: Optional[int] = Field(default=None, ge=SCORE_MIN, le=SCORE_MAX)
    comments: Optional[str] = None

    def to_values(self) -> Dict[str, Any]:
        """Fields the client actually sent; an explicit null clears a field."""
        return self.model_dump(exclude_unset=True)


class FinalEvaluationInput(DraftEvaluationInput):
    """Submit / update: all four scores and detailed comments required"""

    score_innovation: int = Field(..., ge=SCORE_MIN, le=SCORE_MAX)
    score_feasibility: int = Field(..., ge=SCORE_MIN, le=SCORE_MAX)
    score_execution: int = Field(..., ge=SCORE_MIN, le=SCORE_MAX)
    score_presentation: int = Field(..., ge=SCORE_MIN, le=SCORE_MAX)
    comments: str = Field(..., min_length=MIN_COMMENT_LENGTH)

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={
            "example": {
                "score_innovation": 8,
                "score_feasibility": 7,
                "score_execution": 9,
                "score_presentation": 6,
                "comments": "Solid execution, clear demo."
            }
        }
    )

    def to_values(self) -> Dict[str, Any]:
        return self.model_dump()


_FIELD_ORDER = {name: i for i, name in enumerate(SCORE_FIELDS + ("comments",))}


def _criterion(field: str) -> str:
    return field.replace("score_", "")


def _to_field_error(error: Dict[str, Any], final: bool) -> FieldError:
    field = str(error["loc"][0]) if error.get("loc") else "payload"
    missing = error.get("type") == "missing" or error.get("input") is None

    if field == "comments":
        if final:
            message = f"Detailed comments (min {MIN_COMMENT_LENGTH} chars) are required for final submission."
        else:
            message = "comments must be text."
    elif missing and final:
        message = f"{_criterion(field)} score is required for final submission."
    else:
        message = f"{_criterion(field)} score must be a number between {SCORE_MIN} and {SCORE_MAX}."

    return FieldError(field=field, message=message)


def validate_evaluation_payload(
    payload: Optional[Dict[str, Any]],
    final: bool = False
) -> Tuple[Optional[DraftEvaluationInput], List[FieldError]]:
    """
    Validate an evaluation payload.

    Returns (valid_input, []) on success or (None, field_errors) on failure,
    with one FieldError per offending field in criterion order.
    """
    schema: Type[DraftEvaluationInput] = FinalEvaluationInput if final else DraftEvaluationInput

    try:
        return schema.model_validate(payload or {}), []
    except PydanticValidationError as exc:
        by_field: Dict[str, FieldError] = {}
        for error in exc.errors():
            field_error = _to_field_error(error, final)
            by_field.setdefault(field_error.field, field_error)

        errors = sorted(by_field.values(), key=lambda e: _FIELD_ORDER.get(e.field, len(_FIELD_ORDER)))
        return None, errors
