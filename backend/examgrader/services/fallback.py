"""
Fallback evaluation - a structurally complete placeholder used whenever the
model's output cannot be obtained or trusted.
"""

from typing import Optional

from examgrader.config import logger
from examgrader.models.evaluation import EvaluationData, EvaluationSummary, Question
from examgrader.services.grade_mapper import map_grade

REASON_ALL_RETRIES_FAILED = "All retries failed"
REASON_JSON_PARSE_FAILED = "JSON parse failed"
REASON_UNUSABLE_RESPONSE = "Unusable AI response"
REASON_INVALID_DATA = "Invalid data object"


def format_marks_value(value: float) -> str:
    """Render a mark with at most two decimals and no trailing zeros (7.5, 10, 3.33)."""
    rounded = round(float(value), 2)
    if rounded == int(rounded):
        return str(int(rounded))
    return f"{rounded:.2f}".rstrip("0").rstrip(".")


def create_fallback_evaluation(total_possible_marks: Optional[float], reason: str,
                               exam_type: str = "Standard") -> EvaluationData:
    """Build the placeholder evaluation, embedding the reason in the feedback."""
    total = total_possible_marks if total_possible_marks and total_possible_marks > 0 else 0
    logger.warning(f"⚠️ Creating fallback evaluation ({reason})")

    return EvaluationData(
        summary=EvaluationSummary(
            total_awarded=0,
            total_possible=total,
            percentage=0,
            grade=map_grade(0, exam_type),
            feedback=f"A fallback evaluation was generated. Reason: {reason}. "
                     f"Please review the results carefully.",
        ),
        questions=[
            Question(
                page_number=1,
                heading="Overall Assessment",
                question_text="Complete exam paper",
                transcription="Processed",
                evaluation="Fallback completed",
                justification="An issue occurred during AI evaluation, and a fallback response was created.",
                marks=f"0/{format_marks_value(total)}",
            )
        ],
        raw_response=f"Fallback evaluation created: {reason}",
    )
