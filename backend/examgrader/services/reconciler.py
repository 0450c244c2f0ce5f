"""
Score reconciliation - rebuilds question marks and the evaluation summary from
the model's question-level data.

The model's own totals are only used when no question carries usable marks,
and whatever source wins is clamped so the summary can never claim more marks
than are available.
"""

import math
from dataclasses import dataclass, field
from decimal import Context, Decimal, ROUND_HALF_UP
from typing import Any, List, Optional

from examgrader.config import logger
from examgrader.models.evaluation import EvaluationData, EvaluationSummary, Question
from examgrader.services.fallback import (
    REASON_INVALID_DATA,
    create_fallback_evaluation,
    format_marks_value,
)
from examgrader.services.grade_mapper import map_grade
from examgrader.services.validator import parse_marks

DEFAULT_FEEDBACK = "Evaluation completed. Final scores and grade calculated by the system for accuracy."
BLANK_PAPER_FEEDBACK = ("The submitted paper appears to be blank or not attempted. "
                        "No marks were awarded.")
NOT_AVAILABLE = "N/A"


@dataclass
class ReconciliationResult:
    evaluation: EvaluationData
    warnings: List[str] = field(default_factory=list)


# Wide enough to quantize any finite float to two decimals
ROUNDING_CONTEXT = Context(prec=400)


def round_half_up(value: float, places: int) -> float:
    if not math.isfinite(value):
        return value
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP, context=ROUNDING_CONTEXT))


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


def _page_number(value: Any) -> int:
    number = _as_number(value)
    if number is None or number < 1:
        return 1
    return int(number)


def _text_or_default(value: Any, default: str = NOT_AVAILABLE) -> str:
    if isinstance(value, str) and value.strip():
        return value
    return default


def _placeholder_question(total_possible_marks: Optional[float]) -> dict:
    return {
        "pageNumber": 1,
        "heading": "Overall Assessment",
        "questionText": "Complete exam paper",
        "transcription": "Could not be determined by AI.",
        "evaluation": "AI failed to separate individual questions from the document.",
        "justification": "The response from the AI was missing a valid question structure.",
        "marks": f"0/{format_marks_value(total_possible_marks or 0)}",
    }


def reconcile_evaluation(payload: Any, total_possible_marks: Optional[float], exam_type: str,
                         is_blank_paper: bool = False,
                         raw_response: Optional[str] = None) -> ReconciliationResult:
    """
    Normalize questions and recompute the summary.

    Totals precedence: question-level sums, then the model's summary totals,
    then zero out of the requested total.
    """
    if not isinstance(payload, dict):
        logger.warning("Invalid data received from AI, creating fallback.")
        fallback = create_fallback_evaluation(total_possible_marks, REASON_INVALID_DATA, exam_type)
        return ReconciliationResult(evaluation=fallback, warnings=[REASON_INVALID_DATA])

    warnings: List[str] = []
    raw_questions = payload.get("questions")
    if not isinstance(raw_questions, list) or not raw_questions:
        warnings.append("AI response missing 'questions' array, created fallback question")
        raw_questions = [_placeholder_question(total_possible_marks)]

    questions: List[Question] = []
    calculated_awarded = 0.0
    calculated_possible = 0.0
    has_valid_marks = False

    for i, raw in enumerate(raw_questions, start=1):
        q = raw if isinstance(raw, dict) else {}
        parsed = parse_marks(q.get("marks"))

        if parsed is None:
            warnings.append(f"Question {i}: invalid marks ({q.get('marks')}), reset to 0/0")
            marks = "0/0"
        else:
            awarded, possible = parsed
            if awarded > possible:
                warnings.append(
                    f"Question {i}: awarded marks ({awarded:g}) exceed possible marks ({possible:g}), capped"
                )
                awarded = possible
            awarded = round_half_up(awarded, 2)
            possible = round_half_up(possible, 2)
            calculated_awarded += awarded
            calculated_possible += possible
            has_valid_marks = True
            marks = f"{format_marks_value(awarded)}/{format_marks_value(possible)}"

        questions.append(Question(
            page_number=_page_number(q.get("pageNumber")),
            heading=_text_or_default(q.get("heading"), f"Question {i}"),
            question_text=_text_or_default(q.get("questionText")),
            transcription=_text_or_default(q.get("transcription")),
            evaluation=_text_or_default(q.get("evaluation")),
            justification=_text_or_default(q.get("justification")),
            marks=marks,
        ))

    calculated_awarded = round_half_up(calculated_awarded, 2)
    calculated_possible = round_half_up(calculated_possible, 2)

    summary = payload.get("summary") if isinstance(payload.get("summary"), dict) else {}
    summary_awarded = _as_number(summary.get("totalAwarded"))
    summary_possible = _as_number(summary.get("totalPossible"))

    if has_valid_marks and calculated_possible > 0:
        total_awarded, total_possible = calculated_awarded, calculated_possible
        logger.info(f"Using calculated totals: {total_awarded}/{total_possible}")
    elif summary_awarded is not None and summary_possible is not None:
        total_awarded = round_half_up(max(summary_awarded, 0.0), 2)
        total_possible = round_half_up(max(summary_possible, 0.0) or (total_possible_marks or 0), 2)
        logger.info(f"Using AI summary totals: {total_awarded}/{total_possible}")
    else:
        total_awarded = 0.0
        total_possible = float(total_possible_marks or 0)
        logger.info(f"Using fallback totals: {total_awarded}/{total_possible}")

    if total_awarded > total_possible:
        warnings.append(
            f"Total awarded marks ({total_awarded:g}) exceed total possible marks ({total_possible:g}), capped"
        )
        total_awarded = total_possible

    percentage = round_half_up(total_awarded / total_possible * 100, 1) if total_possible > 0 else 0.0

    feedback = summary.get("feedback")
    if not isinstance(feedback, str) or not feedback.strip():
        feedback = BLANK_PAPER_FEEDBACK if is_blank_paper else DEFAULT_FEEDBACK

    for warning in warnings:
        logger.warning(warning)
    logger.info(f"Final calculation: {total_awarded}/{total_possible} = {percentage}%")

    if raw_response is None:
        raw_response = payload.get("rawResponse") if isinstance(payload.get("rawResponse"), str) else ""

    evaluation = EvaluationData(
        summary=EvaluationSummary(
            total_awarded=total_awarded,
            total_possible=total_possible,
            percentage=percentage,
            grade=map_grade(percentage, exam_type),
            feedback=feedback,
        ),
        questions=questions,
        raw_response=raw_response,
    )
    return ReconciliationResult(evaluation=evaluation, warnings=warnings)
