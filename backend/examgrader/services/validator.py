"""
Response validation - structural checks on the model's parsed JSON.

The model is told which schema to produce but nothing enforces it, so the
payload is inspected here and classified as valid, salvageable or unusable.
"""

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple

from examgrader.config import GradingConfig, logger

MARKS_PATTERN = re.compile(r"^\d+(\.\d+)?/\d+(\.\d+)?$")
BLANK_ANSWER_MARKERS = ("blank", "no answer", "not attempted", "empty")

MIN_QUESTION_TEXT_LENGTH = 3
MIN_EVALUATION_LENGTH = 5
MIN_JUSTIFICATION_LENGTH = 5


class Verdict(str, Enum):
    VALID = "valid"
    SALVAGEABLE = "salvageable"
    UNUSABLE = "unusable"


@dataclass
class ValidationResult:
    is_valid: bool
    issues: List[str] = field(default_factory=list)
    is_blank_paper: bool = False

    @property
    def verdict(self) -> Verdict:
        if not self.is_valid:
            return Verdict.UNUSABLE
        if self.issues:
            return Verdict.SALVAGEABLE
        return Verdict.VALID


def parse_marks(marks: Any) -> Optional[Tuple[float, float]]:
    """
    Leniently parse "awarded/possible".
    Returns None unless both sides are finite, non-negative numbers.
    """
    if not isinstance(marks, str) or "/" not in marks:
        return None
    awarded_str, possible_str = marks.split("/", 1)
    try:
        awarded = float(awarded_str.strip())
        possible = float(possible_str.strip())
    except ValueError:
        return None
    if not (math.isfinite(awarded) and math.isfinite(possible)):
        return None
    if awarded < 0 or possible < 0:
        return None
    return awarded, possible


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def is_blank_answer(question: dict) -> bool:
    transcription = _text(question.get("transcription")).lower()
    evaluation = _text(question.get("evaluation")).lower()
    return any(marker in transcription or marker in evaluation for marker in BLANK_ANSWER_MARKERS)


def validate_response(candidate: Any, total_possible_marks: Optional[float],
                      config: Optional[GradingConfig] = None) -> ValidationResult:
    """Check a parsed model response and decide whether it can be used."""
    config = config or GradingConfig()
    issues: List[str] = []

    if not isinstance(candidate, dict):
        return ValidationResult(is_valid=False, issues=["Invalid response object"])

    questions = candidate.get("questions")
    if not isinstance(questions, list) or not questions:
        return ValidationResult(is_valid=False, issues=["Missing or empty questions array"])

    total_calculated_possible = 0.0
    blank_answers = 0

    for i, q in enumerate(questions, start=1):
        if not isinstance(q, dict):
            issues.append(f"Question {i}: Not an object")
            continue

        marks = q.get("marks")
        if not isinstance(marks, str) or not MARKS_PATTERN.match(marks.strip()):
            issues.append(f"Question {i}: Invalid marks format ({marks})")
        else:
            awarded, possible = parse_marks(marks)
            total_calculated_possible += possible
            if awarded > possible:
                issues.append(f"Question {i}: Awarded marks exceed possible marks ({marks})")

        if len(_text(q.get("questionText"))) < MIN_QUESTION_TEXT_LENGTH:
            issues.append(f"Question {i}: Missing or too short question text")
        if len(_text(q.get("evaluation"))) < MIN_EVALUATION_LENGTH:
            issues.append(f"Question {i}: Missing or too short evaluation")
        if len(_text(q.get("justification"))) < MIN_JUSTIFICATION_LENGTH:
            issues.append(f"Question {i}: Missing or too short justification")

        if is_blank_answer(q):
            blank_answers += 1

    is_blank_paper = blank_answers > len(questions) * config.blank_paper_ratio
    if is_blank_paper:
        logger.info("Detected blank paper: most answers are blank or not attempted")

    if total_possible_marks:
        difference = abs(total_calculated_possible - total_possible_marks)
        if difference > total_possible_marks * config.marks_mismatch_ratio:
            issues.append(
                f"Significant marks mismatch: calculated {total_calculated_possible:g}, "
                f"expected {total_possible_marks:g}"
            )

    is_valid = len(issues) <= config.issue_tolerance or is_blank_paper
    if issues:
        logger.warning(f"AI response validation found {len(issues)} issue(s): {issues}")

    return ValidationResult(is_valid=is_valid, issues=issues, is_blank_paper=is_blank_paper)
