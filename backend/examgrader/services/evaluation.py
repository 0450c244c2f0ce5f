"""
Evaluation pipeline - assemble request, grade, validate, reconcile, map grade.

evaluate_exam_paper() always returns a complete EvaluationOutcome. Failures
inside the pipeline become a fallback evaluation; only caller mistakes
(no student paper) raise, and they do so before the model is called.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

from examgrader.config import GradingConfig, logger
from examgrader.models.evaluation import EvaluationMetadata, EvaluationOutcome, EvaluationRequest
from examgrader.services.fallback import create_fallback_evaluation
from examgrader.services.grading_client import ChatClient, request_grading
from examgrader.services.reconciler import reconcile_evaluation
from examgrader.services.request_builder import assemble_request
from examgrader.utils.file_utils import count_document_pages

REASON_UNEXPECTED_ERROR = "Unexpected evaluation error"


async def evaluate_exam_paper(request: EvaluationRequest, chat: ChatClient,
                              config: Optional[GradingConfig] = None,
                              sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> EvaluationOutcome:
    """Grade one paper end to end."""
    config = config or GradingConfig()
    started = time.monotonic()
    total = request.total_possible_marks
    exam_type = request.student_info.exam_type or "Standard"

    message = await assemble_request(request)

    metadata = EvaluationMetadata(
        total_possible_marks=total,
        model=getattr(chat, "model_name", None),
        student_info=request.student_info,
    )
    metadata.student_paper_pages, metadata.mark_scheme_pages = await asyncio.gather(
        asyncio.to_thread(count_document_pages, request.student_paper),
        asyncio.to_thread(count_document_pages, request.mark_scheme),
    )

    logger.info(f"Starting evaluation: {exam_type}, {total} marks, "
                f"{len(request.student_paper)} student file(s)")

    try:
        attempt = await request_grading(chat, message, total, config, sleep=sleep)
        metadata.attempts = attempt.attempts
        if attempt.validation is not None:
            metadata.issues = attempt.validation.issues
            metadata.is_blank_paper = attempt.validation.is_blank_paper

        if attempt.ok:
            result = reconcile_evaluation(
                attempt.payload, total, exam_type,
                is_blank_paper=attempt.validation.is_blank_paper,
                raw_response=attempt.raw_text,
            )
            metadata.validation_passed = not attempt.validation.issues
            metadata.warnings = result.warnings
            outcome = EvaluationOutcome(success=True, evaluation=result.evaluation, metadata=metadata)
        else:
            metadata.used_fallback = True
            metadata.fallback_reason = attempt.failure_reason
            outcome = EvaluationOutcome(
                success=False,
                evaluation=create_fallback_evaluation(total, attempt.failure_reason, exam_type),
                metadata=metadata,
                error=attempt.error,
            )
    except Exception as e:
        logger.error(f"Evaluation pipeline error: {e}", exc_info=True)
        metadata.used_fallback = True
        metadata.fallback_reason = REASON_UNEXPECTED_ERROR
        outcome = EvaluationOutcome(
            success=False,
            evaluation=create_fallback_evaluation(total, REASON_UNEXPECTED_ERROR, exam_type),
            metadata=metadata,
            error=str(e),
        )

    metadata.processing_time_ms = int((time.monotonic() - started) * 1000)
    summary = outcome.evaluation.summary
    logger.info(f"Evaluation finished in {metadata.processing_time_ms}ms: "
                f"{summary.total_awarded}/{summary.total_possible} ({summary.percentage}%) "
                f"grade {summary.grade.grade}, fallback={metadata.used_fallback}")
    return outcome
