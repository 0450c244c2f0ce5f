"""Evaluation routes - grade a paper, save a reviewed result, history, access."""

import mimetypes
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from examgrader.config import GradingConfig, logger
from examgrader.deps import (
    get_chat_factory,
    get_config_provider,
    get_current_user,
    get_evaluation_store,
    get_grading_config,
    get_rate_limiter,
)
from examgrader.models.evaluation import DocumentBlob, EvaluationData, EvaluationRequest, StudentInfo
from examgrader.models.user import User
from examgrader.services.evaluation import evaluate_exam_paper
from examgrader.services.quota import check_evaluation_limit, get_evaluation_access
from examgrader.services.rate_limiter import RateLimiter
from examgrader.services.request_builder import MISSING_STUDENT_PAPER
from examgrader.services.settings_provider import ConfigProvider
from examgrader.services.storage import EvaluationStore, new_evaluation_record
from examgrader.utils.file_utils import check_uploads
from examgrader.utils.serialization import serialize_doc, to_evaluation_summary_row

router = APIRouter(tags=["evaluations"])

MIN_MARKS = 1
MAX_MARKS = 1000


def parse_total_marks(raw: Optional[str]) -> Optional[int]:
    if raw is None or not raw.strip():
        return None
    try:
        total = int(raw.strip())
    except ValueError:
        raise HTTPException(status_code=400, detail="totalPossibleMarks must be a whole number")
    if total < MIN_MARKS or total > MAX_MARKS:
        raise HTTPException(status_code=400,
                            detail=f"totalPossibleMarks must be between {MIN_MARKS} and {MAX_MARKS}")
    return total


async def read_uploads(files: Optional[List[UploadFile]]) -> List[DocumentBlob]:
    documents = []
    for file in files or []:
        content = await file.read()
        mime_type = file.content_type
        if not mime_type or mime_type == "application/octet-stream":
            mime_type = mimetypes.guess_type(file.filename or "")[0] or "application/octet-stream"
        documents.append(DocumentBlob(name=file.filename or "upload", mime_type=mime_type, data=content))
    return documents


def _clean(value: Optional[str]) -> Optional[str]:
    return value.strip() if value and value.strip() else None


@router.post("/evaluations")
async def create_evaluation(
    student_paper: Optional[List[UploadFile]] = File(None, alias="studentPaper"),
    mark_scheme: Optional[List[UploadFile]] = File(None, alias="markScheme"),
    total_possible_marks: Optional[str] = Form(None, alias="totalPossibleMarks"),
    student_name: Optional[str] = Form(None, alias="studentName"),
    student_id: Optional[str] = Form(None, alias="studentId"),
    subject: Optional[str] = Form(None),
    exam_type: str = Form("O-Level", alias="examType"),
    grading_criteria: str = Form("Standard grading", alias="gradingCriteria"),
    user: User = Depends(get_current_user),
    store: EvaluationStore = Depends(get_evaluation_store),
    limiter: RateLimiter = Depends(get_rate_limiter),
    config_provider: ConfigProvider = Depends(get_config_provider),
    chat_factory=Depends(get_chat_factory),
    grading_config: GradingConfig = Depends(get_grading_config),
):
    """Grade an uploaded paper and return the evaluation for teacher review"""
    record = None
    try:
        logger.info(f"=== EVALUATION START === User: {user.user_id}, Exam type: {exam_type}")

        rate = limiter.check(user.user_id)
        if not rate.allowed:
            raise HTTPException(status_code=429, detail="Too many evaluation requests. Please wait a minute.")

        if not user.is_admin:
            limit = await check_evaluation_limit(store, user.user_id)
            if not limit.can_evaluate:
                raise HTTPException(status_code=403,
                                    detail=f"Evaluation limit reached: {limit.used}/{limit.total}")

        student_docs = await read_uploads(student_paper)
        scheme_docs = await read_uploads(mark_scheme)
        if not student_docs:
            raise HTTPException(status_code=400, detail=MISSING_STUDENT_PAPER)

        problems = check_uploads(student_docs, "student paper") + check_uploads(scheme_docs, "mark scheme")
        if problems:
            raise HTTPException(status_code=400, detail="; ".join(problems))

        total = parse_total_marks(total_possible_marks)

        settings = await config_provider.get_settings()
        if settings is None:
            raise HTTPException(status_code=503, detail="Gemini API key not configured")

        request = EvaluationRequest(
            student_paper=student_docs,
            mark_scheme=scheme_docs,
            total_possible_marks=total,
            student_info=StudentInfo(
                student_name=_clean(student_name),
                student_id=_clean(student_id),
                subject=_clean(subject),
                exam_type=_clean(exam_type) or "O-Level",
                grading_criteria=_clean(grading_criteria) or "Standard grading",
            ),
        )

        record = await store.create(new_evaluation_record(user.user_id, student_docs, scheme_docs, total))
        evaluation_id = record["evaluation_id"]

        outcome = await evaluate_exam_paper(request, chat_factory(settings), grading_config)

        try:
            await store.record_result(evaluation_id, user.user_id, outcome.evaluation, outcome.error)
        except Exception as e:
            logger.error(f"Failed to record evaluation {evaluation_id}: {e}")

        if not user.is_admin:
            try:
                await store.increment_usage(user.user_id)
            except Exception as e:
                logger.error(f"Failed to increment evaluation count for {user.user_id}: {e}")

        logger.info(f"=== EVALUATION DONE === {evaluation_id} success={outcome.success}")
        return {
            "success": outcome.success,
            "evaluationId": evaluation_id,
            "evaluation": outcome.evaluation.model_dump(mode="json", by_alias=True),
            "metadata": outcome.metadata.model_dump(mode="json", by_alias=True),
            "error": outcome.error,
        }
    except HTTPException:
        raise
    except ValueError as e:
        await _mark_failed(store, record, user, str(e))
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"=== EVALUATION ERROR === {str(e)}", exc_info=True)
        await _mark_failed(store, record, user, str(e))
        raise HTTPException(status_code=500, detail=f"Failed to evaluate exam paper: {str(e)}")


async def _mark_failed(store: EvaluationStore, record: Optional[dict], user: User, message: str):
    if not record:
        return
    try:
        await store.mark_failed(record["evaluation_id"], user.user_id, message)
    except Exception as e:
        logger.error(f"Failed to update evaluation status: {e}")


@router.get("/evaluations")
async def get_evaluation_history(user: User = Depends(get_current_user),
                                 store: EvaluationStore = Depends(get_evaluation_store)):
    """Evaluations for the current user, newest first"""
    records = await store.list_for_user(user.user_id)
    return [to_evaluation_summary_row(r) for r in records]


@router.get("/evaluations/access")
async def get_access(user: User = Depends(get_current_user),
                     store: EvaluationStore = Depends(get_evaluation_store)):
    access = await get_evaluation_access(store, user)
    return access.model_dump(by_alias=True)


@router.get("/evaluations/{evaluation_id}")
async def get_evaluation(evaluation_id: str, user: User = Depends(get_current_user),
                         store: EvaluationStore = Depends(get_evaluation_store)):
    record = await store.get(evaluation_id, user.user_id)
    if not record:
        raise HTTPException(status_code=404, detail="Evaluation not found")
    return serialize_doc(record)


@router.put("/evaluations/{evaluation_id}")
async def save_evaluation(evaluation_id: str, evaluation: EvaluationData,
                          user: User = Depends(get_current_user),
                          store: EvaluationStore = Depends(get_evaluation_store)):
    """Store the teacher-reviewed evaluation and mark it completed"""
    saved = await store.save_reviewed(evaluation_id, user.user_id, evaluation)
    if not saved:
        raise HTTPException(status_code=404, detail="Evaluation not found")
    logger.info(f"Evaluation {evaluation_id} saved by {user.user_id}")
    return {"message": "Evaluation saved", "evaluationId": evaluation_id}
