"""Exam type catalogue."""

from fastapi import APIRouter

from examgrader.services.grade_mapper import EXAM_TYPE_CONFIGS

router = APIRouter(tags=["exam-types"])


@router.get("/exam-types")
async def list_exam_types():
    return EXAM_TYPE_CONFIGS
