"""Pydantic models for the exam grader"""

from .user import User, EvaluationAccess
from .evaluation import (
    DocumentBlob,
    StudentInfo,
    EvaluationRequest,
    Grade,
    Question,
    EvaluationSummary,
    EvaluationData,
    EvaluationMetadata,
    EvaluationOutcome,
    FileDescriptor,
    DraftData,
)
