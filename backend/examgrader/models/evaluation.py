"""Evaluation-related Pydantic models"""

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime, timezone


class DocumentBlob(BaseModel):
    """One uploaded document (a PDF or a page image)"""
    name: str
    mime_type: str
    data: bytes


class StudentInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    student_name: Optional[str] = Field(default=None, alias="studentName")
    student_id: Optional[str] = Field(default=None, alias="studentId")
    subject: Optional[str] = None
    exam_type: str = Field(default="O-Level", alias="examType")  # IELTS, O-Level, A-Level, Standard
    grading_criteria: str = Field(default="Standard grading", alias="gradingCriteria")


class EvaluationRequest(BaseModel):
    """Everything needed to grade one paper. Discarded once the request is sent."""
    student_paper: List[DocumentBlob]
    mark_scheme: List[DocumentBlob] = []  # Optional; model falls back to its own scheme
    total_possible_marks: Optional[int] = None
    student_info: StudentInfo = Field(default_factory=StudentInfo)


class Grade(BaseModel):
    grade: str
    color: str


class Question(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    page_number: int = Field(default=1, alias="pageNumber")  # 1-indexed page in the student paper
    heading: str
    question_text: str = Field(alias="questionText")
    transcription: str
    evaluation: str
    justification: str
    marks: str  # "<awarded>/<possible>"


class EvaluationSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    total_awarded: float = Field(alias="totalAwarded")
    total_possible: float = Field(alias="totalPossible")
    percentage: float
    grade: Grade
    feedback: str


class EvaluationData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    summary: EvaluationSummary
    questions: List[Question]
    raw_response: str = Field(default="", alias="rawResponse")


class EvaluationMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    validation_passed: bool = Field(default=False, alias="validationPassed")
    is_blank_paper: bool = Field(default=False, alias="isBlankPaper")
    issues: List[str] = []
    warnings: List[str] = []
    used_fallback: bool = Field(default=False, alias="usedFallback")
    fallback_reason: Optional[str] = Field(default=None, alias="fallbackReason")
    attempts: int = 0
    student_paper_pages: int = Field(default=0, alias="studentPaperPages")
    mark_scheme_pages: int = Field(default=0, alias="markSchemePages")
    total_possible_marks: Optional[int] = Field(default=None, alias="totalPossibleMarks")
    model: Optional[str] = None
    processing_time_ms: int = Field(default=0, alias="processingTimeMs")
    evaluated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="evaluatedAt")
    student_info: Optional[StudentInfo] = Field(default=None, alias="studentInfo")


class EvaluationOutcome(BaseModel):
    """What the pipeline hands back to its caller"""
    success: bool
    evaluation: EvaluationData
    metadata: EvaluationMetadata
    error: Optional[str] = None


class FileDescriptor(BaseModel):
    id: str
    name: str
    type: str
    size: int


class DraftData(BaseModel):
    """Unsaved review state a teacher can come back to"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")
    results: dict
    evaluation_id: str = Field(alias="evaluationId")
    student_info: dict = Field(default_factory=dict, alias="studentInfo")
    student_paper_files: List[FileDescriptor] = Field(default_factory=list, alias="studentPaperFiles")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
