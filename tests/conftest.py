"""
Shared test fixtures for the exam grader.
Fakes stand in for the Gemini client and MongoDB; no network calls are made.
"""
import json
import os
import sys
from typing import Dict, List, Optional, Tuple

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "backend"))

from examgrader.models.evaluation import DocumentBlob, EvaluationRequest, StudentInfo  # noqa: E402
from examgrader.services.storage import EvaluationStore  # noqa: E402


class FakeChat:
    """Scripted stand-in for LlmChat: each call pops the next response or raises it."""

    model_name = "fake-gemini"

    def __init__(self, responses):
        self.responses = list(responses)
        self.messages = []

    async def send_message(self, message):
        self.messages.append(message)
        if not self.responses:
            raise RuntimeError("FakeChat has no responses left")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    @property
    def calls(self) -> int:
        return len(self.messages)


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class InMemoryEvaluationStore(EvaluationStore):
    def __init__(self, usage: Optional[Dict[str, Tuple[int, int]]] = None):
        self.records: Dict[str, dict] = {}
        self.usage = dict(usage or {})
        self.healthy = True

    async def create(self, record: dict) -> dict:
        self.records[record["evaluation_id"]] = dict(record)
        return record

    async def update(self, evaluation_id: str, user_id: str, fields: dict) -> bool:
        record = self.records.get(evaluation_id)
        if not record or record["user_id"] != user_id:
            return False
        record.update(fields)
        return True

    async def get(self, evaluation_id: str, user_id: str) -> Optional[dict]:
        record = self.records.get(evaluation_id)
        if not record or record["user_id"] != user_id:
            return None
        return dict(record)

    async def list_for_user(self, user_id: str) -> List[dict]:
        rows = [dict(r) for r in self.records.values() if r["user_id"] == user_id]
        return sorted(rows, key=lambda r: r["created_at"], reverse=True)

    async def get_usage(self, user_id: str) -> Tuple[int, int]:
        return self.usage.get(user_id, (0, 10))

    async def increment_usage(self, user_id: str) -> None:
        used, limit = self.usage.get(user_id, (0, 10))
        self.usage[user_id] = (used + 1, limit)

    async def ping(self) -> bool:
        if not self.healthy:
            raise ConnectionError("database unreachable")
        return True


def make_question(marks="5/10", **overrides):
    question = {
        "pageNumber": 1,
        "heading": "Question 1",
        "questionText": "Explain the process of photosynthesis.",
        "transcription": "Plants use sunlight to make glucose from CO2 and water.",
        "evaluation": "Partially correct; misses the role of chlorophyll.",
        "justification": "Key inputs and outputs identified, mechanism missing.",
        "marks": marks,
    }
    question.update(overrides)
    return question


def make_response(questions, feedback="Solid effort overall."):
    return {"summary": {"feedback": feedback}, "questions": questions}


@pytest.fixture
def fake_chat_factory():
    return FakeChat


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def evaluation_request():
    def _build(total=10, exam_type="O-Level", mark_scheme=True):
        return EvaluationRequest(
            student_paper=[DocumentBlob(name="paper.png", mime_type="image/png", data=b"\x89PNG student page")],
            mark_scheme=[DocumentBlob(name="scheme.png", mime_type="image/png", data=b"\x89PNG scheme page")]
            if mark_scheme else [],
            total_possible_marks=total,
            student_info=StudentInfo(student_name="Ada", student_id="S-1", subject="Biology",
                                     exam_type=exam_type),
        )
    return _build


def as_json(payload) -> str:
    return json.dumps(payload)
