"""
Evaluation records and usage counters.

The core pipeline never touches this module; routes use it to persist what
the pipeline returns.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from examgrader.config import DEFAULT_EVALUATION_LIMIT
from examgrader.models.evaluation import DocumentBlob, EvaluationData

STATUS_PENDING = "pending"
STATUS_AWAITING_REVIEW = "awaiting_review"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_evaluation_record(user_id: str, student_paper: List[DocumentBlob], mark_scheme: List[DocumentBlob],
                          total_possible_marks: Optional[int]) -> dict:
    return {
        "evaluation_id": f"eval_{uuid.uuid4().hex[:12]}",
        "user_id": user_id,
        "student_paper_files": [{"name": d.name, "type": d.mime_type} for d in student_paper],
        "mark_scheme_files": [{"name": d.name, "type": d.mime_type} for d in mark_scheme],
        "total_possible_marks": total_possible_marks,
        "status": STATUS_PENDING,
        "evaluation_result": None,
        "error_message": None,
        "created_at": _now(),
        "updated_at": _now(),
    }


class EvaluationStore(ABC):
    @abstractmethod
    async def create(self, record: dict) -> dict: ...

    @abstractmethod
    async def update(self, evaluation_id: str, user_id: str, fields: dict) -> bool: ...

    @abstractmethod
    async def get(self, evaluation_id: str, user_id: str) -> Optional[dict]: ...

    @abstractmethod
    async def list_for_user(self, user_id: str) -> List[dict]: ...

    @abstractmethod
    async def get_usage(self, user_id: str) -> Tuple[int, int]:
        """(evaluations used, evaluation limit)"""

    @abstractmethod
    async def increment_usage(self, user_id: str) -> None: ...

    @abstractmethod
    async def ping(self) -> bool: ...

    async def record_result(self, evaluation_id: str, user_id: str, evaluation: EvaluationData,
                            error_message: Optional[str] = None) -> bool:
        status = STATUS_FAILED if error_message else STATUS_AWAITING_REVIEW
        return await self.update(evaluation_id, user_id, {
            "status": status,
            "evaluation_result": evaluation.model_dump(mode="json", by_alias=True),
            "error_message": error_message,
        })

    async def save_reviewed(self, evaluation_id: str, user_id: str, evaluation: EvaluationData) -> bool:
        return await self.update(evaluation_id, user_id, {
            "status": STATUS_COMPLETED,
            "evaluation_result": evaluation.model_dump(mode="json", by_alias=True),
            "error_message": None,
        })

    async def mark_failed(self, evaluation_id: str, user_id: str, error_message: str) -> bool:
        return await self.update(evaluation_id, user_id, {"status": STATUS_FAILED, "error_message": error_message})


class MongoEvaluationStore(EvaluationStore):
    def __init__(self, db):
        self._db = db

    async def create(self, record: dict) -> dict:
        await self._db.evaluations.insert_one(dict(record))
        return record

    async def update(self, evaluation_id: str, user_id: str, fields: dict) -> bool:
        result = await self._db.evaluations.update_one(
            {"evaluation_id": evaluation_id, "user_id": user_id},
            {"$set": {**fields, "updated_at": _now()}}
        )
        return result.matched_count > 0

    async def get(self, evaluation_id: str, user_id: str) -> Optional[dict]:
        return await self._db.evaluations.find_one(
            {"evaluation_id": evaluation_id, "user_id": user_id}, {"_id": 0}
        )

    async def list_for_user(self, user_id: str) -> List[dict]:
        return await self._db.evaluations.find(
            {"user_id": user_id}, {"_id": 0}
        ).sort("created_at", -1).to_list(1000)

    async def get_usage(self, user_id: str) -> Tuple[int, int]:
        profile = await self._db.user_profiles.find_one(
            {"user_id": user_id}, {"_id": 0, "evaluation_limit": 1, "evaluations_used": 1}
        ) or {}
        limit = profile.get("evaluation_limit")
        used = profile.get("evaluations_used")
        return (used if used is not None else 0,
                limit if limit is not None else DEFAULT_EVALUATION_LIMIT)

    async def increment_usage(self, user_id: str) -> None:
        await self._db.user_profiles.update_one(
            {"user_id": user_id},
            {"$inc": {"evaluations_used": 1}, "$setOnInsert": {"evaluation_limit": DEFAULT_EVALUATION_LIMIT}},
            upsert=True
        )

    async def ping(self) -> bool:
        await self._db.command("ping")
        return True
