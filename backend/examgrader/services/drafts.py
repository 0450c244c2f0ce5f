"""
Draft storage - unsaved evaluation reviews kept per user so a teacher can
resume after closing the page.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from examgrader.config import logger
from examgrader.models.evaluation import DraftData


class DraftStore(ABC):
    @abstractmethod
    async def save(self, user_id: str, draft: DraftData) -> None: ...

    @abstractmethod
    async def load(self, user_id: str) -> Optional[DraftData]: ...

    @abstractmethod
    async def clear(self, user_id: str) -> None: ...

    async def has_draft(self, user_id: str) -> bool:
        return await self.load(user_id) is not None


class InMemoryDraftStore(DraftStore):
    def __init__(self):
        self._drafts: Dict[str, DraftData] = {}

    async def save(self, user_id: str, draft: DraftData) -> None:
        self._drafts[user_id] = draft

    async def load(self, user_id: str) -> Optional[DraftData]:
        return self._drafts.get(user_id)

    async def clear(self, user_id: str) -> None:
        self._drafts.pop(user_id, None)


class MongoDraftStore(DraftStore):
    """One draft document per user in `evaluation_drafts`."""

    def __init__(self, db):
        self._db = db

    async def save(self, user_id: str, draft: DraftData) -> None:
        doc = draft.model_dump(mode="json", by_alias=True)
        await self._db.evaluation_drafts.update_one(
            {"user_id": user_id},
            {"$set": {"user_id": user_id, "draft": doc}},
            upsert=True
        )

    async def load(self, user_id: str) -> Optional[DraftData]:
        doc = await self._db.evaluation_drafts.find_one({"user_id": user_id}, {"_id": 0})
        if not doc or not doc.get("draft"):
            return None
        try:
            return DraftData.model_validate(doc["draft"])
        except ValueError as e:
            # A corrupt draft is dropped rather than blocking the user
            logger.error(f"Failed to load draft for {user_id}: {e}")
            await self.clear(user_id)
            return None

    async def clear(self, user_id: str) -> None:
        await self._db.evaluation_drafts.delete_one({"user_id": user_id})
