"""Draft routes - per-user unsaved review state."""

from fastapi import APIRouter, Depends

from examgrader.deps import get_current_user, get_draft_store
from examgrader.models.evaluation import DraftData
from examgrader.models.user import User
from examgrader.services.drafts import DraftStore

router = APIRouter(tags=["drafts"])


@router.get("/drafts")
async def get_draft(user: User = Depends(get_current_user), drafts: DraftStore = Depends(get_draft_store)):
    draft = await drafts.load(user.user_id)
    return {
        "hasDraft": draft is not None,
        "draft": draft.model_dump(mode="json", by_alias=True) if draft else None,
    }


@router.put("/drafts")
async def save_draft(draft: DraftData, user: User = Depends(get_current_user),
                     drafts: DraftStore = Depends(get_draft_store)):
    await drafts.save(user.user_id, draft)
    return {"message": "Draft saved"}


@router.delete("/drafts")
async def clear_draft(user: User = Depends(get_current_user), drafts: DraftStore = Depends(get_draft_store)):
    await drafts.clear(user.user_id)
    return {"message": "Draft cleared"}
