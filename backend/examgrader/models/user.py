"""User-related Pydantic models"""

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime, timezone


class User(BaseModel):
    model_config = ConfigDict(extra="ignore")
    user_id: str
    email: str
    name: str
    picture: Optional[str] = None
    role: str = "teacher"  # teacher or admin
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class EvaluationAccess(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    can_evaluate: bool = Field(alias="canEvaluate")
    evaluations_remaining: int = Field(alias="evaluationsRemaining")
    is_admin: bool = Field(alias="isAdmin")
    message: str
