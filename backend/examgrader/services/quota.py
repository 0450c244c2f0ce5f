"""Per-user evaluation quota checks."""

from dataclasses import dataclass

from examgrader.config import logger
from examgrader.models.user import EvaluationAccess, User
from examgrader.services.storage import EvaluationStore

UNLIMITED = 999


@dataclass
class EvaluationLimitStatus:
    can_evaluate: bool
    remaining: int
    total: int

    @property
    def used(self) -> int:
        return self.total - self.remaining


async def check_evaluation_limit(store: EvaluationStore, user_id: str) -> EvaluationLimitStatus:
    """
    Compare usage against the user's limit. If the usage lookup itself fails the
    user is allowed through.
    """
    try:
        used, limit = await store.get_usage(user_id)
    except Exception as e:
        logger.error(f"Error checking evaluation limit for {user_id}: {e}")
        return EvaluationLimitStatus(can_evaluate=True, remaining=UNLIMITED, total=UNLIMITED)

    remaining = max(0, limit - used)
    logger.info(f"User {user_id}: {used}/{limit} used, {remaining} remaining")
    return EvaluationLimitStatus(can_evaluate=remaining > 0, remaining=remaining, total=limit)


async def get_evaluation_access(store: EvaluationStore, user: User) -> EvaluationAccess:
    if user.is_admin:
        return EvaluationAccess(can_evaluate=True, evaluations_remaining=UNLIMITED, is_admin=True,
                                message="Unlimited access as admin")

    status = await check_evaluation_limit(store, user.user_id)
    message = (f"{status.remaining} evaluations remaining" if status.can_evaluate
               else f"Limit reached: {status.total}")
    return EvaluationAccess(can_evaluate=status.can_evaluate, evaluations_remaining=status.remaining,
                            is_admin=False, message=message)
