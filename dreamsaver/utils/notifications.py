# dreamsaver/utils/notifications.py
import logging
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dreamsaver.crud.notification import add_notification
from dreamsaver.models.goal import Goal
from dreamsaver.models.notification import Notification
from dreamsaver.schemas.notification import NotificationCreate

logger = logging.getLogger(__name__)

GOAL_COMPLETE = "GOAL_COMPLETE"


async def notify_goal_completed(db: AsyncSession, goal: Goal) -> Optional[Notification]:
    """
    Queue the completion notification inside the current settlement transaction.

    The insert runs in a SAVEPOINT: if it fails only the savepoint is rolled
    back and the settlement still commits.
    """
    notification = NotificationCreate(
        user_id=goal.user_id,
        goal_id=goal.id,
        type=GOAL_COMPLETE,
        title="Goal Completed 🎉",
        message=(
            f"Congratulations! You've saved {goal.saved} of your {goal.target_amount} target. "
            "Your product is ready to redeem."
        ),
    )
    try:
        async with db.begin_nested():
            return await add_notification(db, notification)
    except SQLAlchemyError as e:
        logger.warning(f"Could not queue completion notification for goal {goal.id}: {str(e)}")
        return None
