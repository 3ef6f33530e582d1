# dreamsaver/crud/goal.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, desc
from dreamsaver.models.goal import Goal, GoalStatus
from dreamsaver.models.deposit import Deposit
from dreamsaver.models.price_lock import PriceLock
from datetime import datetime
from typing import List, Optional
import uuid


async def get_goal(db: AsyncSession, goal_id: uuid.UUID) -> Optional[Goal]:
    result = await db.execute(select(Goal).where(Goal.id == goal_id))
    return result.scalar_one_or_none()


async def get_goal_for_update(db: AsyncSession, goal_id: uuid.UUID) -> Optional[Goal]:
    """
    Fetch the goal with a row lock held until the transaction ends.

    populate_existing overwrites whatever the identity map holds, so the caller
    always works with the committed state rather than an earlier read.
    """
    result = await db.execute(
        select(Goal)
        .where(Goal.id == goal_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_goals_for_user(db: AsyncSession, user_id: str) -> List[Goal]:
    result = await db.execute(
        select(Goal).where(Goal.user_id == user_id).order_by(desc(Goal.created_at))
    )
    return list(result.scalars().all())


async def get_draft_for_product(db: AsyncSession, user_id: str, product_id: uuid.UUID) -> Optional[Goal]:
    result = await db.execute(
        select(Goal)
        .where(
            Goal.user_id == user_id,
            Goal.product_id == product_id,
            Goal.status == GoalStatus.DRAFT,
        )
        .order_by(desc(Goal.created_at))
        .limit(1)
    )
    return result.scalars().first()


async def get_stale_drafts(db: AsyncSession, now: datetime, user_id: Optional[str] = None) -> List[Goal]:
    """Drafts past their target date, locked so activation waits for the sweep."""
    query = select(Goal).with_for_update().where(
        Goal.status == GoalStatus.DRAFT,
        Goal.end_date.is_not(None),
        Goal.end_date < now,
    )
    if user_id is not None:
        query = query.where(Goal.user_id == user_id)
    result = await db.execute(query)
    return list(result.scalars().all())


async def delete_goal_with_dependents(db: AsyncSession, goal_id: uuid.UUID) -> None:
    """Remove the goal, its price lock and any deposits. Does not commit."""
    await db.execute(delete(PriceLock).where(PriceLock.goal_id == goal_id))
    await db.execute(delete(Deposit).where(Deposit.goal_id == goal_id))
    await db.execute(delete(Goal).where(Goal.id == goal_id))


async def delete_draft_goal(db: AsyncSession, goal_id: uuid.UUID) -> bool:
    """
    Remove the goal and its price lock only while it is still a DRAFT.
    Returns False when the goal moved on in the meantime. Does not commit.
    """
    still_draft = select(Goal.id).where(Goal.id == goal_id, Goal.status == GoalStatus.DRAFT)
    await db.execute(delete(PriceLock).where(PriceLock.goal_id.in_(still_draft)))
    result = await db.execute(
        delete(Goal).where(Goal.id == goal_id, Goal.status == GoalStatus.DRAFT)
    )
    return result.rowcount > 0
