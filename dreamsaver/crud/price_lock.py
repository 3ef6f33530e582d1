# dreamsaver/crud/price_lock.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from dreamsaver.models.goal import Goal
from dreamsaver.models.price_lock import PriceLock, PriceLockStatus
from dreamsaver.models.product import Product
from typing import Optional
import uuid


async def get_price_lock_for_goal(db: AsyncSession, goal_id: uuid.UUID) -> Optional[PriceLock]:
    result = await db.execute(select(PriceLock).where(PriceLock.goal_id == goal_id))
    return result.scalar_one_or_none()


def build_price_lock(goal: Goal, product: Product) -> PriceLock:
    return PriceLock(
        product_id=product.id,
        goal_id=goal.id,
        store_id=product.store_id,
        locked_by=goal.user_id,
        locked_price=product.price,
        original_price=product.price,
        status=PriceLockStatus.ACTIVE,
        expires_at=goal.end_date,
    )


async def lock_price(db: AsyncSession, goal: Goal, product: Product) -> PriceLock:
    """Create the goal's lock, or re-snapshot the existing one. Does not commit."""
    lock = await get_price_lock_for_goal(db, goal.id)
    if lock is None:
        lock = build_price_lock(goal, product)
        db.add(lock)
    else:
        lock.locked_price = product.price
        lock.original_price = product.price
        lock.status = PriceLockStatus.ACTIVE
        lock.expires_at = goal.end_date
    goal.locked_price = product.price
    await db.flush()
    return lock


async def release_price_lock(db: AsyncSession, goal_id: uuid.UUID) -> Optional[PriceLock]:
    lock = await get_price_lock_for_goal(db, goal_id)
    if lock is not None:
        lock.status = PriceLockStatus.RELEASED
    return lock
