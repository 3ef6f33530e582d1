# dreamsaver/crud/deposit.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from dreamsaver.models.deposit import Deposit, DepositStatus
from decimal import Decimal
from typing import List, Optional
import uuid


async def get_deposit_by_reference(db: AsyncSession, goal_id: uuid.UUID, provider_reference: str) -> Optional[Deposit]:
    result = await db.execute(
        select(Deposit).where(
            Deposit.goal_id == goal_id,
            Deposit.provider_reference == provider_reference,
        )
    )
    return result.scalar_one_or_none()


async def get_completed_amounts(db: AsyncSession, goal_id: uuid.UUID) -> List[Decimal]:
    result = await db.execute(
        select(Deposit.amount).where(
            Deposit.goal_id == goal_id,
            Deposit.status == DepositStatus.COMPLETED,
        )
    )
    return list(result.scalars().all())


async def get_deposits_for_goal(db: AsyncSession, goal_id: uuid.UUID) -> List[Deposit]:
    """Transaction history, newest first."""
    result = await db.execute(
        select(Deposit)
        .where(Deposit.goal_id == goal_id)
        .order_by(desc(Deposit.created_at))
    )
    return list(result.scalars().all())


async def add_deposit(
    db: AsyncSession,
    goal_id: uuid.UUID,
    user_id: str,
    amount: Decimal,
    provider_reference: str,
    payment_method: str,
) -> Deposit:
    """Stage a deposit and flush so constraint violations surface here. Does not commit."""
    deposit = Deposit(
        goal_id=goal_id,
        user_id=user_id,
        amount=amount,
        payment_method=payment_method,
        status=DepositStatus.COMPLETED,
        provider_reference=provider_reference,
    )
    db.add(deposit)
    await db.flush()
    return deposit
