# dreamsaver/utils/goal_lifecycle.py
import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Union
import uuid

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dreamsaver.core.config import settings
from dreamsaver.core.database import utcnow
from dreamsaver.core.errors import (
    AuthorizationError,
    ConflictError,
    DreamSaverError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from dreamsaver.crud.goal import (
    delete_draft_goal,
    delete_goal_with_dependents,
    get_draft_for_product,
    get_goal,
    get_goal_for_update,
    get_goals_for_user,
    get_stale_drafts,
)
from dreamsaver.crud.price_lock import get_price_lock_for_goal, lock_price, release_price_lock
from dreamsaver.crud.product import get_product
from dreamsaver.models.goal import Goal, GoalStatus
from dreamsaver.utils.delivery import DeliveryClient
from dreamsaver.utils.money import percentage_of, to_decimal

logger = logging.getLogger(__name__)


class CancelAction(str, enum.Enum):
    DELETED = "DELETED"
    REFUNDED = "REFUNDED"


@dataclass
class RefundQuote:
    saved: Decimal
    fee_percent: Decimal
    fee: Decimal
    refundable: Decimal


@dataclass
class CancellationResult:
    action: CancelAction
    goal_id: uuid.UUID
    refund: Optional[RefundQuote] = None


def quote_refund(saved: Decimal, fee_percent: Decimal) -> RefundQuote:
    """What the user gets back. Quoted only, the ledger keeps the original deposits."""
    fee = percentage_of(saved, fee_percent)
    return RefundQuote(saved=Decimal(saved), fee_percent=Decimal(fee_percent), fee=fee, refundable=Decimal(saved) - fee)


def ensure_owner(goal: Goal, user_id: str) -> None:
    if goal.user_id != user_id:
        raise AuthorizationError()


async def _commit(db: AsyncSession) -> None:
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("Goal was changed by another request, please retry") from e
    except DBAPIError as e:
        await db.rollback()
        raise TransientError("Could not save the goal, please retry") from e


async def get_goal_for_user(db: AsyncSession, goal_id: uuid.UUID, user_id: str) -> Goal:
    goal = await get_goal(db, goal_id)
    if goal is None:
        raise NotFoundError("Goal", goal_id)
    ensure_owner(goal, user_id)
    return goal


async def list_goals(db: AsyncSession, user_id: str) -> Dict[str, List[Goal]]:
    """The user's goals split into drafts, active and terminal ones."""
    await expire_stale_drafts(db, user_id=user_id)
    partition: Dict[str, List[Goal]] = {"drafts": [], "active": [], "terminal": []}
    for goal in await get_goals_for_user(db, user_id):
        status = GoalStatus(goal.status)
        if status is GoalStatus.DRAFT:
            partition["drafts"].append(goal)
        elif status is GoalStatus.ACTIVE:
            partition["active"].append(goal)
        else:
            partition["terminal"].append(goal)
    return partition


async def create_or_update_goal(
    db: AsyncSession,
    user_id: str,
    product_id: uuid.UUID,
    target_amount: Any,
    target_date: Optional[datetime] = None,
    status: Union[GoalStatus, str] = GoalStatus.ACTIVE,
) -> Tuple[Goal, bool]:
    """
    Save a draft or start a goal.

    A DRAFT request updates the user's existing draft for the product when
    there is one. Everything else creates a new goal with its price lock; an
    active goal is never reused. Returns (goal, created).
    """
    amount = to_decimal(target_amount, field="target_amount")
    try:
        status = GoalStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown goal status '{status}'")
    if status not in (GoalStatus.DRAFT, GoalStatus.ACTIVE):
        raise ValidationError("New goals must be DRAFT or ACTIVE")

    try:
        if status is GoalStatus.DRAFT:
            draft = await get_draft_for_product(db, user_id, product_id)
            if draft is not None:
                draft.target_amount = amount
                if target_date is not None:
                    draft.end_date = target_date
                    lock = await get_price_lock_for_goal(db, draft.id)
                    if lock is not None:
                        lock.expires_at = target_date
                await _commit(db)
                logger.info(f"Updated draft goal {draft.id} for product {product_id}")
                return draft, False

        product = await get_product(db, product_id)
        if product is None:
            raise NotFoundError("Product", product_id)

        goal = Goal(
            user_id=user_id,
            product_id=product.id,
            target_amount=amount,
            saved=Decimal("0"),
            status=status,
            end_date=target_date,
        )
        db.add(goal)
        await db.flush()
        await lock_price(db, goal, product)
        await _commit(db)
    except DreamSaverError:
        await db.rollback()
        raise

    logger.info(f"Created {status.value} goal {goal.id} for product {product_id} at locked price {goal.locked_price}")
    return goal, True


async def activate_goal(db: AsyncSession, goal_id: uuid.UUID, user_id: str) -> Goal:
    """Commit to a draft: DRAFT -> ACTIVE with a fresh price snapshot."""
    try:
        goal = await get_goal_for_update(db, goal_id)
        if goal is None:
            raise NotFoundError("Goal", goal_id)
        ensure_owner(goal, user_id)
        if goal.status is GoalStatus.DRAFT and goal.end_date is not None and goal.end_date < utcnow():
            raise ConflictError("Draft has expired, create a new goal")
        goal.transition_to(GoalStatus.ACTIVE)

        product = await get_product(db, goal.product_id)
        if product is None:
            raise NotFoundError("Product", goal.product_id)
        await lock_price(db, goal, product)
        await _commit(db)
    except DreamSaverError:
        await db.rollback()
        raise

    logger.info(f"Activated goal {goal.id} at locked price {goal.locked_price}")
    return goal


async def cancel_goal(db: AsyncSession, goal_id: uuid.UUID, user_id: str) -> CancellationResult:
    """
    Delete the goal when it holds no money, otherwise mark it REFUNDED.

    A refunded goal keeps every deposit; the fee is only quoted.
    """
    try:
        goal = await get_goal_for_update(db, goal_id)
        if goal is None:
            raise NotFoundError("Goal", goal_id)
        ensure_owner(goal, user_id)

        status = GoalStatus(goal.status)
        if status not in (GoalStatus.DRAFT, GoalStatus.ACTIVE):
            raise ConflictError(f"A {status.value} goal cannot be cancelled")

        if status is GoalStatus.DRAFT or Decimal(goal.saved) == 0:
            await delete_goal_with_dependents(db, goal.id)
            await _commit(db)
            logger.info(f"Deleted {status.value} goal {goal_id} (no funds)")
            return CancellationResult(action=CancelAction.DELETED, goal_id=goal_id)

        goal.transition_to(GoalStatus.REFUNDED)
        await release_price_lock(db, goal.id)
        await _commit(db)
    except DreamSaverError:
        await db.rollback()
        raise

    refund = quote_refund(goal.saved, settings.REFUND_FEE_PERCENT)
    logger.info(f"Goal {goal_id} cancelled with {goal.saved} saved, refund pending ({refund.refundable})")
    return CancellationResult(action=CancelAction.REFUNDED, goal_id=goal_id, refund=refund)


async def expire_stale_drafts(
    db: AsyncSession,
    now: Optional[datetime] = None,
    user_id: Optional[str] = None,
) -> int:
    """Delete drafts whose target date has passed. They hold no funds."""
    now = now or utcnow()
    drafts = await get_stale_drafts(db, now, user_id=user_id)
    if not drafts:
        return 0
    expired = 0
    for draft in drafts:
        if await delete_draft_goal(db, draft.id):
            expired += 1
    await _commit(db)
    logger.info(f"Expired {expired} stale draft goal(s)")
    return expired


async def redeem_goal(
    db: AsyncSession,
    goal_id: uuid.UUID,
    user_id: str,
    address_id: str,
    delivery_date: date,
    delivery_client: DeliveryClient,
) -> Goal:
    """Hand a funded goal over to the delivery service, once."""
    try:
        goal = await get_goal_for_update(db, goal_id)
        if goal is None:
            raise NotFoundError("Goal", goal_id)
        ensure_owner(goal, user_id)
        if goal.status is not GoalStatus.COMPLETED:
            raise ConflictError("Only completed goals can be redeemed")
        if goal.is_redeemed:
            raise ConflictError("Goal already redeemed")

        delivery_id = await delivery_client.create_delivery(goal, address_id, delivery_date)
        goal.delivery_id = delivery_id
        goal.redeemed_at = utcnow()
        await _commit(db)
    except DreamSaverError:
        await db.rollback()
        raise

    logger.info(f"Goal {goal_id} redeemed, delivery {goal.delivery_id}")
    return goal
