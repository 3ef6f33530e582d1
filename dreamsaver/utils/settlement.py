# dreamsaver/utils/settlement.py
"""
Settlement of confirmed payments into the deposit ledger.

Every confirmed payment, whether it arrives through the redirect confirm
endpoint or through the Stripe webhook, goes through settle_payment(). It
writes one deposit, recomputes the goal's saved amount from the ledger and
moves the goal to COMPLETED once the target is reached, all in a single
transaction. Payments are keyed by (goal, provider reference) so a replayed
confirmation is answered with the current state instead of a second deposit.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Optional, Tuple
import uuid

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dreamsaver.core.db_utils import with_db_retry
from dreamsaver.core.errors import (
    ConflictError,
    DreamSaverError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from dreamsaver.crud.deposit import add_deposit, get_completed_amounts, get_deposit_by_reference
from dreamsaver.crud.goal import get_goal, get_goal_for_update
from dreamsaver.models.deposit import Deposit
from dreamsaver.models.goal import Goal, GoalStatus
from dreamsaver.schemas.payment import PaymentEvent
from dreamsaver.utils.money import split_amount, sum_amounts, to_decimal
from dreamsaver.utils.notifications import notify_goal_completed

logger = logging.getLogger(__name__)


@dataclass
class SettlementResult:
    goal: Goal
    deposit: Optional[Deposit]
    completed: bool
    replayed: bool = False


def recompute_saved(amounts: Iterable[Any]) -> Decimal:
    """The goal's saved amount is always the plain sum of its ledger."""
    return sum_amounts(amounts)


@with_db_retry()
async def settle_payment(
    db: AsyncSession,
    goal_id: uuid.UUID,
    user_id: str,
    amount: Any,
    provider_reference: str,
    payment_method: str = "STRIPE",
) -> SettlementResult:
    amount = to_decimal(amount)
    reference = (provider_reference or "").strip()
    if not reference:
        raise ValidationError("Missing provider reference")
    if not user_id:
        raise ValidationError("Missing user id")

    try:
        result = await _apply_settlement(db, goal_id, user_id, amount, reference, payment_method)
        await db.commit()
    except IntegrityError:
        # A concurrent delivery of the same event won the insert
        await db.rollback()
        logger.info(f"Duplicate settlement for goal {goal_id} ref={reference}, treating as replay")
        return await _load_replay(db, goal_id, reference)
    except DreamSaverError:
        await db.rollback()
        raise
    except DBAPIError as e:
        await db.rollback()
        logger.error(f"Settlement for goal {goal_id} failed: {str(e)}")
        raise TransientError("Could not record the deposit, please retry") from e

    if result.replayed:
        logger.info(f"Replayed settlement for goal {goal_id} ref={reference}, nothing to do")
    else:
        logger.info(
            f"Settled {amount} on goal {goal_id}: saved={result.goal.saved} "
            f"target={result.goal.target_amount} status={result.goal.status.value}"
        )
    return result


async def _apply_settlement(
    db: AsyncSession,
    goal_id: uuid.UUID,
    user_id: str,
    amount: Decimal,
    reference: str,
    payment_method: str,
) -> SettlementResult:
    goal = await get_goal_for_update(db, goal_id)
    if goal is None:
        raise NotFoundError("Goal", goal_id)

    # Before the status check: replaying the deposit that completed the goal is not a conflict
    existing = await get_deposit_by_reference(db, goal.id, reference)
    if existing is not None:
        return SettlementResult(
            goal=goal,
            deposit=existing,
            completed=goal.status is GoalStatus.COMPLETED,
            replayed=True,
        )

    status = GoalStatus(goal.status)
    if status is GoalStatus.COMPLETED:
        raise ConflictError("Goal already completed. Deposits are locked.")
    if not status.accepts_deposits:
        raise ConflictError(f"Goal is {status.value} and does not accept deposits")

    deposit = await add_deposit(db, goal.id, user_id, amount, reference, payment_method)

    goal.saved = recompute_saved(await get_completed_amounts(db, goal.id))
    just_completed = goal.saved >= goal.target_amount
    if just_completed:
        goal.transition_to(GoalStatus.COMPLETED)
    await db.flush()

    if just_completed:
        await notify_goal_completed(db, goal)

    return SettlementResult(goal=goal, deposit=deposit, completed=just_completed)


async def _load_replay(db: AsyncSession, goal_id: uuid.UUID, reference: str) -> SettlementResult:
    deposit = await get_deposit_by_reference(db, goal_id, reference)
    goal = await get_goal(db, goal_id)
    if deposit is None or goal is None:
        # The constraint that fired was not the reference one
        raise TransientError("Could not record the deposit, please retry")
    await db.refresh(goal)
    return SettlementResult(
        goal=goal,
        deposit=deposit,
        completed=goal.status is GoalStatus.COMPLETED,
        replayed=True,
    )


async def settle_payment_event(db: AsyncSession, event: PaymentEvent) -> Tuple[int, int]:
    """
    Settle a verified checkout event across every goal it paid for.

    Goals that cannot take the money (gone, completed, someone else's) are
    logged and skipped so the processor stops redelivering. Transient errors
    propagate and the processor's redelivery replays the whole event.

    Returns (settled, skipped).
    """
    metadata = event.metadata
    if metadata is None or not event.session_id:
        return 0, 0

    settled = skipped = 0
    shares = split_amount(metadata.amount_paid, len(metadata.goal_ids))
    for goal_id, share in zip(metadata.goal_ids, shares):
        goal = await get_goal(db, goal_id)
        if goal is None:
            logger.warning(f"Event {event.event_id}: goal {goal_id} not found, skipping")
            skipped += 1
            continue
        if goal.user_id != metadata.user_id:
            logger.warning(f"Event {event.event_id}: goal {goal_id} does not belong to the paying user, skipping")
            skipped += 1
            continue
        try:
            await settle_payment(
                db,
                goal_id,
                metadata.user_id,
                share,
                event.session_id,
                payment_method="STRIPE_CHECKOUT",
            )
        except (ConflictError, NotFoundError, ValidationError) as e:
            logger.warning(f"Event {event.event_id}: goal {goal_id} not settled: {e.message}")
            skipped += 1
            continue
        settled += 1
    return settled, skipped
