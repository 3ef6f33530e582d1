# dreamsaver/api/v1/routes/goals.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import uuid

from dreamsaver.api.deps import (
    get_current_user_id,
    get_delivery_client,
    get_payment_gateway,
    get_request_origin,
)
from dreamsaver.core.config import settings
from dreamsaver.core.database import get_async_session
from dreamsaver.core.errors import ConflictError, ValidationError
from dreamsaver.crud.deposit import get_deposits_for_goal
from dreamsaver.crud.product import get_product
from dreamsaver.models.goal import GoalStatus
from dreamsaver.schemas.deposit import DepositRead
from dreamsaver.schemas.goal import (
    CancelGoalResponse,
    CheckoutResponse,
    ConfirmDepositRequest,
    ConfirmDepositResponse,
    DepositRequest,
    GoalCreate,
    GoalDetail,
    GoalList,
    GoalRead,
    GoalWriteResult,
    RedeemRequest,
    RedeemResponse,
    RefundQuote,
)
from dreamsaver.schemas.payment import PaymentMetadata
from dreamsaver.utils.delivery import DeliveryClient
from dreamsaver.utils.goal_lifecycle import (
    activate_goal,
    cancel_goal,
    create_or_update_goal,
    get_goal_for_user,
    list_goals,
    redeem_goal,
)
from dreamsaver.utils.payment_gateway import PaymentGateway, session_share_for_goal
from dreamsaver.utils.settlement import settle_payment

router = APIRouter(prefix="/goals", tags=["goals"])


@router.get("", response_model=GoalList)
async def read_goals(
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    """The caller's goals, split into drafts, active and terminal goals."""
    return await list_goals(db, user_id)


@router.post("", response_model=GoalWriteResult, status_code=status.HTTP_201_CREATED)
async def create_goal(
    goal_in: GoalCreate,
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    """
    Save a draft or start a goal.

    - **status=DRAFT**: updates the existing draft for this product if there is one
    - **status=ACTIVE**: always creates a new goal and locks the product's price
    """
    goal, created = await create_or_update_goal(
        db,
        user_id,
        goal_in.product_id,
        goal_in.target_amount,
        target_date=goal_in.target_date,
        status=goal_in.status,
    )
    message = "New goal created" if created else "Draft updated"
    return GoalWriteResult(message=message, goal=GoalRead.model_validate(goal))


@router.get("/{goal_id}", response_model=GoalDetail)
async def read_goal(
    goal_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    goal = await get_goal_for_user(db, goal_id, user_id)
    deposits = await get_deposits_for_goal(db, goal.id)
    return GoalDetail(
        **GoalRead.model_validate(goal).model_dump(),
        deposits=[DepositRead.model_validate(d) for d in deposits],
    )


@router.get("/{goal_id}/deposits", response_model=List[DepositRead])
async def read_goal_deposits(
    goal_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    goal = await get_goal_for_user(db, goal_id, user_id)
    return await get_deposits_for_goal(db, goal.id)


@router.post("/{goal_id}/activate", response_model=GoalRead)
async def activate_draft(
    goal_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    return await activate_goal(db, goal_id, user_id)


@router.post("/{goal_id}/deposit", response_model=CheckoutResponse)
async def start_deposit(
    goal_id: uuid.UUID,
    deposit_in: DepositRequest,
    origin: str = Depends(get_request_origin),
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Start a hosted checkout for a deposit. Nothing is settled here; the goal
    only changes once the payment is confirmed.
    """
    goal = await get_goal_for_user(db, goal_id, user_id)
    if goal.status is GoalStatus.COMPLETED:
        raise ConflictError("Goal already completed. Deposits are locked.")
    if not goal.status.accepts_deposits:
        raise ConflictError(f"Goal is {goal.status.value} and does not accept deposits")

    product = await get_product(db, goal.product_id)
    amount = deposit_in.amount
    session = await gateway.create_checkout_session(
        amount=amount,
        description=product.name if product else "Savings Goal Deposit",
        success_url=f"{origin}/goals/{goal_id}?payment=success&amount={amount}&session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{origin}/goals/{goal_id}?payment=cancel",
        metadata=PaymentMetadata(
            app_id=settings.STRIPE_APP_ID,
            goal_ids=[goal.id],
            user_id=user_id,
            amount_paid=amount,
        ),
    )
    return CheckoutResponse(checkout_url=session.url or "", session_id=session.id)


@router.post("/{goal_id}/confirm", response_model=ConfirmDepositResponse)
async def confirm_deposit(
    goal_id: uuid.UUID,
    confirm_in: ConfirmDepositRequest,
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Settle a deposit after the checkout redirect. Safe to call repeatedly with
    the same provider reference.
    """
    await get_goal_for_user(db, goal_id, user_id)

    amount = confirm_in.amount
    if settings.VERIFY_REDIRECT_PAYMENTS:
        session = await gateway.retrieve_session(confirm_in.provider_reference)
        share = session_share_for_goal(session, goal_id, user_id)
        if amount != share:
            raise ValidationError("Amount does not match the confirmed payment")
        amount = share

    result = await settle_payment(
        db,
        goal_id,
        user_id,
        amount,
        confirm_in.provider_reference,
        payment_method="STRIPE",
    )
    return ConfirmDepositResponse(
        completed=result.completed or result.goal.status is GoalStatus.COMPLETED,
        replayed=result.replayed,
        goal=GoalRead.model_validate(result.goal),
    )


@router.delete("/{goal_id}", response_model=CancelGoalResponse)
async def delete_goal(
    goal_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
):
    """Delete a goal without funds, or mark a funded one REFUNDED."""
    result = await cancel_goal(db, goal_id, user_id)
    if result.refund is None:
        return CancelGoalResponse(
            action=result.action.value,
            goal_id=result.goal_id,
            message="Goal deleted successfully",
        )
    return CancelGoalResponse(
        action=result.action.value,
        goal_id=result.goal_id,
        message="Goal cancelled. Refund pending.",
        refund=RefundQuote(**result.refund.__dict__),
    )


@router.post("/{goal_id}/redeem", response_model=RedeemResponse)
async def redeem(
    goal_id: uuid.UUID,
    redeem_in: RedeemRequest,
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
    delivery_client: DeliveryClient = Depends(get_delivery_client),
):
    goal = await redeem_goal(
        db,
        goal_id,
        user_id,
        redeem_in.address_id,
        redeem_in.delivery_date,
        delivery_client,
    )
    return RedeemResponse(delivery_id=goal.delivery_id, goal=GoalRead.model_validate(goal))
