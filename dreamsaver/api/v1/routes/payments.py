# dreamsaver/api/v1/routes/payments.py
from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from dreamsaver.api.deps import get_current_user_id, get_payment_gateway, get_request_origin
from dreamsaver.core.config import settings
from dreamsaver.core.database import get_async_session
from dreamsaver.core.errors import ConflictError, ValidationError
from dreamsaver.models.goal import GoalStatus
from dreamsaver.schemas.goal import CheckoutResponse
from dreamsaver.schemas.payment import MultiGoalCheckoutRequest, PaymentMetadata, WebhookAck
from dreamsaver.utils.goal_lifecycle import get_goal_for_user
from dreamsaver.utils.payment_gateway import SESSION_EXPIRED, SETTLING_EVENTS, PaymentGateway
from dreamsaver.utils.settlement import settle_payment_event

router = APIRouter(prefix="/payments", tags=["payments"])
logger = logging.getLogger(__name__)


@router.post("/checkout", response_model=CheckoutResponse)
async def create_multi_goal_checkout(
    checkout_in: MultiGoalCheckoutRequest,
    origin: str = Depends(get_request_origin),
    db: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    One checkout that funds several goals. The paid amount is split evenly
    across the goals when the webhook settles it.
    """
    goal_ids = list(dict.fromkeys(checkout_in.goal_ids))
    for goal_id in goal_ids:
        goal = await get_goal_for_user(db, goal_id, user_id)
        if goal.status is not GoalStatus.ACTIVE:
            raise ConflictError(f"Goal {goal_id} is {goal.status.value} and does not accept deposits")

    session = await gateway.create_checkout_session(
        amount=checkout_in.amount,
        description=f"Savings deposit for {len(goal_ids)} goal(s)",
        success_url=f"{origin}/goals?payment=success&session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{origin}/goals?payment=cancel",
        metadata=PaymentMetadata(
            app_id=settings.STRIPE_APP_ID,
            goal_ids=goal_ids,
            user_id=user_id,
            amount_paid=checkout_in.amount,
        ),
    )
    return CheckoutResponse(checkout_url=session.url or "", session_id=session.id)


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    db: AsyncSession = Depends(get_async_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Stripe webhook. Unauthenticated; trust comes from the signature only.

    Settlement failures on individual goals are acknowledged (2xx) so Stripe
    stops retrying. Transient errors answer 503 and Stripe redelivers.
    """
    if not stripe_signature:
        raise ValidationError("Missing Stripe-Signature header")

    payload = await request.body()
    event = gateway.construct_event(payload, stripe_signature)
    logger.info(f"Received Stripe event {event.event_id} ({event.type})")

    if event.type == SESSION_EXPIRED:
        logger.info(f"Checkout session {event.session_id} expired without payment")
        return WebhookAck()

    if event.type not in SETTLING_EVENTS:
        return WebhookAck()

    if event.metadata is None:
        logger.info(f"Event {event.event_id} was not created by this app, ignoring")
        return WebhookAck()

    if event.payment_status != "paid":
        logger.info(f"Session {event.session_id} not paid yet ({event.payment_status}), waiting")
        return WebhookAck()

    settled, skipped = await settle_payment_event(db, event)
    return WebhookAck(settled=settled, skipped=skipped)
