# dreamsaver/utils/payment_gateway.py
"""
Stripe adapter: hosted checkout sessions and signed webhook events.

This is the trust boundary. Nothing coming from Stripe reaches settlement
before its signature is verified and its metadata is parsed into
PaymentMetadata.
"""
import asyncio
import functools
import json
import logging
import time
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, Optional
import uuid

import stripe
from pydantic import ValidationError as PydanticValidationError

from dreamsaver.core.config import settings
from dreamsaver.core.errors import GatewayError, ValidationError
from dreamsaver.schemas.payment import CheckoutSession, PaymentEvent, PaymentMetadata
from dreamsaver.utils.money import split_amount, to_minor_units

logger = logging.getLogger(__name__)

SESSION_COMPLETED = "checkout.session.completed"
SESSION_ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"
SESSION_EXPIRED = "checkout.session.expired"
SETTLING_EVENTS = (SESSION_COMPLETED, SESSION_ASYNC_PAYMENT_SUCCEEDED)


def parse_event(data: Dict[str, Any], app_id: Optional[str] = None) -> PaymentEvent:
    """
    Reduce a verified event payload to a PaymentEvent.

    Metadata is only parsed for sessions created by this app; other apps
    sharing the Stripe account get metadata=None and are ignored.
    """
    app_id = app_id or settings.STRIPE_APP_ID
    session = (data.get("data") or {}).get("object") or {}
    raw_metadata = session.get("metadata") or {}

    metadata = None
    if raw_metadata.get("appId") == app_id:
        try:
            metadata = PaymentMetadata.from_stripe(raw_metadata)
        except PydanticValidationError as e:
            raise ValidationError(
                "Malformed payment metadata",
                details={"errors": [err["msg"] for err in e.errors()]},
            )

    return PaymentEvent(
        event_id=data.get("id", ""),
        type=data.get("type", ""),
        session_id=session.get("id"),
        payment_status=session.get("payment_status"),
        metadata=metadata,
    )


def session_share_for_goal(session: CheckoutSession, goal_id: uuid.UUID, user_id: str) -> Decimal:
    """
    The part of a paid checkout session that belongs to one goal.

    A session is only good for the goals and the user it was created for,
    and a multi-goal session is split the same way the webhook splits it.
    """
    if session.payment_status != "paid":
        raise ValidationError("Payment has not been confirmed by the processor")
    try:
        metadata = PaymentMetadata.from_stripe(session.metadata or {})
    except PydanticValidationError:
        raise ValidationError("Payment was not created for this goal")
    if metadata.app_id != settings.STRIPE_APP_ID or metadata.user_id != user_id:
        raise ValidationError("Payment was not created for this goal")
    if goal_id not in metadata.goal_ids:
        raise ValidationError("Payment was not created for this goal")
    if session.amount_total is not None and session.amount_total != to_minor_units(metadata.amount_paid):
        raise ValidationError("Amount does not match the confirmed payment")

    shares = split_amount(metadata.amount_paid, len(metadata.goal_ids))
    return shares[metadata.goal_ids.index(goal_id)]


def _plain(obj: Any) -> Dict[str, Any]:
    if obj is None:
        return {}
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


class PaymentGateway(ABC):
    @abstractmethod
    async def create_checkout_session(
        self,
        amount: Decimal,
        description: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[PaymentMetadata] = None,
    ) -> CheckoutSession:
        ...

    @abstractmethod
    async def retrieve_session(self, session_id: str) -> CheckoutSession:
        ...

    @abstractmethod
    def construct_event(self, payload: bytes, signature: str) -> PaymentEvent:
        ...


class StripeGateway(PaymentGateway):
    def __init__(self, api_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        self.api_key = api_key or settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret or settings.STRIPE_WEBHOOK_SECRET

    async def _call(self, func, *args, **kwargs):
        # The Stripe SDK is blocking
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, api_key=self.api_key, **kwargs))

    @staticmethod
    def _to_session(session: Any) -> CheckoutSession:
        return CheckoutSession(
            id=session.id,
            url=getattr(session, "url", None),
            payment_status=getattr(session, "payment_status", None),
            amount_total=getattr(session, "amount_total", None),
            metadata=_plain(getattr(session, "metadata", None)),
        )

    async def create_checkout_session(
        self,
        amount: Decimal,
        description: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[PaymentMetadata] = None,
    ) -> CheckoutSession:
        if not self.api_key:
            raise GatewayError("Payment gateway is not configured")

        expires_at = int(time.time()) + settings.CHECKOUT_SESSION_TTL_MINUTES * 60
        try:
            session = await self._call(
                stripe.checkout.Session.create,
                mode="payment",
                payment_method_types=["card"],
                line_items=[
                    {
                        "price_data": {
                            "currency": settings.STRIPE_CURRENCY,
                            "product_data": {"name": description},
                            "unit_amount": to_minor_units(amount),
                        },
                        "quantity": 1,
                    }
                ],
                expires_at=expires_at,
                metadata=metadata.to_stripe() if metadata else {},
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout failed: {str(e)}")
            raise GatewayError(getattr(e, "user_message", None) or "Stripe checkout failed")

        logger.info(f"Created checkout session {session.id} for {amount} {settings.STRIPE_CURRENCY}")
        return self._to_session(session)

    async def retrieve_session(self, session_id: str) -> CheckoutSession:
        if not self.api_key:
            raise GatewayError("Payment gateway is not configured")
        try:
            session = await self._call(stripe.checkout.Session.retrieve, session_id)
        except stripe.StripeError as e:
            logger.error(f"Could not retrieve checkout session {session_id}: {str(e)}")
            raise GatewayError(getattr(e, "user_message", None) or "Could not verify the payment")
        return self._to_session(session)

    def construct_event(self, payload: bytes, signature: str) -> PaymentEvent:
        if not self.webhook_secret:
            raise GatewayError("Webhook secret is not configured")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError:
            raise ValidationError("Invalid webhook payload")
        except stripe.SignatureVerificationError:
            raise ValidationError("Invalid webhook signature")
        # Verified: read the raw JSON rather than the SDK object
        return parse_event(json.loads(payload))
