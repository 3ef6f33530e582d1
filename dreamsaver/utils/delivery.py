# dreamsaver/utils/delivery.py
import logging
from datetime import date
from typing import Optional

import httpx

from dreamsaver.core.config import settings
from dreamsaver.core.errors import GatewayError
from dreamsaver.models.goal import Goal

logger = logging.getLogger(__name__)


class DeliveryClient:
    """Thin client for the delivery service that ships redeemed products."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.DELIVERY_SERVICE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.DELIVERY_SERVICE_TIMEOUT
        self._transport = transport

    async def create_delivery(self, goal: Goal, address_id: str, delivery_date: date) -> str:
        """Ask the delivery service to ship the goal's product. Returns the delivery id."""
        payload = {
            "goalId": str(goal.id),
            "userId": goal.user_id,
            "productId": str(goal.product_id),
            "addressId": address_id,
            "deliveryDate": delivery_date.isoformat(),
        }
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post("/deliveries", json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Delivery service rejected goal {goal.id}: {e.response.status_code} {e.response.text}")
            raise GatewayError(f"Delivery service rejected the request ({e.response.status_code})")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Delivery service call failed for goal {goal.id}: {str(e)}")
            raise GatewayError("Delivery service unavailable")

        delivery_id = (data.get("id") or data.get("deliveryId")) if isinstance(data, dict) else None
        if not delivery_id:
            raise GatewayError("Delivery service returned no delivery id")
        return str(delivery_id)
