import logging
from typing import Any, List, Optional

from pydantic import ValidationError

from storefront.errors import SyncFailure
from storefront.schemas.order import Order, OrderFeedbackPatch, OrderStatus, OrderStatusPatch
from storefront.utils.api_client import ApiClient

logger = logging.getLogger(__name__)


def _unwrap(data: Any) -> Any:
    # Responses are {status, message, data} envelopes
    if isinstance(data, dict) and "data" in data:
        return data["data"]
    return data


def _status_of(data: Any) -> Optional[OrderStatus]:
    # Only the order document carries an order status; the envelope's own
    # "status" is "success"/"error"
    body = data.get("data") if isinstance(data, dict) else None
    value = body.get("status") if isinstance(body, dict) else None
    if not isinstance(value, str):
        return None
    try:
        return OrderStatus.parse(value)
    except ValueError:
        logger.warning(f"Ignoring unknown order status {value!r} in transition response")
        return None


class OrderService:
    def __init__(self, api: ApiClient):
        self.api = api

    async def get_order(self, order_id: str) -> Order:
        data = await self.api.get(f"/order/{order_id}")
        try:
            return Order.model_validate(_unwrap(data))
        except ValidationError as e:
            logger.error(f"Malformed order {order_id}: {e}")
            raise SyncFailure(f"Received a malformed order {order_id}")

    async def get_my_orders(self) -> List[Order]:
        data = _unwrap(await self.api.get("/order/user/my-orders"))
        if isinstance(data, dict):
            data = data.get("orders", [])
        orders = []
        for item in data or []:
            try:
                orders.append(Order.model_validate(item))
            except ValidationError as e:
                # One bad document must not hide the rest of the history
                logger.error(f"Ignoring malformed order {item.get('_id') if isinstance(item, dict) else item}: {e}")
        return orders

    async def cancel(self, order_id: str, feedback: Optional[str] = None) -> Optional[OrderStatus]:
        payload = OrderFeedbackPatch(feedback=feedback or "")
        data = await self.api.patch(f"/order/{order_id}/cancel", json=payload.model_dump())
        return _status_of(data)

    async def confirm_delivery(self, order_id: str, feedback: Optional[str] = None) -> Optional[OrderStatus]:
        payload = OrderFeedbackPatch(feedback=feedback or "")
        data = await self.api.patch(f"/order/{order_id}/user/confirm-delivery", json=payload.model_dump())
        return _status_of(data)

    async def update_status(self, order_id: str, status: OrderStatus) -> Optional[OrderStatus]:
        payload = OrderStatusPatch(status=status)
        data = await self.api.patch(f"/order/{order_id}/status", json=payload.model_dump(mode="json"))
        return _status_of(data)
