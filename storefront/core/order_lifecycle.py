import logging
from typing import Awaitable, Callable, Dict, FrozenSet, List, Optional

from storefront.config import settings
from storefront.core.notifications import NotificationRelay
from storefront.errors import LifecycleViolation, StorefrontError, SyncFailure, UnconfirmedMutation
from storefront.schemas.order import Order, OrderAction, OrderStatus, TransitionResult
from storefront.services.order_service import OrderService

logger = logging.getLogger(__name__)

# Source states from which the user may ask for each transition
CANCELLABLE: FrozenSet[OrderStatus] = frozenset({OrderStatus.PENDING, OrderStatus.PREPARING})
CONFIRMABLE: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.CONFIRMED, OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED}
)

# Status codes meaning "the server refuses this transition"
REJECTION_CODES = frozenset({400, 409, 422})

DedicatedCall = Callable[[str, Optional[str]], Awaitable[Optional[OrderStatus]]]
OrderListener = Callable[[Order], None]


class OrderLifecycleController:
    """
    Requests user-initiated order transitions and keeps the last observed
    state of each tracked order.

    Every other transition (preparing, out for delivery, ...) belongs to the
    server and is only observed through `load()`.
    """

    def __init__(
        self,
        order_service: OrderService,
        relay: Optional[NotificationRelay] = None,
        optimistic_fallback: Optional[bool] = None,
        retries: Optional[int] = None,
    ):
        self.order_service = order_service
        self.relay = relay or NotificationRelay(settings.ORDER_NOTIFY_SECONDS)
        self.optimistic_fallback = (
            optimistic_fallback if optimistic_fallback is not None else settings.ORDER_OPTIMISTIC_FALLBACK
        )
        self.retries = max(0, retries if retries is not None else settings.ORDER_TRANSITION_RETRIES)
        self._orders: Dict[str, Order] = {}
        self._listeners: List[OrderListener] = []

    def track(self, order: Order) -> None:
        self._orders[order.id] = order
        for listener in list(self._listeners):
            listener(order)

    def get(self, order_id: str) -> Optional[Order]:
        return self._orders.get(order_id)

    def subscribe(self, listener: OrderListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def load(self, order_id: str) -> Optional[Order]:
        try:
            order = await self.order_service.get_order(order_id)
        except SyncFailure as e:
            logger.error(f"Could not load order {order_id}: {e}")
            self.relay.error("Could not load the order. Please try again.", settings.ORDER_NOTIFY_SECONDS)
            return None
        self.track(order)
        return order

    async def load_mine(self) -> List[Order]:
        try:
            mine = await self.order_service.get_my_orders()
        except SyncFailure as e:
            logger.error(f"Could not load order history: {e}")
            self.relay.error("Could not load your orders. Please try again.", settings.ORDER_NOTIFY_SECONDS)
            return []
        for order in mine:
            self.track(order)
        return mine

    def can_cancel(self, order_id: str) -> bool:
        order = self.get(order_id)
        return order is not None and order.status in CANCELLABLE

    def can_confirm_delivery(self, order_id: str) -> bool:
        order = self.get(order_id)
        return order is not None and order.status in CONFIRMABLE

    async def request_cancellation(self, order_id: str, feedback: Optional[str] = None) -> TransitionResult:
        return await self._request(
            order_id,
            OrderAction.CANCEL,
            allowed=CANCELLABLE,
            target=OrderStatus.CANCELLED,
            dedicated=self.order_service.cancel,
            feedback=feedback,
        )

    async def request_delivery_confirmation(self, order_id: str, feedback: Optional[str] = None) -> TransitionResult:
        return await self._request(
            order_id,
            OrderAction.CONFIRM_DELIVERY,
            allowed=CONFIRMABLE,
            target=OrderStatus.DELIVERED,
            dedicated=self.order_service.confirm_delivery,
            feedback=feedback,
        )

    async def _request(
        self,
        order_id: str,
        action: OrderAction,
        allowed: FrozenSet[OrderStatus],
        target: OrderStatus,
        dedicated: DedicatedCall,
        feedback: Optional[str],
    ) -> TransitionResult:
        order = self.get(order_id) or await self.load(order_id)
        if order is None:
            return self._failed(order_id, action, None, SyncFailure("Could not load the order"))

        # Confirming receipt of a delivered order is an acknowledgement, not a state change
        acknowledgement = action == OrderAction.CONFIRM_DELIVERY and order.status == OrderStatus.DELIVERED
        if order.is_terminal and not acknowledgement:
            violation = LifecycleViolation(f"Order is already {order.status.value}")
            return self._failed(order_id, action, order.status, violation)
        if order.status not in allowed:
            violation = LifecycleViolation(f"Cannot {action.value.replace('_', ' ')} an order that is {order.status.value}")
            return self._failed(order_id, action, order.status, violation)

        last_error: Optional[SyncFailure] = None
        for attempt in range(1 + self.retries):
            try:
                status = await dedicated(order_id, feedback)
                return self._confirmed(order, action, status or target, via=action.value)
            except SyncFailure as e:
                logger.error(f"{action.value} endpoint failed for order {order_id}: {e}, trying status update")

            try:
                status = await self.order_service.update_status(order_id, target)
                return self._confirmed(order, action, status or target, via="status")
            except SyncFailure as e:
                last_error = e
                logger.error(f"Status update fallback failed for order {order_id} (attempt {attempt + 1}): {e}")
                if e.status_code in REJECTION_CODES:
                    break

        if self.optimistic_fallback:
            return self._unconfirmed(order, action, target)

        if last_error is not None and last_error.status_code in REJECTION_CODES:
            error: StorefrontError = LifecycleViolation(last_error.message)
        else:
            error = last_error or SyncFailure()
        return self._failed(order_id, action, order.status, error)

    def _confirmed(self, order: Order, action: OrderAction, status: OrderStatus, via: str) -> TransitionResult:
        self.track(order.model_copy(update={"status": status}))
        logger.info(f"Order {order.id}: {action.value} confirmed via {via}, status={status.value}")
        if action == OrderAction.CANCEL:
            self.relay.success("Your order has been cancelled", settings.ORDER_NOTIFY_SECONDS)
        else:
            self.relay.success("Thanks! Your order is marked as received", settings.ORDER_NOTIFY_SECONDS)
        return TransitionResult(order_id=order.id, action=action, status=status, confirmed=True, via=via)

    def _unconfirmed(self, order: Order, action: OrderAction, target: OrderStatus) -> TransitionResult:
        self.track(order.model_copy(update={"status": target}))
        logger.error(f"Order {order.id}: {action.value} not confirmed by server, local status set to {target.value}")
        self.relay.warning(
            f"Order marked as {target.value}, but the server has not confirmed it yet",
            settings.ORDER_NOTIFY_SECONDS,
        )
        return TransitionResult(
            order_id=order.id, action=action, status=target, confirmed=False, error=UnconfirmedMutation()
        )

    def _failed(
        self, order_id: str, action: OrderAction, status: Optional[OrderStatus], error: StorefrontError
    ) -> TransitionResult:
        logger.info(f"Order {order_id}: {action.value} rejected: {error.message}")
        if action == OrderAction.CANCEL:
            text = f"Could not cancel the order: {error.message}"
        else:
            text = f"Could not confirm delivery: {error.message}"
        self.relay.error(text, settings.ORDER_NOTIFY_SECONDS)
        return TransitionResult(order_id=order_id, action=action, status=status, error=error)
