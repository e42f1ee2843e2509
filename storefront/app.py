# storefront/app.py
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from storefront.config import Settings, settings as default_settings
from storefront.core.cart_operations import CartOperationCoordinator
from storefront.core.cart_store import CartStore
from storefront.core.notifications import NotificationRelay
from storefront.core.order_lifecycle import OrderLifecycleController
from storefront.core.promotions import PromotionEvaluator
from storefront.services.cart_service import CartService
from storefront.services.order_service import OrderService
from storefront.services.promotion_service import PromotionService
from storefront.utils.api_client import ApiClient
from storefront.utils.auth import AuthSession

logger = logging.getLogger(__name__)


@dataclass
class Storefront:
    auth: AuthSession
    relay: NotificationRelay
    cart: CartStore
    cart_operations: CartOperationCoordinator
    orders: OrderLifecycleController
    promotions: PromotionEvaluator


def create_storefront(
    auth: Optional[AuthSession] = None,
    config: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Storefront:
    """Wire the engine together; one instance per signed-in client."""
    config = config or default_settings
    auth = auth or AuthSession()

    api = ApiClient(auth, base_url=config.API_URL, timeout=config.REQUEST_TIMEOUT, transport=transport)
    cart_service = CartService(api)

    relay = NotificationRelay(config.CART_NOTIFY_SECONDS)
    store = CartStore(cart_service, auth, debounce_ms=config.CART_REFRESH_DEBOUNCE_MS)

    logger.info(f"Storefront engine ready (api={config.API_URL})")
    return Storefront(
        auth=auth,
        relay=relay,
        cart=store,
        cart_operations=CartOperationCoordinator(store, cart_service, auth, relay),
        orders=OrderLifecycleController(
            OrderService(api),
            relay,
            optimistic_fallback=config.ORDER_OPTIMISTIC_FALLBACK,
            retries=config.ORDER_TRANSITION_RETRIES,
        ),
        promotions=PromotionEvaluator(
            PromotionService(api),
            relay,
            delivery_fee=config.DELIVERY_FEE,
            cache_seconds=config.PROMOTION_CACHE_SECONDS,
        ),
    )
