"""Pytest fixtures: a fake backend mounted through httpx and the engine wired against it."""

import httpx
import pytest

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
from tests.fake_backend import BackendState, create_access_token, create_app

USER_EMAIL = "diner@example.com"


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> BackendState:
    state = BackendState()

    state.catalog["pho"] = {"_id": "pho", "name": "Pho Bo", "price": 65000, "image": "pho.jpg"}
    state.catalog["banhmi"] = {"_id": "banhmi", "name": "Banh Mi", "price": 35000, "image": "banhmi.jpg"}
    state.catalog["tea"] = {"_id": "tea", "name": "Iced Tea", "price": 15000}

    state.orders["o-pending"] = {"_id": "o-pending", "status": "pending", "totalAmount": 95000, "items": []}
    state.orders["o-preparing"] = {"_id": "o-preparing", "status": "processing", "totalAmount": 65000, "items": []}
    state.orders["o-confirmed"] = {"_id": "o-confirmed", "status": "confirmed", "totalAmount": 65000, "items": []}
    state.orders["o-delivering"] = {"_id": "o-delivering", "status": "out_for_delivery", "totalAmount": 50000, "items": []}
    state.orders["o-delivered"] = {"_id": "o-delivered", "status": "delivered", "totalAmount": 80000, "items": []}
    state.orders["o-cancelled"] = {"_id": "o-cancelled", "status": "cancelled", "totalAmount": 30000, "items": []}

    state.promotions.append({"_id": "p1", "code": "SAVE10", "name": "Save 10%", "type": "percentage",
                             "value": 10, "maxDiscount": 15000, "isActive": True})
    state.promotions.append({"_id": "p2", "code": "FREESHIP", "name": "Free delivery", "type": "free_delivery",
                             "value": 0, "isActive": True})
    state.promotions.append({"_id": "p3", "code": "OLD", "name": "Old deal", "type": "fixed",
                             "value": 20000, "isActive": False})
    return state


@pytest.fixture
def transport(backend) -> httpx.ASGITransport:
    return httpx.ASGITransport(app=create_app(backend))


@pytest.fixture
def token() -> str:
    return create_access_token({"sub": USER_EMAIL})


@pytest.fixture
def auth(token) -> AuthSession:
    return AuthSession(token)


@pytest.fixture
def api(auth, transport) -> ApiClient:
    return ApiClient(auth, base_url="http://test", transport=transport)


@pytest.fixture
def relay(clock) -> NotificationRelay:
    return NotificationRelay(default_duration=3.0, clock=clock)


@pytest.fixture
def cart_service(api) -> CartService:
    return CartService(api)


@pytest.fixture
def store(cart_service, auth, clock) -> CartStore:
    return CartStore(cart_service, auth, debounce_ms=500, clock=clock)


@pytest.fixture
def coordinator(store, cart_service, auth, relay) -> CartOperationCoordinator:
    return CartOperationCoordinator(store, cart_service, auth, relay)


@pytest.fixture
def orders(api, relay) -> OrderLifecycleController:
    return OrderLifecycleController(OrderService(api), relay, optimistic_fallback=True, retries=0)


@pytest.fixture
def strict_orders(api, relay) -> OrderLifecycleController:
    return OrderLifecycleController(OrderService(api), relay, optimistic_fallback=False, retries=0)


@pytest.fixture
def promotions(api, relay, clock) -> PromotionEvaluator:
    return PromotionEvaluator(PromotionService(api), relay, delivery_fee=30000, cache_seconds=300, clock=clock)
