import logging
from typing import Awaitable, Callable, List, Optional

from storefront.config import settings
from storefront.core.cart_store import CartStore
from storefront.core.notifications import NotificationRelay
from storefront.errors import AuthenticationRequired, SyncFailure, ValidationRejection
from storefront.schemas.cart import CartActionResult, CartItem, ProductRef
from storefront.services.cart_service import CartService
from storefront.utils.auth import AuthSession

logger = logging.getLogger(__name__)

Mutation = Callable[[], Awaitable[Optional[List[CartItem]]]]


def resolve_line(items: List[CartItem], item_id: str) -> Optional[CartItem]:
    """
    Find the cart line an id refers to.

    Callers may hold either the cart-line id or, for carts created before
    lines had their own ids, the catalog product id. Line ids win.
    """
    for item in items:
        if item.has_line_id and item.id == item_id:
            return item
    for item in items:
        if item.product.id == item_id:
            return item
    return None


class CartOperationCoordinator:
    def __init__(
        self,
        store: CartStore,
        cart_service: CartService,
        auth: AuthSession,
        relay: Optional[NotificationRelay] = None,
    ):
        self.store = store
        self.cart_service = cart_service
        self.auth = auth
        self.relay = relay or NotificationRelay(settings.CART_NOTIFY_SECONDS)

    # --- lookups ---

    def is_item_in_cart(self, item_id: str) -> bool:
        return resolve_line(self.store.items, item_id) is not None

    def get_item_quantity(self, item_id: str) -> int:
        item = resolve_line(self.store.items, item_id)
        return item.quantity if item else 0

    def proceed_to_checkout(self) -> bool:
        if not self.auth.is_authenticated:
            self.relay.error("Please sign in to continue to checkout", settings.CART_NOTIFY_SECONDS)
            return False
        return True

    # --- mutations ---

    async def add(self, product: ProductRef, quantity: int = 1, note: Optional[str] = None) -> CartActionResult:
        if not self.auth.is_authenticated:
            return self._unauthenticated()
        if quantity < 1:
            return self._rejected(ValidationRejection("quantity must be at least 1"))
        return await self._mutate(
            lambda: self.cart_service.add_item(product.id, quantity, note),
            success=f"{product.name} added to cart",
            failure=f"Could not add {product.name} to cart. Please try again.",
        )

    async def update(self, item_id: str, quantity: int, note: Optional[str] = None) -> CartActionResult:
        if quantity <= 0:
            return await self.remove(item_id)

        line = resolve_line(self.store.items, item_id)
        if line is None:
            # Not in our snapshot; let the server decide
            logger.info(f"Cart line {item_id} not found locally, sending update as-is")
            line_id, product_id, name = item_id, item_id, "Item"
        else:
            line_id, product_id, name = line.id, line.product.id, line.product.name
            if note is None:
                note = line.special_instructions

        return await self._mutate(
            lambda: self.cart_service.update_item(line_id, product_id, quantity, note),
            success=f"{name} updated",
            failure=f"Could not update {name}. Please try again.",
        )

    async def remove(self, item_id: str) -> CartActionResult:
        line = resolve_line(self.store.items, item_id)
        line_id = line.id if line else item_id
        name = line.product.name if line else "Item"
        return await self._mutate(
            lambda: self.cart_service.remove_item(line_id),
            success=f"{name} removed from cart",
            failure=f"Could not remove {name}. Please try again.",
        )

    async def clear(self) -> CartActionResult:
        async def clear_remote() -> List[CartItem]:
            await self.cart_service.clear()
            return []

        return await self._mutate(
            clear_remote,
            success="Cart cleared",
            failure="Could not clear the cart. Please try again.",
        )

    async def increase(self, item_id: str) -> CartActionResult:
        if not self.auth.is_authenticated:
            return self._unauthenticated()
        line = resolve_line(self.store.items, item_id)
        if line is None:
            return self._rejected(ValidationRejection(f"cart item {item_id} not found"))
        return await self.update(line.id, line.quantity + 1)

    async def decrease(self, item_id: str) -> CartActionResult:
        if not self.auth.is_authenticated:
            return self._unauthenticated()
        line = resolve_line(self.store.items, item_id)
        if line is None:
            return self._rejected(ValidationRejection(f"cart item {item_id} not found"))
        return await self.update(line.id, line.quantity - 1)

    async def _mutate(self, call: Mutation, success: str, failure: str) -> CartActionResult:
        if not self.auth.is_authenticated:
            return self._unauthenticated()

        seq = self.store.issue()
        try:
            items = await call()
        except SyncFailure as e:
            logger.error(f"Cart mutation failed, resynchronizing: {e}")
            await self.store.refresh(force=True)
            self.relay.error(failure, settings.CART_NOTIFY_SECONDS)
            return CartActionResult(success=False, cart=self.store.snapshot, message=failure, error=e)

        if items is None:
            await self.store.refresh(force=True)
        else:
            self.store.apply(items, seq)

        self.relay.success(success, settings.CART_NOTIFY_SECONDS)
        return CartActionResult(success=True, cart=self.store.snapshot, message=success)

    def _unauthenticated(self) -> CartActionResult:
        error = AuthenticationRequired("Please sign in to manage your cart")
        self.relay.error(error.message, settings.CART_NOTIFY_SECONDS)
        return CartActionResult(success=False, cart=self.store.snapshot, message=error.message, error=error)

    def _rejected(self, error: ValidationRejection) -> CartActionResult:
        self.relay.error(error.reason.capitalize(), settings.CART_NOTIFY_SECONDS)
        return CartActionResult(success=False, cart=self.store.snapshot, message=error.reason, error=error)
