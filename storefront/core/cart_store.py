import asyncio
import logging
import time
from typing import Callable, List, Optional

from storefront.config import settings
from storefront.errors import SyncFailure
from storefront.schemas.cart import Cart, CartItem
from storefront.services.cart_service import CartService
from storefront.utils.auth import AuthSession

logger = logging.getLogger(__name__)

CartListener = Callable[[Cart], None]


class CartStore:
    """
    Owner of the local cart snapshot.

    The snapshot is only ever swapped as a whole. Each outgoing request gets a
    number from `issue()`, and a response is applied only when its number is
    newer than the last applied one, so a slow response can never overwrite a
    fresher snapshot.
    """

    def __init__(
        self,
        cart_service: CartService,
        auth: AuthSession,
        debounce_ms: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cart_service = cart_service
        self.auth = auth
        self.debounce = (debounce_ms if debounce_ms is not None else settings.CART_REFRESH_DEBOUNCE_MS) / 1000
        self._clock = clock

        self._snapshot = Cart()
        self.error: Optional[SyncFailure] = None
        self._issued = 0
        self._applied = 0
        self._last_completed: Optional[float] = None
        self._inflight: Optional[asyncio.Task] = None
        self._listeners: List[CartListener] = []

        auth.subscribe(self._on_auth_change)

    @property
    def snapshot(self) -> Cart:
        if not self.auth.is_authenticated:
            return Cart()
        return self._snapshot

    @property
    def items(self) -> List[CartItem]:
        return self.snapshot.items

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def issue(self) -> int:
        self._issued += 1
        return self._issued

    def apply(self, items: List[CartItem], seq: int) -> bool:
        if seq <= self._applied:
            logger.info(f"Discarding stale cart response #{seq} (latest applied #{self._applied})")
            return False
        self._applied = seq
        self.error = None
        self._replace(Cart(items=items))
        return True

    async def refresh(self, force: bool = False) -> Cart:
        if not self.auth.is_authenticated:
            if not self._snapshot.is_empty:
                self._replace(Cart())
            return self.snapshot

        if self._inflight is not None and not self._inflight.done() and not force:
            return await self._inflight

        if (
            not force
            and self._last_completed is not None
            and self._clock() - self._last_completed < self.debounce
        ):
            return self.snapshot

        self._inflight = asyncio.ensure_future(self._fetch())
        return await self._inflight

    def reset(self) -> None:
        # Any response still in flight belongs to the previous session
        self._applied = self._issued
        self._last_completed = None
        self.error = None
        self._replace(Cart())

    async def _fetch(self) -> Cart:
        seq = self.issue()
        try:
            items = await self.cart_service.get_cart()
        except SyncFailure as e:
            logger.error(f"Cart refresh #{seq} failed, keeping previous snapshot: {e}")
            self.error = e
            if not self._snapshot.stale:
                self._replace(self._snapshot.model_copy(update={"stale": True}))
        else:
            self.apply(items, seq)
        finally:
            self._last_completed = self._clock()
        return self.snapshot

    def _replace(self, cart: Cart) -> None:
        self._snapshot = cart
        for listener in list(self._listeners):
            listener(self.snapshot)

    def _on_auth_change(self, authenticated: bool) -> None:
        self.reset()
        if not authenticated:
            logger.info("Signed out, cart cleared")
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return  # picked up by the next refresh()
        self._inflight = loop.create_task(self._fetch())
