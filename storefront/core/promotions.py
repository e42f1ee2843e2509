import logging
import math
import time
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, List, Optional

from storefront.config import settings
from storefront.core.notifications import NotificationRelay
from storefront.errors import SyncFailure
from storefront.schemas.promotion import DiscountResult, Promotion, PromotionType
from storefront.services.promotion_service import PromotionService

logger = logging.getLogger(__name__)

REASON_INACTIVE = "promotion is inactive"
REASON_NOT_STARTED = "promotion has not started"
REASON_EXPIRED = "promotion has expired"
REASON_USAGE_LIMIT = "promotion usage limit reached"
REASON_FLASH_SALE_HOURS = "outside flash sale hours"
REASON_BELOW_MINIMUM = "below minimum order value"
REASON_INVALID_AMOUNT = "order amount is not a valid number"
REASON_EMPTY_CODE = "enter a promotion code"
REASON_INVALID_CODE = "invalid promotion code"
REASON_LOOKUP_FAILED = "promotion code validation failed"


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _round_currency(amount: float) -> int:
    # Half-up to the nearest whole currency unit
    return int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _in_flash_sale_hours(promotion: Promotion, now: datetime) -> bool:
    if not promotion.flash_sale_hours:
        return True
    day_of_week = (now.weekday() + 1) % 7  # Sunday = 0
    return any(
        window.day_of_week == day_of_week and window.start_hour <= now.hour < window.end_hour
        for window in promotion.flash_sale_hours
    )


def rejection_reason(promotion: Promotion, subtotal: float, now: Optional[datetime] = None) -> Optional[str]:
    now = _as_aware(now or datetime.now(timezone.utc))
    if not promotion.is_active:
        return REASON_INACTIVE
    if promotion.start_date and now < _as_aware(promotion.start_date):
        return REASON_NOT_STARTED
    if promotion.end_date and now > _as_aware(promotion.end_date):
        return REASON_EXPIRED
    if promotion.usage_limit is not None and promotion.usage_count >= promotion.usage_limit:
        return REASON_USAGE_LIMIT
    if promotion.is_flash_sale and not _in_flash_sale_hours(promotion, now):
        return REASON_FLASH_SALE_HOURS
    if promotion.min_order_value is not None and subtotal < promotion.min_order_value:
        return REASON_BELOW_MINIMUM
    return None


def evaluate(
    promotion: Promotion,
    subtotal: float,
    *,
    delivery_fee: Optional[int] = None,
    now: Optional[datetime] = None,
) -> DiscountResult:
    """
    Compute the discount a promotion grants on an order subtotal.

    Pure: no I/O and no exceptions for a well-formed Promotion. An
    inapplicable promotion yields a zero discount with the reason set.
    """
    if not math.isfinite(subtotal) or not math.isfinite(promotion.value):
        return DiscountResult(discount=0, promotion=promotion, reason=REASON_INVALID_AMOUNT)
    reason = rejection_reason(promotion, subtotal, now)
    if reason is not None:
        return DiscountResult(discount=0, promotion=promotion, reason=reason)

    if promotion.type == PromotionType.PERCENTAGE:
        discount = subtotal * (promotion.value / 100)
        if promotion.max_discount is not None and discount > promotion.max_discount:
            discount = promotion.max_discount
    elif promotion.type == PromotionType.FIXED:
        discount = promotion.value
    elif promotion.type == PromotionType.FREE_DELIVERY:
        discount = delivery_fee if delivery_fee is not None else settings.DELIVERY_FEE
    else:
        # free_item is fulfilled out of band, not as money off
        discount = 0

    if not math.isfinite(discount):
        return DiscountResult(discount=0, promotion=promotion, reason=REASON_INVALID_AMOUNT)
    return DiscountResult(discount=max(0, _round_currency(discount)), promotion=promotion)


def get_final_amount(total_amount: float, discount: float) -> float:
    return max(0, total_amount - discount)


class PromotionEvaluator:
    """Single entry point for redeeming a promotion code at checkout."""

    def __init__(
        self,
        promotion_service: PromotionService,
        relay: Optional[NotificationRelay] = None,
        delivery_fee: Optional[int] = None,
        cache_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.promotion_service = promotion_service
        self.relay = relay
        self.delivery_fee = delivery_fee if delivery_fee is not None else settings.DELIVERY_FEE
        self.cache_seconds = cache_seconds if cache_seconds is not None else settings.PROMOTION_CACHE_SECONDS
        self._clock = clock
        self._active: Optional[List[Promotion]] = None
        self._loaded_at = 0.0

    async def load_active(self, force: bool = False) -> List[Promotion]:
        expired = self._clock() - self._loaded_at >= self.cache_seconds
        if self._active is None or force or expired:
            self._active = await self.promotion_service.list_promotions(is_active=True, status="active")
            self._loaded_at = self._clock()
            logger.info(f"Loaded {len(self._active)} active promotions")
        return self._active

    async def find(self, code: str) -> Optional[Promotion]:
        """Look the code up in the active list first, then ask the validation endpoint."""
        try:
            active = await self.load_active()
        except SyncFailure as e:
            logger.error(f"Could not load active promotions: {e}")
            active = []
        for promotion in active:
            if promotion.matches(code) and promotion.is_active:
                return promotion
        return await self.promotion_service.validate_code(code.strip())

    async def apply_code(self, code: str, subtotal: float, now: Optional[datetime] = None) -> DiscountResult:
        if not code or not code.strip():
            return self._reject(REASON_EMPTY_CODE)

        try:
            promotion = await self.find(code)
        except SyncFailure as e:
            logger.error(f"Promotion lookup for {code!r} failed: {e}")
            return self._reject(REASON_LOOKUP_FAILED)
        if promotion is None:
            return self._reject(REASON_INVALID_CODE)

        result = evaluate(promotion, subtotal, delivery_fee=self.delivery_fee, now=now)
        if result.applied:
            logger.info(f"Promotion {promotion.code} applied: discount={result.discount}")
            if self.relay:
                self.relay.success(f"Promotion {promotion.name or promotion.code} applied", settings.ORDER_NOTIFY_SECONDS)
        else:
            logger.info(f"Promotion {promotion.code} rejected: {result.reason}")
            if self.relay:
                self.relay.error(f"Cannot apply {promotion.code}: {result.reason}", settings.ORDER_NOTIFY_SECONDS)
        return result

    def _reject(self, reason: str) -> DiscountResult:
        if self.relay:
            self.relay.error(reason.capitalize(), settings.ORDER_NOTIFY_SECONDS)
        return DiscountResult(discount=0, reason=reason)
