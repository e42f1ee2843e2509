"""Tests for promotion evaluation and code redemption."""
import asyncio
import logging
from datetime import datetime, timedelta, timezone

from storefront.core.promotions import (
    REASON_BELOW_MINIMUM,
    REASON_EMPTY_CODE,
    REASON_EXPIRED,
    REASON_FLASH_SALE_HOURS,
    REASON_INACTIVE,
    REASON_INVALID_AMOUNT,
    REASON_INVALID_CODE,
    REASON_LOOKUP_FAILED,
    REASON_NOT_STARTED,
    REASON_USAGE_LIMIT,
    evaluate,
    get_final_amount,
)
from storefront.errors import ValidationRejection
from storefront.schemas.notification import Severity
from storefront.schemas.promotion import Promotion

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


def _promo(**fields) -> Promotion:
    fields.setdefault("code", "TEST")
    return Promotion(**fields)


def test_percentage_discount_is_capped():
    """10% of 200000 is 20000, but the cap is 15000."""
    result = evaluate(_promo(type="percentage", value=10, max_discount=15000), 200000)

    assert result.applied
    assert result.discount == 15000


def test_percentage_discount_below_cap():
    result = evaluate(_promo(type="percentage", value=10, max_discount=15000), 100000)

    assert result.discount == 10000


def test_fixed_discount_below_minimum_is_rejected():
    """A subtotal under minOrderValue yields no discount and names the reason."""
    result = evaluate(_promo(type="fixed", value=20000, min_order_value=150000), 100000)

    assert result.applied is False
    assert result.discount == 0
    assert result.reason == REASON_BELOW_MINIMUM
    assert isinstance(result.rejection, ValidationRejection)


def test_fixed_discount_at_minimum_applies():
    result = evaluate(_promo(type="fixed", value=20000, min_order_value=150000), 150000)

    assert result.discount == 20000


def test_free_delivery_uses_delivery_fee():
    assert evaluate(_promo(type="free_delivery"), 12345).discount == 30000
    assert evaluate(_promo(type="free_delivery"), 0, delivery_fee=15000).discount == 15000


def test_free_item_is_not_money_off():
    result = evaluate(_promo(type="free_item", value=1), 500000)

    assert result.applied
    assert result.discount == 0


def test_discount_rounds_half_up():
    assert evaluate(_promo(type="percentage", value=15), 10003).discount == 1500  # 1500.45
    assert evaluate(_promo(type="percentage", value=50), 1001).discount == 501  # 500.5


def test_inactive_promotion_is_rejected():
    result = evaluate(_promo(type="fixed", value=20000, is_active=False), 500000)

    assert result.reason == REASON_INACTIVE
    assert result.discount == 0


def test_validity_window():
    now = datetime(2026, 5, 1, 12, tzinfo=timezone.utc)
    upcoming = _promo(type="fixed", value=5000, start_date=now + timedelta(days=1))
    expired = _promo(type="fixed", value=5000, end_date=now - timedelta(seconds=1))
    current = _promo(type="fixed", value=5000, start_date=now - timedelta(days=1), end_date=now + timedelta(days=1))

    assert evaluate(upcoming, 100000, now=now).reason == REASON_NOT_STARTED
    assert evaluate(expired, 100000, now=now).reason == REASON_EXPIRED
    assert evaluate(current, 100000, now=now).discount == 5000


def test_usage_limit_reached():
    result = evaluate(_promo(type="fixed", value=5000, usage_limit=10, usage_count=10), 100000)

    assert result.reason == REASON_USAGE_LIMIT


def test_flash_sale_hours():
    """Flash sales only apply inside their hour windows (dayOfWeek 0 is Sunday)."""
    promo = Promotion.model_validate({
        "code": "LUNCH", "type": "percentage", "value": 20, "isFlashSale": True,
        "flashSaleHours": [{"dayOfWeek": 5, "startHour": 11, "endHour": 13}],
    })
    friday_noon = datetime(2026, 10, 16, 12, tzinfo=timezone.utc)
    friday_evening = datetime(2026, 10, 16, 19, tzinfo=timezone.utc)

    assert evaluate(promo, 100000, now=friday_noon).discount == 20000
    assert evaluate(promo, 100000, now=friday_evening).reason == REASON_FLASH_SALE_HOURS


def test_zero_floor_and_cap_mean_unset():
    promo = Promotion.model_validate({"code": "Z", "type": "percentage", "value": 10,
                                      "minOrderValue": 0, "maxDiscount": 0})

    assert evaluate(promo, 1000).discount == 100


def test_non_finite_amounts_are_rejected():
    """evaluate never raises, even for amounts that are not numbers."""
    for subtotal in (float("inf"), float("-inf"), float("nan")):
        result = evaluate(_promo(type="percentage", value=10), subtotal)
        assert result.discount == 0
        assert result.reason == REASON_INVALID_AMOUNT

    result = evaluate(_promo(type="fixed", value=float("inf")), 100000)
    assert result.reason == REASON_INVALID_AMOUNT


def test_final_amount_never_negative():
    assert get_final_amount(50000, 80000) == 0
    assert get_final_amount(95000, 15000) == 80000


def test_apply_code_from_active_list(promotions, backend, relay):
    """Codes match case-insensitively against the pre-fetched active list."""
    result = asyncio.run(promotions.apply_code("save10", 200000))

    assert result.applied
    assert result.discount == 15000
    assert result.promotion.code == "SAVE10"
    assert backend.count("GET", "/promotion/validate") == 0
    assert relay.current.severity == Severity.SUCCESS


def test_apply_code_falls_back_to_validation_endpoint(promotions, backend):
    """An inactive code is not in the active list, so the live endpoint is asked."""
    result = asyncio.run(promotions.apply_code("OLD", 200000))

    assert backend.count("GET", "/promotion/validate") == 1
    assert result.reason == REASON_INACTIVE
    assert result.discount == 0


def test_apply_code_unknown(promotions, relay):
    result = asyncio.run(promotions.apply_code("NOPE", 200000))

    assert result.reason == REASON_INVALID_CODE
    assert relay.current.severity == Severity.ERROR


def test_apply_code_empty(promotions, backend):
    result = asyncio.run(promotions.apply_code("   ", 200000))

    assert result.reason == REASON_EMPTY_CODE
    assert backend.calls == []


def test_apply_code_lookup_failure(promotions, backend):
    backend.failures["promotion.list"] = 500
    backend.failures["promotion.validate"] = 503

    result = asyncio.run(promotions.apply_code("SAVE10", 200000))

    assert result.reason == REASON_LOOKUP_FAILED
    assert result.discount == 0


def test_active_list_is_cached(promotions, backend):
    async def run():
        await promotions.apply_code("SAVE10", 100000)
        await promotions.apply_code("FREESHIP", 100000)

    asyncio.run(run())

    assert backend.count("GET", "/promotion") == 1


def test_active_list_expires(promotions, backend, clock):
    """After the cache window a deactivated code is no longer matched from the old list."""
    asyncio.run(promotions.apply_code("SAVE10", 100000))
    backend.promotions[0]["isActive"] = False
    clock.advance(301)

    result = asyncio.run(promotions.apply_code("SAVE10", 100000))

    assert backend.count("GET", "/promotion") == 2
    assert backend.count("GET", "/promotion/validate") == 1
    assert result.reason == REASON_INACTIVE


def test_malformed_promotion_is_a_lookup_failure(promotions, backend, relay):
    """An unknown promotion type from the validation endpoint is reported, not raised."""
    backend.promotions.append({"_id": "p4", "code": "MYSTERY", "name": "Mystery", "type": "mystery_box",
                               "value": 5, "isActive": True})

    result = asyncio.run(promotions.apply_code("MYSTERY", 100000))

    assert result.reason == REASON_LOOKUP_FAILED
    assert result.discount == 0
    assert relay.current.severity == Severity.ERROR
