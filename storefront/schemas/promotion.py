from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional

from storefront.errors import ValidationRejection


class PromotionType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    FREE_DELIVERY = "free_delivery"
    FREE_ITEM = "free_item"


# Hour window in which a flash sale code is redeemable
class FlashSaleHours(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    day_of_week: int = Field(alias="dayOfWeek", ge=0, le=6)  # 0 = Sunday
    start_hour: int = Field(alias="startHour", ge=0, le=23)
    end_hour: int = Field(alias="endHour", ge=0, le=23)


# Promotion as served by the promotion service
class Promotion(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: Optional[str] = Field(default=None, alias="_id")
    code: str
    name: str = ""
    description: str = ""
    type: PromotionType
    value: float = 0
    min_order_value: Optional[float] = Field(default=None, alias="minOrderValue")
    max_discount: Optional[float] = Field(default=None, alias="maxDiscount")
    is_active: bool = Field(default=True, alias="isActive")
    start_date: Optional[datetime] = Field(default=None, alias="startDate")
    end_date: Optional[datetime] = Field(default=None, alias="endDate")

    # Usage counters, read-only on this side
    usage_limit: Optional[int] = Field(default=None, alias="usageLimit")
    usage_count: int = Field(default=0, alias="usageCount")
    total_codes: int = Field(default=0, alias="totalCodes")
    used_codes: int = Field(default=0, alias="usedCodes")

    is_flash_sale: bool = Field(default=False, alias="isFlashSale")
    flash_sale_hours: List[FlashSaleHours] = Field(default_factory=list, alias="flashSaleHours")
    promotion_type: str = Field(default="regular", alias="promotionType")

    @field_validator("min_order_value", "max_discount", mode="before")
    @classmethod
    def _zero_means_unset(cls, value):
        # The admin form stores 0 for "no floor" / "no cap"
        if value in (0, "", None):
            return None
        return value

    def matches(self, code: str) -> bool:
        return self.code.strip().lower() == (code or "").strip().lower()


# Result of evaluating a promotion against a subtotal; never persisted
class DiscountResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    discount: int = Field(default=0, ge=0)
    promotion: Optional[Promotion] = None
    reason: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.reason is None

    @property
    def rejection(self) -> Optional[ValidationRejection]:
        return ValidationRejection(self.reason) if self.reason else None
