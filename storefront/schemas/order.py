from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: str) -> "OrderStatus":
        return cls(STATUS_ALIASES.get(value, value))


# Older backends still send these names
STATUS_ALIASES = {
    "processing": "preparing",
    "delivering": "out_for_delivery",
}


class OrderAction(str, Enum):
    CANCEL = "cancel"
    CONFIRM_DELIVERY = "confirm_delivery"


# Line item snapshot taken at purchase time
class OrderItemOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    product_id: str
    product_name: str = ""
    quantity: int
    price: float
    special_instructions: Optional[str] = Field(default=None, alias="specialInstructions")

    @property
    def line_total(self) -> float:
        return self.price * self.quantity


class DeliveryAddress(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = Field(default="", alias="postalCode")
    additional_info: Optional[str] = Field(default=None, alias="additionalInfo")


# Order as owned by the backend; this side only reads it
class Order(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: str = Field(alias="_id")
    items: List[OrderItemOut] = Field(default_factory=list)
    total_amount: float = Field(default=0, alias="totalAmount")
    status: OrderStatus = OrderStatus.PENDING
    payment_method: Optional[str] = Field(default=None, alias="paymentMethod")
    payment_status: Optional[str] = Field(default=None, alias="paymentStatus")
    delivery_address: Optional[DeliveryAddress] = Field(default=None, alias="deliveryAddress")
    special_instructions: Optional[str] = Field(default=None, alias="specialInstructions")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value):
        if isinstance(value, str):
            return OrderStatus.parse(value)
        return value

    @field_validator("items", mode="before")
    @classmethod
    def _flatten_items(cls, value):
        # menuItem may be an id string or a populated product document
        if not isinstance(value, list):
            return []
        items = []
        for raw in value:
            if not isinstance(raw, dict):
                continue
            menu_item = raw.get("menuItem")
            if isinstance(menu_item, dict):
                product_id, product_name = menu_item.get("_id", ""), menu_item.get("name", "")
            else:
                product_id, product_name = menu_item or raw.get("product_id", ""), raw.get("product_name", "")
            items.append({
                "product_id": str(product_id),
                "product_name": product_name,
                "quantity": raw.get("quantity", 0),
                "price": raw.get("price", 0),
                "specialInstructions": raw.get("specialInstructions"),
            })
        return items

    @property
    def is_terminal(self) -> bool:
        return self.status in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)


# Request body for the generic status endpoint
class OrderStatusPatch(BaseModel):
    status: OrderStatus


# Request body for the dedicated cancel / confirm-delivery endpoints
class OrderFeedbackPatch(BaseModel):
    feedback: str = ""


# Outcome of a user-initiated transition request
class TransitionResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    order_id: str
    action: OrderAction
    status: Optional[OrderStatus] = None
    confirmed: bool = False
    via: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def success(self) -> bool:
        return self.error is None
