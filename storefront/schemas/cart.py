import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError, computed_field
from typing import Any, List, Optional

logger = logging.getLogger(__name__)


# Catalog product as captured in a cart line
class ProductRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    price: float = Field(ge=0)
    image: Optional[str] = None
    description: Optional[str] = None


# One line of the cart; quantity 0 means the line is absent, never stored
class CartItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    has_line_id: bool = True
    product: ProductRef
    quantity: int = Field(ge=1)
    special_instructions: Optional[str] = None

    @computed_field
    @property
    def line_total(self) -> float:
        return self.product.price * self.quantity


# Full replacement-style snapshot of the cart
class Cart(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: List[CartItem] = Field(default_factory=list)
    stale: bool = False

    @computed_field
    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    @computed_field
    @property
    def total_amount(self) -> float:
        return sum(item.product.price * item.quantity for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items


# Request body for POST /cart/items and PUT /cart/items/{id}
class CartItemPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId")
    quantity: int = Field(ge=1)
    special_instructions: Optional[str] = Field(default=None, alias="specialInstructions")


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def normalize_cart_item(raw: Any) -> Optional[CartItem]:
    """
    Build a CartItem from one raw cart line as returned by the cart service.

    The product may be nested under ``menuItem`` or flattened onto the line,
    instructions may arrive as ``notes`` or ``specialInstructions``. Lines
    without a product id or with a quantity below 1 are treated as absent.
    """
    if not isinstance(raw, dict):
        return None

    menu_item = raw.get("menuItem")
    if not isinstance(menu_item, dict):
        # Some responses only send the product id
        menu_item = {"_id": menu_item} if isinstance(menu_item, str) else {}

    product_id = menu_item.get("_id") or raw.get("productId") or raw.get("menuItemId")
    if not product_id:
        return None

    quantity = raw.get("quantity")
    if isinstance(quantity, bool) or not isinstance(quantity, (int, float)) or quantity < 1:
        return None

    name = menu_item.get("name")
    if not name or name == "Unknown Item":
        name = raw.get("name") or "Unknown Item"

    price = _as_number(menu_item.get("price"))
    if price is None:
        price = _as_number(raw.get("price")) or 0.0

    product = ProductRef(
        id=str(product_id),
        name=name,
        price=max(price, 0.0),
        image=menu_item.get("image") or raw.get("image") or None,
        description=menu_item.get("description") or raw.get("description") or None,
    )

    line_id = raw.get("_id")
    return CartItem(
        id=str(line_id or product_id),
        has_line_id=bool(line_id),
        product=product,
        quantity=int(quantity),
        special_instructions=raw.get("specialInstructions") or raw.get("notes") or None,
    )


def normalize_cart_items(raw_items: Any) -> List[CartItem]:
    if not isinstance(raw_items, list):
        return []
    items = []
    for raw in raw_items:
        try:
            item = normalize_cart_item(raw)
        except ValidationError as e:
            logger.error(f"Dropping malformed cart line: {e}")
            continue
        if item is not None:
            items.append(item)
    return items


def extract_cart_items(payload: Any) -> Optional[List[CartItem]]:
    # Returns None when the response carries no item collection at all
    if not isinstance(payload, dict):
        return None
    if isinstance(payload.get("items"), list):
        return normalize_cart_items(payload["items"])
    cart = payload.get("cart")
    if isinstance(cart, dict) and isinstance(cart.get("items"), list):
        return normalize_cart_items(cart["items"])
    data = payload.get("data")
    if isinstance(data, dict):
        return extract_cart_items(data)
    return None


# Outcome of a cart operation as handed back to the caller
class CartActionResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    cart: Cart
    message: Optional[str] = None
    error: Optional[Exception] = None
