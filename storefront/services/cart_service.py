import logging
from typing import List, Optional

from storefront.schemas.cart import CartItem, CartItemPayload, extract_cart_items
from storefront.utils.api_client import ApiClient

logger = logging.getLogger(__name__)


class CartService:
    """
    Remote cart collaborator.

    Every call returns the resulting item collection when the backend sends
    one, or None when the response has no items (the caller then refreshes).
    """

    def __init__(self, api: ApiClient):
        self.api = api

    async def get_cart(self) -> List[CartItem]:
        data = await self.api.get("/cart")
        return extract_cart_items(data) or []

    async def add_item(self, product_id: str, quantity: int, special_instructions: Optional[str] = None) -> Optional[List[CartItem]]:
        payload = CartItemPayload(product_id=product_id, quantity=quantity, special_instructions=special_instructions)
        data = await self.api.post("/cart/items", json=payload.model_dump(by_alias=True))
        return extract_cart_items(data)

    async def update_item(
        self, item_id: str, product_id: str, quantity: int, special_instructions: Optional[str] = None
    ) -> Optional[List[CartItem]]:
        payload = CartItemPayload(product_id=product_id, quantity=quantity, special_instructions=special_instructions)
        data = await self.api.put(f"/cart/items/{item_id}", json=payload.model_dump(by_alias=True))
        return extract_cart_items(data)

    async def remove_item(self, item_id: str) -> Optional[List[CartItem]]:
        data = await self.api.delete(f"/cart/items/{item_id}")
        return extract_cart_items(data)

    async def clear(self) -> None:
        await self.api.delete("/cart")
