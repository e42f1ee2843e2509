import logging
from typing import List, Optional

from pydantic import ValidationError

from storefront.errors import SyncFailure
from storefront.schemas.promotion import Promotion
from storefront.utils.api_client import ApiClient

logger = logging.getLogger(__name__)


class PromotionService:
    def __init__(self, api: ApiClient):
        self.api = api

    async def list_promotions(self, is_active: Optional[bool] = True, status: Optional[str] = "active") -> List[Promotion]:
        params = {}
        if is_active is not None:
            params["isActive"] = str(is_active).lower()
        if status:
            params["status"] = status
        data = await self.api.get("/promotion", params=params)

        body = data.get("data") if isinstance(data, dict) else None
        raw = body.get("promotions", []) if isinstance(body, dict) else body or []
        promotions = []
        for item in raw:
            try:
                promotions.append(Promotion.model_validate(item))
            except ValidationError as e:
                # Skip malformed entries rather than dropping the whole list
                logger.error(f"Ignoring malformed promotion {item.get('code') if isinstance(item, dict) else item}: {e}")
        return promotions

    async def validate_code(self, code: str) -> Optional[Promotion]:
        try:
            data = await self.api.get("/promotion/validate", params={"code": code})
        except SyncFailure as e:
            if e.status_code == 404:
                return None
            raise
        if not isinstance(data, dict) or data.get("status") != "success" or not data.get("data"):
            return None
        try:
            return Promotion.model_validate(data["data"])
        except ValidationError as e:
            logger.error(f"Malformed promotion returned for code {code!r}: {e}")
            raise SyncFailure(f"Received a malformed promotion for {code}")
