# storefront/utils/api_client.py
import httpx
import logging
from typing import Any, Dict, Optional

from storefront.config import settings
from storefront.errors import SyncFailure
from storefront.utils.auth import AuthSession

logger = logging.getLogger(__name__)


class ApiClient:
    """Authenticated JSON client for the storefront backend."""

    def __init__(
        self,
        auth: AuthSession,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.auth = auth
        self.base_url = base_url or settings.API_URL
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT
        # Tests mount the fake backend here
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
            headers={"Content-Type": "application/json"},
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        headers = self.auth.bearer_headers()
        async with self._client() as client:
            try:
                response = await client.request(method, path, json=json, params=params, headers=headers)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                detail = _error_detail(e.response)
                logger.error(f"{method} {path} rejected ({e.response.status_code}): {detail}")
                raise SyncFailure(detail, status_code=e.response.status_code) from e
            except httpx.RequestError as e:
                logger.error(f"{method} {path} failed: {e}")
                raise SyncFailure(f"Could not reach the server: {e}") from e

        # Empty bodies (204) carry no snapshot
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"{method} {path} returned a non-JSON body")
            raise SyncFailure("Unexpected response from the server") from e

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs) -> Any:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs) -> Any:
        return await self.request("DELETE", path, **kwargs)


def _error_detail(response: httpx.Response) -> str:
    # Backend errors come as {"message": ...} or FastAPI-style {"detail": ...}
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or body)
    return str(body)
