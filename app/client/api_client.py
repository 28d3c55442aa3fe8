"""
HTTP client for the property API.

Every endpoint answers with the ``{success, message, data, meta, error}``
envelope. This module turns transport failures, non-2xx answers and
``success: false`` envelopes into the typed errors of ``app.client.errors``.
Nothing here retries.
"""

from typing import Any, Optional
import httpx
from app.client.errors import AuthError, ForbiddenError, NetworkError, NotFoundError, ServerError
from app.core.config import settings
from app.core.logging import get_logger
from app.schemas.common import ApiResponse

logger = get_logger(__name__)


def _message_from(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        for key in ("message", "error", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return None


class ApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout if timeout is not None else settings.REQUEST_TIMEOUT_SECONDS,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    async def request(self, method: str, endpoint: str, **kwargs) -> ApiResponse[Any]:
        headers = kwargs.pop("headers", {})
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        try:
            response = await self._client.request(method, endpoint, headers=headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise NetworkError("Request timed out. Please try again.") from exc
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, endpoint, exc)
            raise NetworkError("Network error. Please check your internet connection.") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None
        message = _message_from(payload)
        code = response.status_code

        if code == 401:
            raise AuthError(message or "Authentication required", status_code=401)
        if code == 403:
            raise ForbiddenError(message or "You do not have permission to perform this action")
        if code == 404:
            raise NotFoundError(message or "Not found", code, payload)
        if not response.is_success:
            raise ServerError(message or f"Request failed with status {code}", code, payload)
        if not isinstance(payload, dict):
            raise ServerError("Invalid response format", code, response.text)
        if payload.get("success") is False:
            raise ServerError(message or "Request failed", code, payload)

        return ApiResponse[Any].model_validate(payload)

    async def get(self, endpoint: str, params: Optional[dict] = None) -> ApiResponse[Any]:
        return await self.request("GET", endpoint, params=params)

    async def post(self, endpoint: str, **kwargs) -> ApiResponse[Any]:
        return await self.request("POST", endpoint, **kwargs)

    async def patch(self, endpoint: str, json: Any = None) -> ApiResponse[Any]:
        return await self.request("PATCH", endpoint, json=json)
