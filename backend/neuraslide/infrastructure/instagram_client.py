"""
Instagram Graph API client (direct messages).

Connection-pooled httpx client. Transport failures and 5xx responses are
retried with exponential backoff; 4xx responses are returned to the caller
immediately since repeating them cannot succeed.
"""

import asyncio
import random
from functools import lru_cache
from typing import Any, Dict, Optional

import httpx
import structlog

from neuraslide.infrastructure.circuit_breaker import get_circuit_breaker
from neuraslide.infrastructure.config import Settings, get_settings

logger = structlog.get_logger(__name__)


class GraphAPIError(Exception):
    """Non-retryable error reported by the Graph API."""
    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(message)


class InstagramGraphClient:
    """Async client for the Instagram messaging endpoints of the Graph API."""

    def __init__(self, settings: Settings):
        self._base_url = f"{settings.instagram_graph_url.rstrip('/')}/{settings.instagram_api_version}"
        self._timeout = settings.instagram_timeout
        self._max_retries = settings.instagram_max_retries
        self._client: Optional[httpx.AsyncClient] = None
        self._breaker = get_circuit_breaker(
            "instagram_graph",
            failure_threshold=5,
            recovery_timeout=60.0,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout, connect=5.0),
            )
        return self._client

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        async def _do_call() -> Dict[str, Any]:
            client = await self._get_client()
            response = await client.request(method, path, **kwargs)
            if 400 <= response.status_code < 500:
                try:
                    detail = response.json().get("error", {}).get("message", "Unknown error")
                except ValueError:
                    detail = "Unknown error"
                raise GraphAPIError(response.status_code, detail)
            response.raise_for_status()
            return response.json()

        last_error: Optional[Exception] = None
        for attempt in range(self._max_retries + 1):
            try:
                return await self._breaker.call(_do_call)
            except GraphAPIError:
                raise
            except Exception as e:
                last_error = e
                if attempt < self._max_retries:
                    delay = (2 ** attempt) * 0.5 + random.uniform(0, 0.5)
                    logger.warning(
                        "instagram_retry",
                        path=path,
                        attempt=attempt + 1,
                        delay=f"{delay:.1f}s",
                        error=type(e).__name__,
                    )
                    await asyncio.sleep(delay)

        logger.error("instagram_call_failed", path=path, attempts=self._max_retries + 1, error=str(last_error))
        raise last_error

    async def send_message(self, access_token: str, recipient_id: str, text: str) -> Dict[str, Any]:
        """Send a text DM. Returns the Graph API body (recipient_id, message_id)."""
        return await self._request(
            "POST",
            "/me/messages",
            json={
                "recipient": {"id": recipient_id},
                "message": {"text": text},
                "access_token": access_token,
            },
        )

    async def get_conversations(self, access_token: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        """List DM threads, optionally restricted to one participant."""
        params = {"access_token": access_token, "platform": "instagram"}
        if user_id:
            params["user_id"] = user_id
        return await self._request("GET", "/me/conversations", params=params)

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()


@lru_cache()
def get_instagram_client() -> InstagramGraphClient:
    """Get the process-wide Graph API client."""
    return InstagramGraphClient(get_settings())
