"""
OpenAI chat-completions client.

Single pooled httpx client with timeout, retry with exponential backoff and
a circuit breaker. Callers decide what to do when the API is unavailable;
the AI service falls back to canned replies.
"""

import asyncio
import random
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List, Optional

import httpx
import structlog

from neuraslide.infrastructure.circuit_breaker import get_circuit_breaker
from neuraslide.infrastructure.config import Settings, get_settings
from neuraslide.infrastructure.exceptions import ExternalServiceError

logger = structlog.get_logger(__name__)


@dataclass
class ChatCompletion:
    content: str
    tokens_used: int
    model: str
    finish_reason: Optional[str] = None


class OpenAIClient:
    """Async OpenAI client with connection pooling, retry, and circuit breaker."""

    def __init__(self, settings: Settings):
        self._api_key = settings.openai_api_key
        self._base_url = settings.openai_base_url.rstrip("/")
        self._default_model = settings.openai_model
        self._timeout = settings.openai_timeout
        self._max_retries = settings.openai_max_retries
        self._client: Optional[httpx.AsyncClient] = None
        self._breaker = get_circuit_breaker(
            "openai",
            failure_threshold=5,
            recovery_timeout=60.0,
        )

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    @property
    def default_model(self) -> str:
        return self._default_model

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout, connect=10.0),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=5),
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        return self._client

    async def chat(
        self,
        messages: List[Dict[str, str]],
        *,
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> ChatCompletion:
        """POST /chat/completions with retry and circuit breaker."""
        if not self.configured:
            raise ExternalServiceError("OpenAI", "OpenAI API key is not configured")

        model = model or self._default_model

        async def _do_call() -> ChatCompletion:
            client = await self._get_client()
            response = await client.post(
                "/chat/completions",
                json={
                    "model": model,
                    "messages": messages,
                    "temperature": temperature,
                    "max_tokens": max_tokens,
                },
            )
            response.raise_for_status()
            body = response.json()
            choice = (body.get("choices") or [{}])[0]
            return ChatCompletion(
                content=(choice.get("message") or {}).get("content") or "",
                tokens_used=(body.get("usage") or {}).get("total_tokens", 0),
                model=body.get("model", model),
                finish_reason=choice.get("finish_reason"),
            )

        last_error: Optional[Exception] = None
        for attempt in range(self._max_retries + 1):
            try:
                return await self._breaker.call(_do_call)
            except Exception as e:
                last_error = e
                if attempt < self._max_retries:
                    delay = (2 ** attempt) * 0.5 + random.uniform(0, 0.5)
                    logger.warning(
                        "openai_retry",
                        attempt=attempt + 1,
                        max_retries=self._max_retries,
                        delay=f"{delay:.1f}s",
                        error=type(e).__name__,
                        model=model,
                    )
                    await asyncio.sleep(delay)

        logger.error(
            "openai_call_failed",
            attempts=self._max_retries + 1,
            error=f"{type(last_error).__name__}: {last_error}",
            model=model,
        )
        raise ExternalServiceError("OpenAI")

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()


@lru_cache()
def get_openai_client() -> OpenAIClient:
    """Get the process-wide OpenAI client."""
    return OpenAIClient(get_settings())
