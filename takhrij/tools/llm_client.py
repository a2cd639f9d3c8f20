"""
Generative Model Clients
========================

One small contract shared by every AI path:

    text = await client.complete(system, user, model=..., max_tokens=..., temperature=...)

Providers:
- OpenRouterClient: OpenAI-compatible chat completions over httpx.
  The payload is choices[0].message.content.
- AnthropicClient: Anthropic Messages API through the official SDK.
  The payload is the first text content block.

Both raise LLMError for every failure (timeout, transport, HTTP status,
malformed envelope, empty content). Callers catch it at their boundary and
turn it into a fixed user-facing message.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Raised when a completion cannot be obtained."""


class ChatClient(Protocol):
    """Anything that can turn a system + user prompt into text."""

    async def complete(
        self,
        system: str,
        user: str,
        *,
        model: str,
        max_tokens: int,
        temperature: Optional[float] = None,
    ) -> str:
        ...


# ==========================================
#  OPENROUTER (OpenAI-compatible)
# ==========================================

class OpenRouterClient:
    """
    Client for an OpenAI-compatible /chat/completions endpoint.

    Usage:
        client = OpenRouterClient(api_key="sk-...")
        text = await client.complete("You are...", "moon split",
                                     model="openai/gpt-4o-mini", max_tokens=600)
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def build_payload(
        system: str,
        user: str,
        model: str,
        max_tokens: int,
        temperature: Optional[float],
    ) -> Dict[str, Any]:
        """Request body; temperature is omitted when None so the provider default applies."""
        payload: Dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "max_tokens": max_tokens,
        }
        if temperature is not None:
            payload["temperature"] = temperature
        return payload

    @staticmethod
    def extract_content(data: Any) -> str:
        """Pull the first choice's message content out of the envelope."""
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise LLMError(f"Malformed completion envelope: {e!r}") from e

        if not isinstance(content, str) or not content.strip():
            raise LLMError("Completion contained no text")
        return content

    async def complete(
        self,
        system: str,
        user: str,
        *,
        model: str,
        max_tokens: int,
        temperature: Optional[float] = None,
    ) -> str:
        url = f"{self.base_url}/chat/completions"
        payload = self.build_payload(system, user, model, max_tokens, temperature)

        logger.debug(f"Calling {model} (max_tokens={max_tokens}, temperature={temperature})")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=self._headers())
        except httpx.TimeoutException as e:
            raise LLMError(f"Timed out after {self.timeout}s calling {model}") from e
        except httpx.HTTPError as e:
            raise LLMError(f"Transport error calling {model}: {e}") from e

        if response.status_code != 200:
            raise LLMError(
                f"{model} returned HTTP {response.status_code}: {response.text[:300]}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise LLMError(f"{model} returned invalid JSON") from e

        return self.extract_content(data)


# ==========================================
#  ANTHROPIC
# ==========================================

class AnthropicClient:
    """Client for the Anthropic Messages API."""

    def __init__(self, api_key: str, timeout: float = 60.0, client: Any = None):
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    @property
    def client(self):
        """Lazy initialization of the async Anthropic client."""
        if self._client is None:
            from anthropic import AsyncAnthropic
            self._client = AsyncAnthropic(api_key=self.api_key, timeout=self.timeout)
        return self._client

    async def complete(
        self,
        system: str,
        user: str,
        *,
        model: str,
        max_tokens: int,
        temperature: Optional[float] = None,
    ) -> str:
        import anthropic

        kwargs: Dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "system": system,
            "messages": [{"role": "user", "content": user}],
        }
        if temperature is not None:
            kwargs["temperature"] = temperature

        try:
            response = await self.client.messages.create(**kwargs)
        except anthropic.APITimeoutError as e:
            raise LLMError(f"Timed out after {self.timeout}s calling {model}") from e
        except anthropic.APIError as e:
            raise LLMError(f"Anthropic API error calling {model}: {e}") from e

        texts: List[str] = [
            block.text for block in (response.content or [])
            if getattr(block, "type", "text") == "text" and getattr(block, "text", None)
        ]
        if not texts or not texts[0].strip():
            raise LLMError("Completion contained no text")
        return texts[0]


# ==========================================
#  FACTORY
# ==========================================

def create_llm_client(settings) -> ChatClient:
    """Build the client for the configured provider."""
    if settings.llm_provider == "anthropic":
        logger.info("Using Anthropic as the generative model provider")
        return AnthropicClient(
            api_key=settings.llm_api_key,
            timeout=settings.llm_timeout_seconds,
        )

    logger.info(f"Using OpenRouter at {settings.openrouter_base_url}")
    return OpenRouterClient(
        api_key=settings.llm_api_key,
        base_url=settings.openrouter_base_url,
        timeout=settings.llm_timeout_seconds,
    )
