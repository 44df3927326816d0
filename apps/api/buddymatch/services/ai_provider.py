"""AI Provider abstraction layer.

Supports EPAM DIAL, OpenAI-compatible endpoints and Google Gemini with a
unified interface. The ranker only talks to AIProvider; which backend is
used is decided by configuration.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from buddymatch.core.config import settings

logger = logging.getLogger(__name__)


class AIProviderError(Exception):
    """Completion request failed or returned an unusable payload."""

    pass


@dataclass
class ChatMessage:
    """A single message in a conversation."""

    role: str  # 'system', 'user', 'assistant'
    content: str


@dataclass
class ChatResponse:
    """Response from an AI provider."""

    content: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    model: str


@dataclass
class AIProviderConfig:
    """Connection settings shared by every backend."""

    api_key: str = ""
    api_url: str = ""
    model: str = ""
    timeout_seconds: float = 60.0


class AIProvider(ABC):
    """Abstract base class for AI providers."""

    def __init__(
        self,
        config: AIProviderConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        # Injectable for tests (httpx.MockTransport)
        self._transport = transport

    def is_configured(self) -> bool:
        """Key, endpoint and model must all be present."""
        return bool(self.config.api_key and self.config.api_url and self.config.model)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.config.timeout_seconds,
            transport=self._transport,
        )

    @abstractmethod
    async def chat(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> ChatResponse:
        """Send a chat completion request."""
        pass


def _openai_style_response(data: dict[str, Any], model: str) -> ChatResponse:
    try:
        content = data["choices"][0]["message"]["content"] or ""
    except (KeyError, IndexError, TypeError) as e:
        raise AIProviderError(f"Unexpected completion payload: {e}") from e

    usage = data.get("usage") or {}
    return ChatResponse(
        content=content,
        prompt_tokens=usage.get("prompt_tokens", 0),
        completion_tokens=usage.get("completion_tokens", 0),
        total_tokens=usage.get("total_tokens", 0),
        model=model,
    )


class DialProvider(AIProvider):
    """EPAM DIAL gateway (Azure-style deployment endpoints)."""

    async def chat(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> ChatResponse:
        base_url = self.config.api_url.rstrip("/")
        deployment = self.config.model

        async with self._client() as client:
            response = await client.post(
                f"{base_url}/deployments/{deployment}/chat/completions",
                headers={
                    "Api-Key": self.config.api_key,
                    "Content-Type": "application/json",
                },
                json={
                    "messages": [{"role": m.role, "content": m.content} for m in messages],
                    "temperature": temperature,
                    "max_tokens": max_tokens,
                },
            )
            if response.is_error:
                raise AIProviderError(
                    f"DIAL API error: {response.status_code} {response.reason_phrase} - {response.text}"
                )
            data = response.json()

        return _openai_style_response(data, deployment)


class OpenAIProvider(AIProvider):
    """OpenAI API provider (or any OpenAI-compatible base URL)."""

    async def chat(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> ChatResponse:
        base_url = self.config.api_url.rstrip("/")
        model = self.config.model

        async with self._client() as client:
            response = await client.post(
                f"{base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.config.api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": model,
                    "messages": [{"role": m.role, "content": m.content} for m in messages],
                    "temperature": temperature,
                    "max_tokens": max_tokens,
                },
            )
            if response.is_error:
                raise AIProviderError(
                    f"OpenAI API error: {response.status_code} {response.reason_phrase} - {response.text}"
                )
            data = response.json()

        return _openai_style_response(data, model)


class GeminiProvider(AIProvider):
    """Google Gemini API provider."""

    async def chat(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> ChatResponse:
        base_url = self.config.api_url.rstrip("/")
        model = self.config.model

        # Gemini uses 'user' and 'model' roles, system goes in systemInstruction
        system_instruction = None
        contents = []

        for msg in messages:
            if msg.role == "system":
                system_instruction = msg.content
            else:
                role = "model" if msg.role == "assistant" else "user"
                contents.append({"role": role, "parts": [{"text": msg.content}]})

        request_body: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_tokens,
            },
        }
        if system_instruction:
            request_body["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        async with self._client() as client:
            response = await client.post(
                f"{base_url}/models/{model}:generateContent",
                params={"key": self.config.api_key},
                headers={"Content-Type": "application/json"},
                json=request_body,
            )
            if response.is_error:
                raise AIProviderError(
                    f"Gemini API error: {response.status_code} {response.reason_phrase} - {response.text}"
                )
            data = response.json()

        try:
            content = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise AIProviderError(f"Unexpected Gemini payload: {e}") from e

        usage = data.get("usageMetadata", {})
        prompt_tokens = usage.get("promptTokenCount", 0)
        completion_tokens = usage.get("candidatesTokenCount", 0)

        return ChatResponse(
            content=content,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            model=model,
        )


PROVIDERS: dict[str, type[AIProvider]] = {
    "dial": DialProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}


def get_provider(
    provider_name: str,
    config: AIProviderConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AIProvider:
    """Factory function to get the appropriate AI provider."""
    provider_cls = PROVIDERS.get((provider_name or "").strip().lower())
    if provider_cls is None:
        raise ValueError(f"Unknown provider: {provider_name}")
    return provider_cls(config, transport=transport)


def get_provider_from_settings() -> AIProvider:
    """Build the configured provider from AI_* settings."""
    config = AIProviderConfig(
        api_key=settings.AI_API_KEY,
        api_url=settings.AI_API_URL,
        model=settings.AI_MODEL,
        timeout_seconds=settings.AI_REQUEST_TIMEOUT_SECONDS,
    )
    return get_provider(settings.AI_PROVIDER, config)
