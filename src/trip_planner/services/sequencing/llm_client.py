"""HTTP client for chat-completions style language-model endpoints."""

from __future__ import annotations

import json
import logging

import httpx

from ...config import settings
from ...errors import MalformedAIResponse, ProviderMisconfigured, ProviderRequestFailed
from ...models.domain import ProviderConfig

BODY_EXCERPT_CHARS = 300

logger = logging.getLogger(__name__)


def _looks_like_markup(body: str) -> bool:
    return body.lstrip().startswith("<")


def _error_excerpt(body: str) -> str:
    """Prefer the provider's ``error.message`` field over the raw body."""
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    excerpt = body.strip()
    if len(excerpt) > BODY_EXCERPT_CHARS:
        excerpt = excerpt[:BODY_EXCERPT_CHARS] + "..."
    return excerpt or "unknown error"


class ChatCompletionsClient:
    def __init__(
        self,
        provider: ProviderConfig,
        api_key: str,
        temperature: float | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ProviderRequestFailed("An API key is required for the chat endpoint.")
        self.provider = provider
        self._api_key = api_key
        self.temperature = temperature if temperature is not None else settings.ai_temperature
        self.timeout = timeout if timeout is not None else settings.ai_timeout_seconds
        self._transport = transport

    def _get_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            transport=self._transport,
        )

    def build_payload(self, prompt: str) -> dict:
        return {
            "model": self.provider.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
            "stream": False,
        }

    async def complete(self, prompt: str) -> str:
        """Send one user message and return the assistant's message content."""
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }
        logger.debug(
            "Calling chat endpoint: provider=%s model=%s url=%s",
            self.provider.provider_id,
            self.provider.model,
            self.provider.endpoint,
        )
        try:
            async with self._get_client() as client:
                response = await client.post(
                    self.provider.endpoint, json=self.build_payload(prompt), headers=headers
                )
        except httpx.HTTPError as exc:
            raise ProviderRequestFailed(
                f"Could not reach {self.provider.endpoint}: {exc}"
            ) from exc

        body = response.text
        if not response.is_success:
            if _looks_like_markup(body):
                raise ProviderMisconfigured(
                    f"The endpoint for '{self.provider.provider_id}' returned an HTML page "
                    f"(HTTP {response.status_code}). Check that the selected provider matches your API key."
                )
            raise ProviderRequestFailed(
                f"AI API request failed ({response.status_code}): {_error_excerpt(body)}",
                status_code=response.status_code,
                body=body,
            )

        if _looks_like_markup(body):
            raise ProviderMisconfigured(
                f"The endpoint for '{self.provider.provider_id}' returned an HTML page instead of JSON. "
                "Check the provider selection."
            )
        try:
            data = response.json()
        except json.JSONDecodeError as exc:
            raise ProviderMisconfigured(
                f"The endpoint for '{self.provider.provider_id}' returned a non-JSON body "
                f"({_error_excerpt(body)}). Check the provider selection."
            ) from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise MalformedAIResponse("The AI API response has no choices[0].message.content.") from exc
        if not isinstance(content, str):
            raise MalformedAIResponse("The AI message content is not text.")
        return content
