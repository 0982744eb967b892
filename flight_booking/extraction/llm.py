"""Minimal async LLM completion client.

Supports Claude through the Anthropic SDK (``llm_provider="claude"``) and
a local Ollama server through its OpenAI-compatible endpoint
(``llm_provider="ollama"``). Only single-turn system + user completions
are needed by the extractor.
"""

from __future__ import annotations

import logging
from typing import Optional

import anthropic
import httpx
import openai

from flight_booking.config import Settings, settings as default_settings

log = logging.getLogger("flight_booking.extraction.llm")


class LLMError(Exception):
    """The completion request failed or returned an unexpected shape."""


class LLMClient:
    """Thin wrapper over the vendor SDK client for the configured provider."""

    def __init__(
        self,
        config: Optional[Settings] = None,
        http: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config or default_settings
        self._provider = self._config.llm_provider

        if self._provider == "ollama":
            self._client = openai.AsyncOpenAI(
                api_key="ollama",
                base_url=f"{self._config.ollama_url.rstrip('/')}/v1",
                timeout=self._config.llm_timeout_seconds,
                max_retries=self._config.llm_max_retries,
                http_client=http,
            )
        else:
            self._client = anthropic.AsyncAnthropic(
                api_key=self._config.anthropic_api_key,
                base_url=self._config.anthropic_url,
                timeout=self._config.llm_timeout_seconds,
                max_retries=self._config.llm_max_retries,
                http_client=http,
            )

    @property
    def provider(self) -> str:
        return self._provider

    async def close(self) -> None:
        await self._client.close()

    async def complete(self, system: str, user: str, max_tokens: int = 200) -> str:
        """Return the model's text reply, stripped."""
        try:
            if self._provider == "ollama":
                text = await self._complete_ollama(system, user, max_tokens)
            else:
                text = await self._complete_claude(system, user, max_tokens)
            if not isinstance(text, str):
                raise LLMError(f"{self._provider} reply has no text content")
            return text.strip()
        except (anthropic.APIStatusError, openai.APIStatusError) as e:
            raise LLMError(f"{self._provider} returned HTTP {e.status_code}") from e
        except (anthropic.APIError, openai.APIError) as e:
            raise LLMError(f"{self._provider} request failed: {e}") from e
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
            raise LLMError(f"unexpected {self._provider} response: {e}") from e

    async def _complete_claude(self, system: str, user: str, max_tokens: int) -> Optional[str]:
        message = await self._client.messages.create(
            model=self._config.anthropic_model,
            max_tokens=max_tokens,
            system=system,
            messages=[{"role": "user", "content": user}],
        )
        parts = [
            block.text for block in message.content
            if isinstance(block, anthropic.types.TextBlock)
        ]
        return "".join(parts) if parts else None

    async def _complete_ollama(self, system: str, user: str, max_tokens: int) -> Optional[str]:
        completion = await self._client.chat.completions.create(
            model=self._config.ollama_model,
            max_tokens=max_tokens,
            temperature=0,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        )
        return completion.choices[0].message.content
