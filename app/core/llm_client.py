"""
LLM Client - Unified async wrapper for OpenAI and Anthropic.

Provides:
- Async API calls with retry logic
- Structured JSON output parsing
- Token usage tracking per client
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-haiku-20241022",
}


@dataclass
class LLMResponse:
    """Response from LLM call."""

    content: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    model: str
    raw_response: Any = None

    def parse_json(self) -> Optional[Dict]:
        """Parse content as JSON, handling markdown code blocks."""
        text = self.content.strip()

        # Remove markdown code blocks if present
        if text.startswith("```"):
            lines = text.split("\n")
            # Remove first line (```json or ```)
            lines = lines[1:]
            # Remove last line (```)
            if lines and lines[-1].strip() == "```":
                lines = lines[:-1]
            text = "\n".join(lines)

        try:
            parsed = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse LLM response as JSON: {e}")
            return None
        if not isinstance(parsed, dict):
            logger.warning("LLM response JSON is not an object")
            return None
        return parsed


class LLMClient:
    """
    Unified async LLM client supporting OpenAI and Anthropic.

    Usage:
        client = LLMClient(provider="openai", api_key="sk-...")
        response = await client.complete("Extract deal entities from ...")
        data = response.parse_json()
    """

    def __init__(
        self,
        provider: str = "openai",
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: int = 1500,
        temperature: float = 0.1,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ):
        """
        Initialize LLM client.

        Args:
            provider: "openai" or "anthropic"
            api_key: API key
            model: Model name (uses provider default when omitted)
            max_tokens: Maximum tokens in response
            temperature: Sampling temperature (0-1)
            max_retries: Number of attempts before giving up
            retry_delay: Base delay between retries (exponential backoff)
        """
        self.provider = provider.lower()
        self.api_key = api_key
        self.model = model or DEFAULT_MODELS.get(self.provider, DEFAULT_MODELS["openai"])
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_retries = max_retries
        self.retry_delay = retry_delay

        self._client = None
        self._total_tokens_used = 0

    @property
    def is_available(self) -> bool:
        """Check if the selected provider is usable."""
        return self.provider in DEFAULT_MODELS and bool(self.api_key)

    def _get_client(self):
        """Get or create the API client."""
        if self._client is None:
            if self.provider == "openai":
                self._client = AsyncOpenAI(api_key=self.api_key)
            else:
                self._client = AsyncAnthropic(api_key=self.api_key)
        return self._client

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """
        Send a completion request to the LLM.

        Args:
            prompt: User prompt/message
            system_prompt: Optional system message
            json_mode: Request JSON output format (OpenAI only)

        Returns:
            LLMResponse with content and usage stats

        Raises:
            ValueError: If provider not available
            Exception: Last provider error after all retries exhausted
        """
        if not self.is_available:
            raise ValueError(
                f"LLM provider '{self.provider}' not available. "
                f"Check the provider name and that an API key is set."
            )

        client = self._get_client()
        last_error = None

        for attempt in range(self.max_retries):
            try:
                if self.provider == "openai":
                    response = await self._openai_complete(
                        client, prompt, system_prompt, json_mode
                    )
                else:
                    response = await self._anthropic_complete(
                        client, prompt, system_prompt
                    )

                self._total_tokens_used += response.total_tokens
                return response

            except Exception as e:
                last_error = e
                logger.warning(
                    f"LLM request failed (attempt {attempt + 1}/{self.max_retries}): {e}"
                )

                if attempt < self.max_retries - 1:
                    delay = self.retry_delay * (2**attempt)
                    await asyncio.sleep(delay)

        raise last_error or RuntimeError("LLM request failed after all retries")

    async def _openai_complete(
        self,
        client: AsyncOpenAI,
        prompt: str,
        system_prompt: Optional[str],
        json_mode: bool,
    ) -> LLMResponse:
        """Send request to OpenAI API."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        kwargs = {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = await client.chat.completions.create(**kwargs)

        content = response.choices[0].message.content or ""
        input_tokens = response.usage.prompt_tokens if response.usage else 0
        output_tokens = response.usage.completion_tokens if response.usage else 0

        return LLMResponse(
            content=content,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            model=self.model,
            raw_response=response,
        )

    async def _anthropic_complete(
        self,
        client: AsyncAnthropic,
        prompt: str,
        system_prompt: Optional[str],
    ) -> LLMResponse:
        """Send request to Anthropic API."""
        kwargs = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }

        if system_prompt:
            kwargs["system"] = system_prompt

        response = await client.messages.create(**kwargs)

        content = response.content[0].text if response.content else ""
        input_tokens = response.usage.input_tokens if response.usage else 0
        output_tokens = response.usage.output_tokens if response.usage else 0

        return LLMResponse(
            content=content,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            model=self.model,
            raw_response=response,
        )

    @property
    def total_tokens_used(self) -> int:
        """Total tokens used across all requests."""
        return self._total_tokens_used

