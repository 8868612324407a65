"""Language model client used by the extraction engine."""

from __future__ import annotations

from typing import Optional, Protocol

from openai import AsyncOpenAI

from .config import MonitorSettings
from .logging_config import get_logger

logger = get_logger("llm_client")


class LLMClient(Protocol):
    """A model endpoint taking a system+user prompt pair and returning text."""

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str: ...


class OpenAIChatClient:
    """Chat-completions client backed by the OpenAI SDK.

    SDK retries are disabled: a failed call surfaces immediately and the caller
    treats it as "no record" for that document.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 2000,
        timeout_seconds: float = 60.0,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
            max_retries=0,
        )

    @classmethod
    def from_settings(cls, settings: MonitorSettings) -> "OpenAIChatClient":
        if not settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY environment variable not set")
        return cls(
            settings.openai_api_key,
            model=settings.llm_model,
            base_url=settings.openai_base_url,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            timeout_seconds=settings.llm_timeout_seconds,
        )

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        completion = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=self.temperature if temperature is None else temperature,
            max_tokens=self.max_tokens if max_tokens is None else max_tokens,
        )
        content = completion.choices[0].message.content or ""
        logger.debug(f"Model {self.model} returned {len(content)} characters")
        return content

    async def close(self) -> None:
        await self._client.close()
