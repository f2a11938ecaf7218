"""Model-agnostic LLM client using LiteLLM.

Supports OpenAI, Claude, Ollama, and any LiteLLM-compatible provider.
Providers are swapped through configuration only.

This is the ONLY file that talks to LLM APIs. Mock this for tests.
"""

from __future__ import annotations

import os
from typing import Any

import structlog
from litellm import acompletion

from behaviorlab.config import settings
from behaviorlab.engine.types import LLMResponse

logger = structlog.get_logger()


class LLMClient:
    """Unified LLM client wrapping LiteLLM."""

    def __init__(self) -> None:
        # Set API keys if configured
        if settings.openai_api_key:
            os.environ["OPENAI_API_KEY"] = settings.openai_api_key
        if settings.anthropic_api_key:
            os.environ["ANTHROPIC_API_KEY"] = settings.anthropic_api_key
        if settings.llm_provider == "ollama":
            os.environ["OLLAMA_API_BASE"] = settings.ollama_base_url

    async def chat(
        self,
        model: str,
        messages: list[dict[str, Any]],
        system: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Send a chat completion request to any LLM provider.

        Args:
            model: LiteLLM model string (e.g., "gpt-4o", "claude-sonnet-4-20250514",
                   "ollama/mistral:7b-instruct")
            messages: Chat messages in OpenAI format
            system: System prompt (prepended as system message)
            temperature: Sampling temperature
            max_tokens: Maximum output tokens
            json_mode: Ask the provider for a JSON object response

        Returns:
            Normalized LLMResponse regardless of provider
        """
        full_messages: list[dict[str, Any]] = []
        if system:
            full_messages.append({"role": "system", "content": system})
        full_messages.extend(messages)

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": full_messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        if model.startswith("ollama/"):
            kwargs["api_base"] = settings.ollama_base_url

        logger.debug(
            "llm_request",
            model=model,
            message_count=len(full_messages),
            json_mode=json_mode,
        )

        response = await acompletion(**kwargs)

        choice = response.choices[0]
        content = choice.message.content or ""

        usage = getattr(response, "usage", None)
        input_tokens = usage.prompt_tokens if usage else 0
        output_tokens = usage.completion_tokens if usage else 0

        result = LLMResponse(
            content=content,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=response.model or model,
            stop_reason=choice.finish_reason or "",
        )

        logger.debug(
            "llm_response",
            model=model,
            content_length=len(content),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

        return result
