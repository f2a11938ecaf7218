"""HTTP client for the target agent's prediction endpoint."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

import httpx
import structlog

from behaviorlab.config import settings
from behaviorlab.core.exceptions import AgentGatewayError, ConfigurationError
from behaviorlab.engine.types import AgentReply

logger = structlog.get_logger()


def validate_agent_url(url: str) -> str:
    """Return ``url`` unchanged if it is an absolute http(s) URL."""
    parsed = urlparse(url or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigurationError(f"Invalid agent URL: {url!r}")
    return url


class AgentGateway:
    """Sends one conversational turn to the target agent.

    Request body: ``{question, chatId?, overrideConfig?}``.
    Response body: ``{text, chatId, chatMessageId, agentReasoning?}``.
    """

    def __init__(
        self,
        api_url: str,
        timeout_seconds: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_url = validate_agent_url(api_url)
        self.timeout_seconds = timeout_seconds or settings.agent_request_timeout_seconds
        self._client = client

    async def send(
        self,
        question: str,
        chat_id: str | None = None,
        override_config: dict[str, Any] | None = None,
    ) -> AgentReply:
        payload: dict[str, Any] = {"question": question}
        if chat_id:
            payload["chatId"] = chat_id
        if override_config:
            payload["overrideConfig"] = override_config

        logger.debug(
            "agent_request",
            api_url=self.api_url,
            chat_id=chat_id,
            override_nodes=sorted((override_config or {}).get("systemMessagePrompt", {})),
        )

        try:
            if self._client is not None:
                response = await self._client.post(
                    self.api_url, json=payload, timeout=self.timeout_seconds,
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    response = await client.post(self.api_url, json=payload)
        except httpx.HTTPError as e:
            raise AgentGatewayError(f"Agent request failed: {e}") from e

        if response.is_error:
            body = response.text
            logger.warning("agent_request_failed", status=response.status_code, body=body[:500])
            raise AgentGatewayError(
                f"API request failed with status {response.status_code}: {body}",
                status=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise AgentGatewayError(f"Agent returned a non-JSON body: {response.text[:200]}") from e

        if not isinstance(data, dict) or "text" not in data:
            raise AgentGatewayError("Agent response is missing the 'text' field")

        return AgentReply(
            text=data.get("text") or "",
            chat_id=data.get("chatId"),
            chat_message_id=data.get("chatMessageId"),
            agent_reasoning=data.get("agentReasoning"),
        )
