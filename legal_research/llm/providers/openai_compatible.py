"""
OpenAI-compatible chat completion providers (Groq, Forge).

Both speak the ``/chat/completions`` dialect, so they share one client
implementation and differ only in configuration and message encoding.
"""

import json
from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from ...services.error_handling import LLMGatewayError
from ..messages import Message
from .base import BaseLLMProvider, LLMResult, ProviderName


class OpenAICompatibleProvider(BaseLLMProvider):
    """Chat completions over the OpenAI SDK pointed at a custom base URL."""

    supports_response_format = False

    def __init__(self, config):
        super().__init__(config)
        self._client: Optional[AsyncOpenAI] = None

    @property
    def provider_name(self) -> str:
        return self.config.name

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                max_retries=0,
            )
        return self._client

    def encode_messages(self, messages: List[Message]) -> List[Message]:
        return messages

    def build_payload(
        self,
        messages: List[Message],
        response_format: Optional[Dict[str, Any]] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        payload = {
            "model": self.config.model,
            "messages": self.encode_messages(messages),
            "max_tokens": max_tokens or self.config.max_tokens,
        }
        if response_format and self.supports_response_format:
            payload["response_format"] = response_format
        return payload

    async def generate(
        self,
        messages: List[Message],
        response_format: Optional[Dict[str, Any]] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResult:
        if not self.config.api_key:
            raise LLMGatewayError(self.provider_name, "API key is missing", retryable=False)

        self._start_timing()
        payload = self.build_payload(messages, response_format, max_tokens)

        try:
            response = await self.client.chat.completions.create(**payload)
        except openai.APIStatusError as e:
            body = e.response.text
            raise LLMGatewayError(
                self.provider_name,
                body,
                status_code=e.status_code,
                body=body,
            ) from e
        except openai.APITimeoutError as e:
            raise LLMGatewayError(
                self.provider_name,
                f"request timed out after {self.config.timeout}s",
                retryable=True,
            ) from e
        except openai.APIConnectionError as e:
            raise LLMGatewayError(self.provider_name, str(e), retryable=True) from e

        if not response.choices:
            raise LLMGatewayError(self.provider_name, "API returned no choices", retryable=False)

        return LLMResult(
            text=response.choices[0].message.content or "",
            provider=self.provider_name,
            model=response.model or self.config.model,
            raw=response.model_dump(),
            response_time_ms=self._get_response_time_ms(),
        )


class GroqProvider(OpenAICompatibleProvider):
    """Groq provider. Content lists are sent as JSON strings."""

    supports_response_format = True

    @property
    def provider_name(self) -> str:
        return ProviderName.GROQ.value

    def encode_messages(self, messages: List[Message]) -> List[Message]:
        return [
            {
                "role": message["role"],
                "content": json.dumps(message["content"])
                if isinstance(message["content"], list)
                else message["content"],
            }
            for message in messages
        ]


class ForgeProvider(OpenAICompatibleProvider):
    """Forge provider. Multi-part content is passed through as-is."""

    @property
    def provider_name(self) -> str:
        return ProviderName.FORGE.value
