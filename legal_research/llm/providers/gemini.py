"""
Google Gemini provider implementation.

Talks to the REST ``generateContent`` endpoint directly.
"""

import asyncio
from typing import Any, Dict, List, Optional

import aiohttp

from ...services.error_handling import LLMGatewayError
from ..messages import Message, content_to_text
from .base import BaseLLMProvider, LLMResult, ProviderName, wants_json


class GeminiProvider(BaseLLMProvider):
    """Google Gemini provider"""

    @property
    def provider_name(self) -> str:
        return ProviderName.GEMINI.value

    def build_request_body(
        self,
        messages: List[Message],
        response_format: Optional[Dict[str, Any]] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Map chat messages to Gemini ``contents``.

        Gemini only knows ``user`` and ``model`` turns, so system prompts are
        sent as user turns.
        """
        contents = [
            {
                "role": "user" if message["role"] in ("user", "system") else "model",
                "parts": [{"text": content_to_text(message["content"])}],
            }
            for message in messages
        ]
        return {
            "contents": contents,
            "generationConfig": {
                "temperature": self.config.temperature,
                "maxOutputTokens": max_tokens or self.config.max_tokens,
                "responseMimeType": "application/json" if wants_json(response_format) else "text/plain",
            },
        }

    @staticmethod
    def extract_text(response_data: Dict[str, Any]) -> str:
        candidates = response_data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        if not parts:
            return ""
        return parts[0].get("text") or ""

    async def generate(
        self,
        messages: List[Message],
        response_format: Optional[Dict[str, Any]] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResult:
        if not self.config.api_key:
            raise LLMGatewayError(self.provider_name, "Gemini API Key is missing", retryable=False)

        self._start_timing()
        url = f"{self.config.base_url.rstrip('/')}/models/{self.config.model}:generateContent"
        request_body = self.build_request_body(messages, response_format, max_tokens)

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    url,
                    params={"key": self.config.api_key},
                    headers={"Content-Type": "application/json"},
                    json=request_body,
                    timeout=aiohttp.ClientTimeout(total=self.config.timeout),
                ) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise LLMGatewayError(
                            self.provider_name,
                            f"Gemini API Error {response.status}: {error_text}",
                            status_code=response.status,
                            body=error_text,
                        )
                    response_data = await response.json()
        except asyncio.TimeoutError as e:
            raise LLMGatewayError(
                self.provider_name,
                f"request timed out after {self.config.timeout}s",
                retryable=True,
            ) from e
        except aiohttp.ClientError as e:
            raise LLMGatewayError(self.provider_name, str(e), retryable=True) from e

        return LLMResult(
            text=self.extract_text(response_data),
            provider=self.provider_name,
            model=self.config.model,
            raw=response_data,
            response_time_ms=self._get_response_time_ms(),
        )
