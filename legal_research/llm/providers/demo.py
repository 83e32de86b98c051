"""Offline demo responder used when no provider credential is configured."""

import json
from typing import Any, Dict, List, Optional

from ..messages import Message
from .base import BaseLLMProvider, LLMResult, ProviderConfig, ProviderName

DEMO_VERDICT = {
    "summary": "Demo Mode",
    "analysis": "No API Key configured.",
    "recommendation": "Check .env",
    "riskAssessment": "None",
    "citations": [],
}


class DemoProvider(BaseLLMProvider):
    """Returns the same placeholder verdict for every request."""

    requires_api_key = False

    def __init__(self, config: Optional[ProviderConfig] = None):
        super().__init__(config or ProviderConfig(name=ProviderName.DEMO.value, model="demo-mock"))

    @property
    def provider_name(self) -> str:
        return ProviderName.DEMO.value

    async def generate(
        self,
        messages: List[Message],
        response_format: Optional[Dict[str, Any]] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResult:
        text = json.dumps(DEMO_VERDICT)
        return LLMResult(
            text=text,
            provider=self.provider_name,
            model=self.config.model,
            raw={
                "id": "demo",
                "model": self.config.model,
                "choices": [
                    {
                        "index": 0,
                        "message": {"role": "assistant", "content": text},
                        "finish_reason": "stop",
                    }
                ],
            },
        )
