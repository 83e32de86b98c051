"""
Base provider interface for text-generation providers.

Every provider maps the normalized message list and requested response
shape to its own wire format, and maps the reply back to LLMResult.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..messages import Message


class ProviderName(str, Enum):
    """Known providers. Declaration order of the first three is priority order."""
    GEMINI = "gemini"
    GROQ = "groq"
    FORGE = "forge"
    DEMO = "demo"


PROVIDER_PRIORITY = [ProviderName.GEMINI, ProviderName.GROQ, ProviderName.FORGE]


@dataclass
class LLMResult:
    """Common result shape returned by every provider."""

    text: str
    provider: str
    model: str
    raw: Dict[str, Any] = field(default_factory=dict)
    response_time_ms: int = 0


@dataclass
class ProviderConfig:
    """Configuration for one provider."""

    name: str
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model: Optional[str] = None
    timeout: float = 60.0
    temperature: float = 0.2
    max_tokens: int = 4096


def wants_json(response_format: Optional[Dict[str, Any]]) -> bool:
    return bool(response_format) and response_format.get("type") in ("json_object", "json_schema")


class BaseLLMProvider(ABC):
    """Abstract base class for all providers."""

    requires_api_key = True

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.start_time = None

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the unique name of this provider"""
        pass

    @abstractmethod
    async def generate(
        self,
        messages: List[Message],
        response_format: Optional[Dict[str, Any]] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResult:
        """Send normalized messages and return the generated text.

        Raises:
            LLMGatewayError: on a non-success response or transport failure
        """
        pass

    def is_available(self) -> bool:
        """Check if the provider has the credential it needs."""
        if self.requires_api_key:
            return bool(self.config.api_key)
        return True

    def _start_timing(self):
        self.start_time = time.time()

    def _get_response_time_ms(self) -> int:
        if self.start_time is None:
            return 0
        return int((time.time() - self.start_time) * 1000)
