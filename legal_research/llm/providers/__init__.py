"""
LLM Provider Package

Provider implementations behind the gateway's single invoke contract.
"""

from .base import BaseLLMProvider, LLMResult, ProviderConfig, ProviderName, PROVIDER_PRIORITY
from .demo import DemoProvider, DEMO_VERDICT
from .gemini import GeminiProvider
from .openai_compatible import ForgeProvider, GroqProvider, OpenAICompatibleProvider

__all__ = [
    "BaseLLMProvider",
    "LLMResult",
    "ProviderConfig",
    "ProviderName",
    "PROVIDER_PRIORITY",
    "DemoProvider",
    "DEMO_VERDICT",
    "GeminiProvider",
    "ForgeProvider",
    "GroqProvider",
    "OpenAICompatibleProvider",
]
