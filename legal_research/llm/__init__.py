"""Text-generation gateway and provider adapters."""

from .gateway import LLMGateway, redact_key
from .messages import normalize_message
from .providers import LLMResult, ProviderName

__all__ = ["LLMGateway", "LLMResult", "ProviderName", "normalize_message", "redact_key"]
