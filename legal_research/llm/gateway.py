"""
LLM gateway: one invoke contract in front of every provider.

Selection order without an explicit provider is gemini > groq > forge,
taking the first one whose credential is configured, and falling back to
the offline demo responder so the pipeline always runs.
"""

from typing import Any, Dict, List, Optional

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..core.config import Settings
from ..services.error_handling import LLMGatewayError
from .messages import Message, normalize_message
from .providers import (
    PROVIDER_PRIORITY,
    BaseLLMProvider,
    DemoProvider,
    ForgeProvider,
    GeminiProvider,
    GroqProvider,
    LLMResult,
    ProviderConfig,
    ProviderName,
)

logger = structlog.get_logger()

AUTO = "auto"


def redact_key(api_key: Optional[str], full: bool = False) -> str:
    """Show only a short key prefix unless full keys are explicitly allowed."""
    if not api_key:
        return "none"
    return api_key if full else f"{api_key[:6]}..."


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, LLMGatewayError) and error.retryable


def _log_retry_attempt(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retrying LLM call",
        attempt=retry_state.attempt_number,
        elapsed=round(retry_state.seconds_since_start, 1),
        error=str(error),
    )


class LLMGateway:
    """Routes invoke calls to a provider chosen by hint or configuration."""

    def __init__(
        self,
        providers: Optional[Dict[str, BaseLLMProvider]] = None,
        default_provider: str = AUTO,
        max_retries: int = 0,
        log_full_keys: bool = False,
    ):
        self._providers: Dict[str, BaseLLMProvider] = dict(providers or {})
        self._providers.setdefault(ProviderName.DEMO.value, DemoProvider())
        self.default_provider = (default_provider or AUTO).lower()
        self.max_retries = max_retries
        self.log_full_keys = log_full_keys

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMGateway":
        common = {
            "timeout": settings.llm_request_timeout,
            "temperature": settings.llm_temperature,
        }
        providers = {
            ProviderName.GEMINI.value: GeminiProvider(ProviderConfig(
                name=ProviderName.GEMINI.value,
                api_key=settings.gemini_api_key,
                base_url=settings.gemini_base_url,
                model=settings.gemini_model,
                max_tokens=settings.gemini_max_output_tokens,
                **common,
            )),
            ProviderName.GROQ.value: GroqProvider(ProviderConfig(
                name=ProviderName.GROQ.value,
                api_key=settings.groq_api_key,
                base_url=settings.groq_base_url,
                model=settings.groq_model,
                max_tokens=settings.llm_max_tokens,
                **common,
            )),
            ProviderName.FORGE.value: ForgeProvider(ProviderConfig(
                name=ProviderName.FORGE.value,
                api_key=settings.forge_api_key,
                base_url=settings.forge_base_url,
                model=settings.forge_model,
                max_tokens=settings.llm_max_tokens,
                **common,
            )),
        }
        return cls(
            providers=providers,
            default_provider=settings.llm_provider,
            max_retries=settings.llm_max_retries,
            log_full_keys=settings.log_full_keys,
        )

    def get_provider(self, name: str) -> Optional[BaseLLMProvider]:
        return self._providers.get(name)

    def select_provider(self, hint: Optional[str] = None) -> BaseLLMProvider:
        """Resolve the provider for one call.

        Raises:
            LLMGatewayError: for an unknown provider, or an explicitly
                requested provider that has no credential
        """
        requested = (hint or self.default_provider or AUTO).lower()

        if requested != AUTO:
            provider = self._providers.get(requested)
            if provider is None:
                raise LLMGatewayError(requested, "Unknown provider", retryable=False)
            if not provider.is_available():
                raise LLMGatewayError(requested, "API key is missing", retryable=False)
            return provider

        for name in PROVIDER_PRIORITY:
            provider = self._providers.get(name.value)
            if provider is not None and provider.is_available():
                return provider
        return self._providers[ProviderName.DEMO.value]

    async def invoke(
        self,
        messages: List[Message],
        response_format: Optional[Dict[str, Any]] = None,
        max_tokens: Optional[int] = None,
        provider: Optional[str] = None,
    ) -> LLMResult:
        """Normalize messages and send them to the selected provider."""
        selected = self.select_provider(provider)
        logger.info(
            "LLM provider selected",
            provider=selected.provider_name,
            key=redact_key(selected.config.api_key, self.log_full_keys),
        )

        normalized = [normalize_message(message) for message in messages]

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception(_is_retryable),
            before_sleep=_log_retry_attempt,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                result = await selected.generate(
                    normalized,
                    response_format=response_format,
                    max_tokens=max_tokens,
                )

        logger.info(
            "LLM call completed",
            provider=result.provider,
            model=result.model,
            response_time_ms=result.response_time_ms,
            chars=len(result.text),
        )
        return result

    def get_provider_status(self) -> Dict[str, Dict[str, Any]]:
        """Availability of every registered provider, for health checks."""
        active = self.select_provider().provider_name if self.default_provider == AUTO else self.default_provider
        status = {}
        for name, provider in self._providers.items():
            priority = [p.value for p in PROVIDER_PRIORITY]
            status[name] = {
                "available": provider.is_available(),
                "model": provider.config.model,
                "priority": priority.index(name) + 1 if name in priority else None,
                "active": name == active,
            }
        return status
