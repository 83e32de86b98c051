"""Configuration management for the Legal Research service."""

from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
import json


class Settings(BaseSettings):
    """Application settings with validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="legal-research")
    app_env: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    api_prefix: str = Field(default="/api/v1")
    cors_origins: str = Field(default="http://localhost:3000")

    # LLM providers (priority: gemini > groq > forge, demo when none configured)
    llm_provider: str = Field(default="auto")
    llm_temperature: float = Field(default=0.2)
    llm_max_tokens: int = Field(default=4096)
    llm_request_timeout: float = Field(default=60.0, gt=0)
    llm_max_retries: int = Field(default=0, ge=0)
    log_full_keys: bool = Field(default=False)

    gemini_api_key: Optional[str] = Field(default=None)
    gemini_model: str = Field(default="gemini-2.5-flash")
    gemini_base_url: str = Field(default="https://generativelanguage.googleapis.com/v1beta")
    gemini_max_output_tokens: int = Field(default=8192)

    groq_api_key: Optional[str] = Field(default=None)
    groq_model: str = Field(default="llama-3.1-8b-instant")
    groq_base_url: str = Field(default="https://api.groq.com/openai/v1")

    forge_api_key: Optional[str] = Field(default=None)
    forge_model: str = Field(default="manus-1")
    forge_api_url: Optional[str] = Field(default=None)

    # Web search (Tavily)
    tavily_api_key: Optional[str] = Field(default=None)
    tavily_base_url: str = Field(default="https://api.tavily.com")
    search_max_results: int = Field(default=3, ge=1)
    search_timeout: float = Field(default=30.0, gt=0)

    # Pipeline limits
    max_search_queries: int = Field(default=3, ge=1)
    max_executed_queries: int = Field(default=2, ge=1)
    prompt_char_limit: int = Field(default=20000, ge=100)
    search_prompt_char_limit: int = Field(default=2000, ge=100)

    # Storage
    case_store_path: Optional[str] = Field(default=None)

    # Monitoring
    enable_metrics: bool = Field(default=True)

    @property
    def forge_base_url(self) -> str:
        """Forge endpoint root, honouring an explicit FORGE_API_URL."""
        if self.forge_api_url and self.forge_api_url.strip():
            return f"{self.forge_api_url.strip().rstrip('/')}/v1"
        return "https://forge.manus.im/v1"

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.app_env.lower() == "production"

    def get_cors_origins(self) -> List[str]:
        """Get CORS origins as list."""
        value = self.cors_origins.strip()
        if value.startswith('[') and value.endswith(']'):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass
        return [url.strip() for url in value.split(',') if url.strip()]


# Global settings instance
settings = Settings()
