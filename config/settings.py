"""Blueprint takeoff configuration settings.

Loads configuration from environment variables with sensible defaults.
Secrets are resolved through the config.secrets module.
"""

import os
from typing import Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Load .env file for non-secret configuration (model name, rates, timeouts)
load_dotenv()


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Note: The API key for the reasoning service is resolved lazily via
    the config.secrets module, not read directly from this class.
    """

    # LLM Configuration (non-secrets)
    llm_model: str = field(default_factory=lambda: os.getenv("LLM_MODEL", "gpt-4o"))
    llm_temperature: float = field(default_factory=lambda: float(os.getenv("LLM_TEMPERATURE", "0.1")))
    llm_max_tokens: int = field(default_factory=lambda: int(os.getenv("LLM_MAX_TOKENS", "8000")))

    # Analysis pipeline
    analysis_timeout_seconds: float = field(default_factory=lambda: float(os.getenv("ANALYSIS_TIMEOUT_SECONDS", "60")))
    analysis_max_retries: int = field(default_factory=lambda: int(os.getenv("ANALYSIS_MAX_RETRIES", "2")))
    analysis_retry_backoff_seconds: float = field(default_factory=lambda: float(os.getenv("ANALYSIS_RETRY_BACKOFF_SECONDS", "1.0")))
    analysis_cache_ttl_seconds: float = field(default_factory=lambda: float(os.getenv("ANALYSIS_CACHE_TTL_SECONDS", "3600")))

    # Image preprocessing
    image_max_dimension: int = field(default_factory=lambda: int(os.getenv("IMAGE_MAX_DIMENSION", "1500")))

    # Cost rollup rates
    labor_rate_per_hour: float = field(default_factory=lambda: float(os.getenv("LABOR_RATE_PER_HOUR", "85")))
    sales_tax_rate: float = field(default_factory=lambda: float(os.getenv("SALES_TAX_RATE", "0.08")))
    overhead_rate: float = field(default_factory=lambda: float(os.getenv("OVERHEAD_RATE", "0.15")))
    profit_rate: float = field(default_factory=lambda: float(os.getenv("PROFIT_RATE", "0.10")))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # Internal: cached secret value (use openai_api_key property instead)
    _openai_api_key: Optional[str] = field(default=None, repr=False)

    @property
    def openai_api_key(self) -> Optional[str]:
        """Get the reasoning service API key from the secrets module."""
        if self._openai_api_key is None:
            from config.secrets import get_openai_api_key
            self._openai_api_key = get_openai_api_key()
        return self._openai_api_key

    def validate(self) -> None:
        """Validate required settings are present.

        Raises:
            ValueError: If required settings are missing or out of range.
        """
        if not self.openai_api_key:
            raise ValueError("OPENAI_API_KEY is required")
        if self.analysis_timeout_seconds <= 0:
            raise ValueError("ANALYSIS_TIMEOUT_SECONDS must be positive")
        if self.analysis_max_retries < 0:
            raise ValueError("ANALYSIS_MAX_RETRIES must not be negative")


# Singleton settings instance
settings = Settings()
