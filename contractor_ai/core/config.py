import math
from typing import Any

from pydantic import ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PRICE_MODEL = "gpt-4.1-mini"

# Numeric knobs coerced to positive integers (floor 1, default on garbage)
_POSITIVE_INT_FIELDS = (
    "ai_max_prompt_chars",
    "ai_max_history_items",
    "ai_max_output_tokens_scope",
    "ai_max_output_tokens_price",
    "ai_queue_concurrency",
    "ai_retry_attempts",
    "ai_retry_base_delay_ms",
    "ai_cache_ttl_ms",
    "ai_cache_max_entries",
    "ai_budget_max_requests_per_tenant_per_hour",
    "ai_request_timeout_seconds",
)


def to_positive_int(raw: Any, fallback: int) -> int:
    """Truncate ``raw`` to an int floored at 1; ``fallback`` if not numeric."""
    if raw is None or isinstance(raw, bool):
        return fallback
    if isinstance(raw, str):
        raw = raw.strip()
        if not raw:
            return fallback
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(value):
        return fallback
    return max(1, math.trunc(value))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Upstream provider
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_price_model: str = ""  # empty -> OPENAI_MODEL if set, else gpt-4.1-mini
    openai_base_url: str = "https://api.openai.com/v1"

    # Gateway limits
    ai_cost_saver: bool = False
    ai_max_prompt_chars: int = 1400
    ai_max_history_items: int = 4
    ai_max_output_tokens_scope: int = 650
    ai_max_output_tokens_price: int = 900
    ai_queue_concurrency: int = 2
    ai_retry_attempts: int = 3
    ai_retry_base_delay_ms: int = 350
    ai_cache_ttl_ms: int = 8 * 60 * 1000
    ai_cache_max_entries: int = 300
    ai_budget_max_requests_per_tenant_per_hour: int = 200
    ai_request_timeout_seconds: int = 60  # per upstream attempt

    # App
    app_env: str = "development"
    app_debug: bool = True

    # CORS
    allowed_origins: str = "*"  # comma-separated, e.g. "https://app.example.com,https://admin.example.com"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    @field_validator(*_POSITIVE_INT_FIELDS, mode="before")
    @classmethod
    def _coerce_positive_int(cls, value: Any, info: ValidationInfo) -> int:
        return to_positive_int(value, cls.model_fields[info.field_name].default)

    @field_validator("openai_api_key", "openai_model", "openai_price_model", "openai_base_url", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _default_price_model(self) -> "Settings":
        if not self.openai_price_model:
            explicit_model = "openai_model" in self.model_fields_set and self.openai_model
            self.openai_price_model = self.openai_model if explicit_model else DEFAULT_PRICE_MODEL
        if not self.openai_model:
            self.openai_model = "gpt-4o-mini"
        return self


settings = Settings()


def validate_settings_for_production() -> None:
    """Validate critical settings. Called on startup in non-test environments."""
    errors: list[str] = []

    if settings.app_env == "production":
        if not settings.openai_api_key:
            errors.append("OPENAI_API_KEY must be set in production")
        if settings.allowed_origins == "*":
            errors.append("ALLOWED_ORIGINS must not be '*' in production")
        if settings.app_debug:
            errors.append("APP_DEBUG must be false in production")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
