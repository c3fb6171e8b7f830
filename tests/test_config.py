"""Tests for settings coercion and the effective gateway config."""

import pytest

from contractor_ai.core.config import DEFAULT_PRICE_MODEL, Settings, to_positive_int
from contractor_ai.gateway.types import GatewayConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("OPENAI_MODEL", "OPENAI_PRICE_MODEL", "AI_COST_SAVER", "AI_QUEUE_CONCURRENCY"):
        monkeypatch.delenv(name, raising=False)


def _settings(**kwargs) -> Settings:
    return Settings(_env_file=None, **kwargs)


class TestPositiveInt:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("5", 5),
            ("2.9", 2),
            ("0", 1),
            ("-7", 1),
            (" 12 ", 12),
            (3, 3),
            ("", 99),
            ("abc", 99),
            ("nan", 99),
            ("inf", 99),
            (None, 99),
        ],
    )
    def test_coercion(self, raw, expected):
        assert to_positive_int(raw, 99) == expected


class TestSettings:
    def test_defaults(self):
        s = _settings()
        assert s.openai_model == "gpt-4o-mini"
        assert s.openai_price_model == DEFAULT_PRICE_MODEL
        assert s.ai_max_prompt_chars == 1400
        assert s.ai_cache_ttl_ms == 480_000
        assert s.ai_budget_max_requests_per_tenant_per_hour == 200

    def test_garbage_numbers_fall_back(self):
        s = _settings(ai_queue_concurrency="lots", ai_retry_attempts="", ai_cache_max_entries="0")
        assert s.ai_queue_concurrency == 2
        assert s.ai_retry_attempts == 3
        assert s.ai_cache_max_entries == 1

    def test_env_values_are_coerced(self, monkeypatch):
        monkeypatch.setenv("AI_QUEUE_CONCURRENCY", "4.7")
        assert _settings().ai_queue_concurrency == 4

    def test_price_model_follows_explicit_model(self, monkeypatch):
        monkeypatch.setenv("OPENAI_MODEL", "gpt-4o")
        s = _settings()
        assert s.openai_model == "gpt-4o"
        assert s.openai_price_model == "gpt-4o"

    def test_explicit_price_model_wins(self):
        s = _settings(openai_model="gpt-4o", openai_price_model=" gpt-4.1 ")
        assert s.openai_price_model == "gpt-4.1"


class TestGatewayConfigFromSettings:
    def test_passthrough_without_cost_saver(self):
        config = GatewayConfig.from_settings(_settings(openai_api_key=" sk-test ", ai_queue_concurrency=5))
        assert config.openai_api_key == "sk-test"
        assert config.queue_concurrency == 5
        assert config.max_prompt_chars == 1400
        assert config.cost_saver is False
        assert config.request_timeout_seconds == 60.0

    def test_cost_saver_tightens_limits(self):
        config = GatewayConfig.from_settings(_settings(ai_cost_saver=True))
        assert config.cost_saver is True
        assert config.max_prompt_chars == 900
        assert config.max_history_items == 2
        assert config.max_scope_output_tokens == 360
        assert config.max_price_output_tokens == 520
        assert config.queue_concurrency == 1
        assert config.retry_attempts == 2
        assert config.retry_base_delay_ms == 450
        assert config.cache_ttl_ms == 1_500_000
        assert config.cache_max_entries == 500

    def test_cost_saver_keeps_stricter_and_larger_values(self):
        config = GatewayConfig.from_settings(
            _settings(ai_cost_saver=True, ai_max_prompt_chars=500, ai_cache_ttl_ms=3_000_000)
        )
        assert config.max_prompt_chars == 500
        assert config.cache_ttl_ms == 3_000_000

    def test_base_url_trailing_slash_stripped(self):
        config = GatewayConfig.from_settings(_settings(openai_base_url="https://proxy.local/v1/"))
        assert config.openai_base_url == "https://proxy.local/v1"
