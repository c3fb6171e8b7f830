"""AI Gateway — orchestrator composing all gateway components.

Request pipeline shared by both operations:
  1. Resolve tenant id (blank -> "default")
  2. Clamp and trim every free-text input
  3. Fingerprint the normalized request
  4. Cache lookup (hit -> return tagged cache=True, no budget, no upstream)
     Cache entries are private copies; callers never hold a reference into them.
  5. Budget check, then budget consumption (before dedup)
  6. Deduplicate by fingerprint; the single producer calls the provider
     through the bounded queue and retry policy, validates the payload and
     stores the result in the cache

Usage:
    gateway = AIGateway(GatewayConfig.from_settings(settings))

    scope = await gateway.generate_scope("Install drywall", history=[], tenant_id="tenantA")
    prices = await gateway.lookup_material_prices("2x4 stud", sku="SKU123", location="Houston, TX")

Construct one gateway per process and hand it to request handlers; all
state (caches, budget buckets, queue, in-flight map) lives on the instance.
"""

from __future__ import annotations

import copy
import logging
import math
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any, TypeVar

from contractor_ai.core.metrics import record_gateway_request
from contractor_ai.gateway.budget import TenantBudgetTracker
from contractor_ai.gateway.cache import ResultCache
from contractor_ai.gateway.dedupe import InflightDeduplicator
from contractor_ai.gateway.exceptions import (
    BudgetExceededError,
    GatewayConfigError,
    GatewayError,
    GatewayValidationError,
    ResponseFormatError,
)
from contractor_ai.gateway.fingerprint import compute_fingerprint
from contractor_ai.gateway.normalizer import (
    build_price_lookup_result,
    clamp_text,
    extract_chat_json,
    extract_response_text,
    normalize_history,
    normalize_scope_result,
    parse_json_text,
)
from contractor_ai.gateway.prompts import build_price_request, build_scope_request
from contractor_ai.gateway.retry import retry
from contractor_ai.gateway.task_queue import BoundedTaskQueue
from contractor_ai.gateway.types import (
    DEFAULT_TENANT_ID,
    PRICE_OPERATION,
    SCOPE_OPERATION,
    GatewayConfig,
    PriceLookupResult,
    ScopeHistoryItem,
    ScopeResult,
)
from contractor_ai.gateway.upstream import OpenAIClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_SKU_CHARS = 120
MAX_UNIT_CHARS = 40
MAX_LOCATION_CHARS = 120


def resolve_tenant_id(raw: str | None) -> str:
    """Trimmed tenant id, or the shared default bucket when blank."""
    tenant = "" if raw is None else str(raw).strip()
    return tenant or DEFAULT_TENANT_ID


def estimate_input_tokens(chars: int) -> int:
    """Crude proxy: four characters per token."""
    return math.ceil(chars / 4)


class AIGateway:
    """Main gateway orchestrator.

    Integrates:
      - BoundedTaskQueue: caps concurrent upstream calls
      - retry: exponential backoff around each upstream call
      - ResultCache: one per operation (value shapes differ)
      - InflightDeduplicator: one upstream call per fingerprint at a time
      - TenantBudgetTracker: hourly request ceiling per tenant
    """

    def __init__(self, config: GatewayConfig, client: OpenAIClient | None = None):
        """
        Args:
            config: Effective limits (cost saver already applied)
            client: Upstream client override, mainly for tests
        """
        self.config = config
        self.client = client or OpenAIClient(
            api_key=config.openai_api_key,
            base_url=config.openai_base_url,
            timeout=config.request_timeout_seconds,
        )

        ttl_seconds = config.cache_ttl_ms / 1000.0
        self.queue = BoundedTaskQueue(config.queue_concurrency)
        self.scope_cache: ResultCache[ScopeResult] = ResultCache(ttl_seconds, config.cache_max_entries)
        self.price_cache: ResultCache[PriceLookupResult] = ResultCache(ttl_seconds, config.cache_max_entries)
        self.dedupe = InflightDeduplicator()
        self.budget = TenantBudgetTracker(config.max_requests_per_tenant_per_hour)

    # ------------------------------------------------------------------
    # Operation A: scope generation
    # ------------------------------------------------------------------

    async def generate_scope(
        self,
        prompt: str,
        history: list[ScopeHistoryItem] | list[dict[str, Any]] | None = None,
        tenant_id: str | None = None,
    ) -> ScopeResult:
        """Generate a structured scope of work for ``prompt``.

        Raises:
            GatewayValidationError: prompt empty after trimming
            BudgetExceededError: tenant's hourly ceiling reached
            UpstreamHTTPError, ResponseFormatError: provider failures
        """
        return await self._tracked(SCOPE_OPERATION, self._generate_scope(prompt, history, tenant_id))

    async def _generate_scope(
        self,
        prompt: str,
        history: list[ScopeHistoryItem] | list[dict[str, Any]] | None,
        tenant_id: str | None,
    ) -> ScopeResult:
        tenant = resolve_tenant_id(tenant_id)
        cfg = self.config

        prompt_text = clamp_text(prompt, cfg.max_prompt_chars)
        if not prompt_text:
            raise GatewayValidationError("Prompt is required")
        turns = normalize_history(history, cfg.history_limit, cfg.max_prompt_chars // 2)

        key = compute_fingerprint(
            {
                "endpoint": SCOPE_OPERATION,
                "model": cfg.openai_model,
                "prompt": prompt_text,
                "history": [turn.to_dict() for turn in turns],
                "maxScopeOutputTokens": cfg.max_scope_output_tokens,
                "tenantId": tenant,
            }
        )

        cached = self.scope_cache.get(key)
        if cached is not None:
            logger.debug(
                "Scope cache hit %s for tenant %s",
                key[:12],
                tenant,
                extra={"tenant_id": tenant, "operation": SCOPE_OPERATION, "fingerprint": key},
            )
            return replace(copy.deepcopy(cached), cache=True)

        self._admit(tenant, len(prompt_text), cfg.max_scope_output_tokens)

        async def produce() -> ScopeResult:
            body = build_scope_request(cfg.openai_model, cfg.max_scope_output_tokens, prompt_text, turns)
            payload = await self._call_upstream(SCOPE_OPERATION, self.client.create_chat_completion, body)
            result = normalize_scope_result(extract_chat_json(payload))
            self.scope_cache.set(key, copy.deepcopy(result))
            logger.info(
                "Scope generated for tenant %s: %r (%d tasks)",
                tenant,
                result.title,
                len(result.tasks),
                extra={"tenant_id": tenant, "operation": SCOPE_OPERATION, "fingerprint": key},
            )
            return result

        return await self.dedupe.resolve(key, produce)

    # ------------------------------------------------------------------
    # Operation B: material price lookup
    # ------------------------------------------------------------------

    async def lookup_material_prices(
        self,
        item_name: str,
        sku: str | None = None,
        unit: str | None = None,
        location: str | None = None,
        tenant_id: str | None = None,
    ) -> PriceLookupResult:
        """Compare current vendor prices for one material.

        Raises:
            GatewayValidationError: item name empty after trimming
            BudgetExceededError: tenant's hourly ceiling reached
            NoValidOptionsError: no provider option passed validation
            UpstreamHTTPError, ResponseFormatError: provider failures
        """
        return await self._tracked(
            PRICE_OPERATION,
            self._lookup_material_prices(item_name, sku, unit, location, tenant_id),
        )

    async def _lookup_material_prices(
        self,
        item_name: str,
        sku: str | None,
        unit: str | None,
        location: str | None,
        tenant_id: str | None,
    ) -> PriceLookupResult:
        tenant = resolve_tenant_id(tenant_id)
        cfg = self.config

        item = clamp_text(item_name, cfg.max_prompt_chars)
        sku_text = clamp_text(sku, MAX_SKU_CHARS)
        unit_text = clamp_text("ea" if unit is None else unit, MAX_UNIT_CHARS)
        location_text = clamp_text(location, MAX_LOCATION_CHARS)
        if not item:
            raise GatewayValidationError("itemName is required")

        key = compute_fingerprint(
            {
                "endpoint": PRICE_OPERATION,
                "model": cfg.openai_price_model,
                "itemName": item,
                "sku": sku_text,
                "unit": unit_text,
                "location": location_text,
                "maxPriceOutputTokens": cfg.max_price_output_tokens,
                "tenantId": tenant,
            }
        )

        cached = self.price_cache.get(key)
        if cached is not None:
            logger.debug(
                "Price cache hit %s for tenant %s",
                key[:12],
                tenant,
                extra={"tenant_id": tenant, "operation": PRICE_OPERATION, "fingerprint": key},
            )
            return replace(copy.deepcopy(cached), cache=True)

        prompt_chars = len(item) + len(sku_text) + len(unit_text) + len(location_text)
        self._admit(tenant, prompt_chars, cfg.max_price_output_tokens)

        async def produce() -> PriceLookupResult:
            body = build_price_request(
                cfg.openai_price_model,
                cfg.max_price_output_tokens,
                item,
                sku_text,
                unit_text,
                location_text,
            )
            payload = await self._call_upstream(PRICE_OPERATION, self.client.create_response, body)
            text = extract_response_text(payload)
            if not text:
                raise ResponseFormatError("Empty AI response")
            result = build_price_lookup_result(parse_json_text(text), item)
            self.price_cache.set(key, copy.deepcopy(result))
            logger.info(
                "Price lookup for tenant %s: %r -> %d options, best %s @ %.2f",
                tenant,
                item,
                len(result.options),
                result.best_vendor,
                result.best_price,
                extra={"tenant_id": tenant, "operation": PRICE_OPERATION, "fingerprint": key},
            )
            return result

        return await self.dedupe.resolve(key, produce)

    # ------------------------------------------------------------------
    # Shared pipeline steps
    # ------------------------------------------------------------------

    def _admit(self, tenant_id: str, prompt_chars: int, max_output_tokens: int) -> None:
        """Budget check + consume. No await between the two."""
        if not self.config.openai_api_key:
            raise GatewayConfigError("OPENAI_API_KEY is missing in server env")

        if not self.budget.can_consume(tenant_id):
            logger.warning("AI budget exceeded for tenant %s", tenant_id, extra={"tenant_id": tenant_id})
            raise BudgetExceededError(tenant_id)
        self.budget.consume(tenant_id, estimate_input_tokens(prompt_chars), max_output_tokens)

    async def _call_upstream(
        self,
        operation: str,
        send: Callable[[dict[str, Any]], Awaitable[dict[str, Any]]],
        body: dict[str, Any],
    ) -> dict[str, Any]:
        """One retried upstream call; each attempt holds a queue slot."""

        async def attempt() -> dict[str, Any]:
            return await self.queue.run(lambda: send(body))

        return await retry(
            attempt,
            self.config.retry_attempts,
            self.config.retry_base_delay_ms,
            label=f"{operation} upstream call",
        )

    async def _tracked(self, operation: str, work: Awaitable[T]) -> T:
        try:
            result = await work
        except GatewayError as e:
            record_gateway_request(operation, e.outcome)
            raise
        except Exception:
            record_gateway_request(operation, "error")
            logger.exception("Unexpected failure in %s operation", operation, extra={"operation": operation})
            raise
        record_gateway_request(operation, "cache_hit" if getattr(result, "cache", False) else "ok")
        return result

    def get_status(self) -> dict:
        """Get comprehensive gateway status."""
        return {
            "queue": self.queue.get_stats(),
            "scope_cache": self.scope_cache.get_stats(),
            "price_cache": self.price_cache.get_stats(),
            "inflight": self.dedupe.pending_count,
            "budget": self.budget.get_stats(),
            "cost_saver": self.config.cost_saver,
            "models": {
                SCOPE_OPERATION: self.config.openai_model,
                PRICE_OPERATION: self.config.openai_price_model,
            },
        }
