"""Core types and DTOs for the AI gateway."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

DEFAULT_TENANT_ID = "default"

SCOPE_OPERATION = "scope"
PRICE_OPERATION = "material-prices"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class MatchType(str, Enum):
    """How closely a price option matches the requested item."""

    EXACT_SKU = "exact_sku"
    EXACT_UPC = "exact_upc"
    KEYWORD = "keyword"

    @property
    def rank(self) -> int:
        """Ranking weight used for best-option selection (higher wins)."""
        return _MATCH_RANK[self]


_MATCH_RANK = {
    MatchType.EXACT_SKU: 3,
    MatchType.EXACT_UPC: 2,
    MatchType.KEYWORD: 1,
}


# ---------------------------------------------------------------------------
# Scope generation
# ---------------------------------------------------------------------------


@dataclass
class ScopeHistoryItem:
    """A prior conversation turn sent along with a scope prompt."""

    role: str = "user"  # "user" | "assistant"
    content: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ScopeResult:
    """Validated scope-of-work produced by the provider."""

    title: str
    tasks: list[str] = field(default_factory=list)
    checklist: list[str] = field(default_factory=list)
    process_es: list[str] = field(default_factory=list)
    source: str = "openai"
    cache: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "tasks": list(self.tasks),
            "checklist": list(self.checklist),
            "processEs": list(self.process_es),
            "source": self.source,
            "cache": self.cache,
        }


# ---------------------------------------------------------------------------
# Material price lookup
# ---------------------------------------------------------------------------


@dataclass
class PriceOption:
    """A single vendor offer for the requested material."""

    vendor: str
    vendor_type: str
    title: str
    price: float
    url: str
    currency: str = "USD"
    distance_miles: float | None = None
    match_type: MatchType = MatchType.KEYWORD
    unit_match: bool = False
    confidence: float = 0.5
    shipping_cost: float = 0.0
    tax_estimate: float = 0.0
    total_price: float = 0.0
    checked_at: str = ""
    notes_es: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "vendor": self.vendor,
            "vendorType": self.vendor_type,
            "title": self.title,
            "price": self.price,
            "currency": self.currency,
            "url": self.url,
            "matchType": self.match_type.value,
            "unitMatch": self.unit_match,
            "confidence": self.confidence,
            "shippingCost": self.shipping_cost,
            "taxEstimate": self.tax_estimate,
            "totalPrice": self.total_price,
            "checkedAt": self.checked_at,
            "notesEs": self.notes_es,
        }
        if self.distance_miles is not None:
            data["distanceMiles"] = self.distance_miles
        return data


@dataclass
class PriceCoverage:
    """Which retailer families appear among the options (heuristic labels)."""

    home_depot: bool = False
    lowes: bool = False
    amazon: bool = False
    ebay: bool = False
    facebook_marketplace: bool = False
    local_supplier: bool = False

    def to_dict(self) -> dict[str, bool]:
        return {
            "homeDepot": self.home_depot,
            "lowes": self.lowes,
            "amazon": self.amazon,
            "ebay": self.ebay,
            "facebookMarketplace": self.facebook_marketplace,
            "localSupplier": self.local_supplier,
        }


@dataclass
class PriceLookupResult:
    """Normalized, ranked price comparison for one material."""

    item_query: str
    best_vendor: str
    best_price: float
    currency: str
    summary_es: str
    exact_match_count: int
    coverage: PriceCoverage
    options: list[PriceOption]
    searched_at: str
    source: str = "openai_web_search"
    cache: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "itemQuery": self.item_query,
            "bestVendor": self.best_vendor,
            "bestPrice": self.best_price,
            "currency": self.currency,
            "summaryEs": self.summary_es,
            "exactMatchCount": self.exact_match_count,
            "coverage": self.coverage.to_dict(),
            "options": [option.to_dict() for option in self.options],
            "source": self.source,
            "searchedAt": self.searched_at,
            "cache": self.cache,
        }


# ---------------------------------------------------------------------------
# Gateway config
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GatewayConfig:
    """Effective limits for one gateway instance (cost saver already applied)."""

    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_price_model: str = "gpt-4.1-mini"
    openai_base_url: str = "https://api.openai.com/v1"
    cost_saver: bool = False
    max_prompt_chars: int = 1400
    max_history_items: int = 4
    max_scope_output_tokens: int = 650
    max_price_output_tokens: int = 900
    queue_concurrency: int = 2
    retry_attempts: int = 3
    retry_base_delay_ms: int = 350
    cache_ttl_ms: int = 8 * 60 * 1000
    cache_max_entries: int = 300
    max_requests_per_tenant_per_hour: int = 200
    request_timeout_seconds: float = 60.0

    @property
    def history_limit(self) -> int:
        """Prior turns forwarded with a scope prompt."""
        if self.cost_saver:
            return min(self.max_history_items, 2)
        return self.max_history_items

    @classmethod
    def from_settings(cls, settings: Any) -> GatewayConfig:
        """Build the effective config, tightening limits when cost saver is on."""
        saver = bool(settings.ai_cost_saver)

        def tighten(value: int, cap: int) -> int:
            return min(value, cap) if saver else value

        def loosen(value: int, floor: int) -> int:
            return max(value, floor) if saver else value

        return cls(
            openai_api_key=settings.openai_api_key,
            openai_model=settings.openai_model,
            openai_price_model=settings.openai_price_model,
            openai_base_url=settings.openai_base_url.rstrip("/"),
            cost_saver=saver,
            max_prompt_chars=tighten(settings.ai_max_prompt_chars, 900),
            max_history_items=tighten(settings.ai_max_history_items, 2),
            max_scope_output_tokens=tighten(settings.ai_max_output_tokens_scope, 360),
            max_price_output_tokens=tighten(settings.ai_max_output_tokens_price, 520),
            queue_concurrency=tighten(settings.ai_queue_concurrency, 1),
            retry_attempts=tighten(settings.ai_retry_attempts, 2),
            retry_base_delay_ms=loosen(settings.ai_retry_base_delay_ms, 450),
            cache_ttl_ms=loosen(settings.ai_cache_ttl_ms, 25 * 60 * 1000),
            cache_max_entries=loosen(settings.ai_cache_max_entries, 500),
            max_requests_per_tenant_per_hour=settings.ai_budget_max_requests_per_tenant_per_hour,
            request_timeout_seconds=float(settings.ai_request_timeout_seconds),
        )
