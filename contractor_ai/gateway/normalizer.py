"""Response Normalizer — input clamping and provider output validation.

Inputs:
  - Trims and clamps free text with a visible truncation marker
  - Normalizes scope history turns

Outputs (provider JSON is untrusted until it passes through here):
  - Extracts the model text from chat-completion and responses payloads
  - Validates the scope shape and truncates its lists
  - Coerces, filters and ranks price options, derives coverage flags
"""

from __future__ import annotations

import json
import logging
import math
import re
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from contractor_ai.gateway.exceptions import NoValidOptionsError, ResponseFormatError
from contractor_ai.gateway.types import (
    MatchType,
    PriceCoverage,
    PriceLookupResult,
    PriceOption,
    ScopeHistoryItem,
    ScopeResult,
)

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = " ...[truncated]"

MAX_SCOPE_TASKS = 12
MAX_SCOPE_CHECKLIST = 24
MAX_SCOPE_PROCESS_STEPS = 30
MAX_PRICE_OPTIONS = 12

_HTTP_URL = re.compile(r"^https?://", re.IGNORECASE)

# Vendor-name fragments per coverage flag (case-insensitive substring match)
_COVERAGE_PATTERNS = {
    "home_depot": re.compile(r"home\s*depot", re.IGNORECASE),
    "lowes": re.compile(r"lowe'?s", re.IGNORECASE),
    "amazon": re.compile(r"amazon", re.IGNORECASE),
    "ebay": re.compile(r"ebay", re.IGNORECASE),
    "facebook_marketplace": re.compile(r"facebook|marketplace", re.IGNORECASE),
}
_PROVIDER_COVERAGE_KEYS = {
    "home_depot": "homeDepot",
    "lowes": "lowes",
    "amazon": "amazon",
    "ebay": "ebay",
    "facebook_marketplace": "facebookMarketplace",
    "local_supplier": "localSupplier",
}


# ---------------------------------------------------------------------------
# Input normalization
# ---------------------------------------------------------------------------


def clamp_text(value: Any, max_chars: int) -> str:
    """Trim ``value`` and cut it to ``max_chars`` with a truncation marker."""
    text = "" if value is None else str(value).strip()
    if len(text) <= max_chars:
        return text
    return f"{text[: max(0, max_chars - 16)]}{TRUNCATION_MARKER}"


def normalize_history(raw_history: Any, limit: int, max_chars: int) -> list[ScopeHistoryItem]:
    """Keep the last ``limit`` turns, clamp their content, drop empty ones.

    Any role other than "assistant" is coerced to "user".
    """
    if not isinstance(raw_history, (list, tuple)) or limit <= 0:
        return []

    turns: list[ScopeHistoryItem] = []
    for item in raw_history[-limit:]:
        if isinstance(item, ScopeHistoryItem):
            role, content = item.role, item.content
        elif isinstance(item, dict):
            role, content = item.get("role"), item.get("content")
        else:
            continue

        text = clamp_text(content, max_chars)
        if not text:
            continue
        turns.append(ScopeHistoryItem(role="assistant" if role == "assistant" else "user", content=text))
    return turns


# ---------------------------------------------------------------------------
# Provider payload extraction
# ---------------------------------------------------------------------------


def extract_chat_json(payload: Any) -> Any:
    """Parse the JSON document in ``choices[0].message.content``."""
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        content = None
    if not isinstance(content, str):
        raise ResponseFormatError()
    return parse_json_text(content)


def extract_response_text(payload: Any) -> str:
    """Return the model text from a responses-API payload.

    Prefers a non-empty top-level ``output_text``; otherwise the first
    non-empty ``text`` block inside ``output[].content[]``.
    """
    if not isinstance(payload, dict):
        return ""

    output_text = payload.get("output_text")
    if isinstance(output_text, str) and output_text.strip():
        return output_text.strip()

    blocks = payload.get("output")
    for block in blocks if isinstance(blocks, list) else []:
        content = block.get("content") if isinstance(block, dict) else None
        for part in content if isinstance(content, list) else []:
            text = part.get("text") if isinstance(part, dict) else None
            if isinstance(text, str) and text.strip():
                return text.strip()
    return ""


def parse_json_text(text: str) -> Any:
    """Decode provider JSON text; syntax errors become ResponseFormatError."""
    try:
        return json.loads(text)
    except ValueError as e:
        raise ResponseFormatError() from e


# ---------------------------------------------------------------------------
# Scope
# ---------------------------------------------------------------------------


def normalize_scope_result(parsed: Any) -> ScopeResult:
    """Validate the provider's scope object and bound its list sizes."""
    if (
        not isinstance(parsed, dict)
        or not parsed.get("title")
        or not isinstance(parsed.get("tasks"), list)
        or not isinstance(parsed.get("checklist"), list)
        or not isinstance(parsed.get("processEs"), list)
    ):
        raise ResponseFormatError()

    return ScopeResult(
        title=str(parsed["title"]),
        tasks=[str(x) for x in parsed["tasks"][:MAX_SCOPE_TASKS]],
        checklist=[str(x) for x in parsed["checklist"][:MAX_SCOPE_CHECKLIST]],
        process_es=[str(x) for x in parsed["processEs"][:MAX_SCOPE_PROCESS_STEPS]],
        source="openai",
        cache=False,
    )


# ---------------------------------------------------------------------------
# Material prices
# ---------------------------------------------------------------------------


def _to_number(value: Any) -> float:
    """Loose numeric coercion; NaN for anything that is not a number.

    Blank strings count as 0.
    """
    if value is None:
        return math.nan
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        if not value.strip():
            return 0.0
        try:
            return float(value.strip())
        except ValueError:
            return math.nan
    return math.nan


def _to_text(value: Any, default: str = "") -> str:
    return (default if value is None else str(value)).strip()


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def coerce_price_option(raw: dict[str, Any], checked_at: str | None = None) -> PriceOption:
    """Turn one raw provider option into a PriceOption with defaults applied.

    Does not validate; see is_valid_option.
    """
    now = checked_at or _utc_timestamp()

    price = _to_number(raw.get("price", 0))
    shipping = _to_number(raw.get("shippingCost"))
    tax = _to_number(raw.get("taxEstimate"))
    total = _to_number(raw.get("totalPrice"))
    distance = _to_number(raw.get("distanceMiles"))
    confidence = _to_number(raw.get("confidence"))

    shipping_cost = shipping if math.isfinite(shipping) and shipping >= 0 else 0.0
    tax_estimate = tax if math.isfinite(tax) and tax >= 0 else 0.0
    total_price = total if math.isfinite(total) and total > 0 else price + shipping_cost + tax_estimate

    match_raw = _to_text(raw.get("matchType"), "keyword").lower()
    try:
        match_type = MatchType(match_raw)
    except ValueError:
        match_type = MatchType.KEYWORD

    return PriceOption(
        vendor=_to_text(raw.get("vendor")),
        vendor_type=_to_text(raw.get("vendorType")),
        title=_to_text(raw.get("title")),
        price=price,
        currency=_to_text(raw.get("currency"), "USD") or "USD",
        url=_to_text(raw.get("url")),
        distance_miles=distance if math.isfinite(distance) and distance >= 0 else None,
        match_type=match_type,
        unit_match=bool(raw.get("unitMatch")),
        confidence=max(0.0, min(1.0, confidence)) if math.isfinite(confidence) else 0.5,
        shipping_cost=shipping_cost,
        tax_estimate=tax_estimate,
        total_price=total_price,
        checked_at=_to_text(raw.get("checkedAt"), now) or now,
        notes_es=_to_text(raw.get("notesEs")),
    )


def is_valid_option(option: PriceOption) -> bool:
    """Minimum fields required before a provider option is trusted."""
    return bool(
        option.vendor
        and option.vendor_type
        and option.title
        and math.isfinite(option.price)
        and option.price > 0
        and _HTTP_URL.match(option.url)
    )


def rank_options(options: Iterable[PriceOption]) -> list[PriceOption]:
    """Sort best-first.

    Order: match type (exact_sku > exact_upc > keyword), unit match first,
    cheaper total, then higher confidence.
    """
    return sorted(
        options,
        key=lambda op: (-op.match_type.rank, not op.unit_match, op.total_price, -op.confidence),
    )


def count_exact_matches(options: Iterable[PriceOption]) -> int:
    return sum(1 for op in options if op.match_type in (MatchType.EXACT_SKU, MatchType.EXACT_UPC))


def derive_coverage(options: list[PriceOption], provided: Any = None) -> PriceCoverage:
    """Label retailer families by vendor name, OR'd with provider flags.

    Heuristic only: a vendor named "Marketplace Lumber" counts as Facebook
    Marketplace.
    """
    flags = {
        name: any(pattern.search(op.vendor) for op in options) for name, pattern in _COVERAGE_PATTERNS.items()
    }
    flags["local_supplier"] = any(op.vendor_type == "local_store" for op in options)

    if isinstance(provided, dict):
        for name, key in _PROVIDER_COVERAGE_KEYS.items():
            flags[name] = flags[name] or bool(provided.get(key))

    return PriceCoverage(**flags)


def build_price_lookup_result(
    parsed: Any,
    item_name: str,
    searched_at: str | None = None,
) -> PriceLookupResult:
    """Validate the provider's price lookup and fill in derived fields.

    Raises NoValidOptionsError when no option survives validation; there is
    no partial result.
    """
    if not isinstance(parsed, dict):
        raise ResponseFormatError()

    stamp = searched_at or _utc_timestamp()
    raw_options = parsed.get("options")
    raw_options = raw_options if isinstance(raw_options, list) else []

    options: list[PriceOption] = []
    for raw in raw_options:
        if not isinstance(raw, dict):
            continue
        option = coerce_price_option(raw, checked_at=stamp)
        if is_valid_option(option):
            options.append(option)
        else:
            logger.debug("Dropping invalid price option from %r: %r", option.vendor, option.url)

    if not options:
        raise NoValidOptionsError()

    best = rank_options(options)[0]

    best_price = _to_number(parsed.get("bestPrice"))
    provider_count = _to_number(parsed.get("exactMatchCount"))

    return PriceLookupResult(
        item_query=_to_text(parsed.get("itemQuery"), item_name) or item_name,
        best_vendor=_to_text(parsed.get("bestVendor"), best.vendor) or best.vendor,
        best_price=best_price if math.isfinite(best_price) and best_price > 0 else best.price,
        currency=_to_text(parsed.get("currency"), best.currency) or best.currency,
        summary_es=_to_text(parsed.get("summaryEs"), f"Se compararon {len(options)} opciones."),
        exact_match_count=(
            max(0, int(provider_count)) if math.isfinite(provider_count) else count_exact_matches(options)
        ),
        coverage=derive_coverage(options, parsed.get("coverage")),
        options=options[:MAX_PRICE_OPTIONS],
        searched_at=stamp,
        source="openai_web_search",
        cache=False,
    )
