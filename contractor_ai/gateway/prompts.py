"""Upstream request bodies for the two gateway operations.

Both system prompts are in Spanish: the contractor crews read the output.
"""

from __future__ import annotations

from typing import Any

from contractor_ai.gateway.types import ScopeHistoryItem

SCOPE_SYSTEM_PROMPT = (
    "Eres un planificador experto de construccion. Responde SOLO JSON valido con esta forma exacta: "
    '{ "title": string, "tasks": string[], "checklist": string[], "processEs": string[] }. '
    "Todo en espanol. processEs debe explicar el proceso paso a paso con detalle tecnico y orden de ejecucion."
)

PRICE_SYSTEM_PROMPT = (
    "Eres un asistente de compras de construccion. Busca precios actuales y comparables del MISMO producto. "
    "Prioriza coincidencias exactas por SKU/UPC, luego coincidencia por descripcion. "
    "Siempre estima totalPrice = price + shippingCost + taxEstimate. Responde en JSON estricto."
)

_OPTION_FIELDS: dict[str, Any] = {
    "vendor": {"type": "string"},
    "vendorType": {"type": "string"},
    "title": {"type": "string"},
    "price": {"type": "number"},
    "currency": {"type": "string"},
    "url": {"type": "string"},
    "distanceMiles": {"type": ["number", "null"]},
    "matchType": {"type": "string", "enum": ["exact_sku", "exact_upc", "keyword"]},
    "unitMatch": {"type": "boolean"},
    "confidence": {"type": "number"},
    "shippingCost": {"type": "number"},
    "taxEstimate": {"type": "number"},
    "totalPrice": {"type": "number"},
    "checkedAt": {"type": "string"},
    "notesEs": {"type": "string"},
}

_COVERAGE_FIELDS = ["homeDepot", "lowes", "amazon", "ebay", "facebookMarketplace", "localSupplier"]

PRICE_LOOKUP_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "itemQuery": {"type": "string"},
        "bestVendor": {"type": "string"},
        "bestPrice": {"type": "number"},
        "currency": {"type": "string"},
        "summaryEs": {"type": "string"},
        "exactMatchCount": {"type": "number"},
        "coverage": {
            "type": "object",
            "additionalProperties": False,
            "properties": {name: {"type": "boolean"} for name in _COVERAGE_FIELDS},
            "required": _COVERAGE_FIELDS,
        },
        "options": {
            "type": "array",
            "minItems": 1,
            "maxItems": 12,
            "items": {
                "type": "object",
                "additionalProperties": False,
                "properties": _OPTION_FIELDS,
                "required": list(_OPTION_FIELDS),
            },
        },
    },
    "required": [
        "itemQuery",
        "bestVendor",
        "bestPrice",
        "currency",
        "summaryEs",
        "exactMatchCount",
        "coverage",
        "options",
    ],
}


def build_scope_request(
    model: str,
    max_tokens: int,
    prompt: str,
    history: list[ScopeHistoryItem],
) -> dict[str, Any]:
    """Chat-completions body asking for a strict JSON scope object."""
    messages: list[dict[str, str]] = [{"role": "system", "content": SCOPE_SYSTEM_PROMPT}]
    messages.extend(turn.to_dict() for turn in history)
    messages.append(
        {
            "role": "user",
            "content": (
                f"Genera un scope of work para estas tareas: {prompt}. "
                "Checklist de acciones ejecutables. processEs con pasos detallados, control de calidad y cierre."
            ),
        }
    )
    return {
        "model": model,
        "temperature": 0.2,
        "max_tokens": max_tokens,
        "response_format": {"type": "json_object"},
        "messages": messages,
    }


def build_price_request(
    model: str,
    max_output_tokens: int,
    item_name: str,
    sku: str,
    unit: str,
    location: str,
) -> dict[str, Any]:
    """Responses-API body with web search and a strict JSON schema."""
    user_text = (
        f'Busca el mejor precio para este material: "{item_name}"'
        f"{f' SKU: {sku}.' if sku else '.'} Unidad: {unit}. "
        f"{f'Ubicacion local de referencia: {location}. ' if location else ''}"
        "Debes incluir opciones de Home Depot, Lowe's, Amazon, eBay, Facebook Marketplace y ademas "
        "tiendas/proveedores locales cuando existan. "
        "vendorType debe ser uno de: big_box, local_store, marketplace. "
        "matchType debe ser: exact_sku, exact_upc o keyword. "
        "unitMatch debe ser true cuando la unidad/tamano coincide. confidence de 0 a 1. "
        "En summaryEs explica brevemente cual conviene y por que."
    )
    return {
        "model": model,
        "max_output_tokens": max_output_tokens,
        "tools": [{"type": "web_search_preview"}],
        "temperature": 0.1,
        "text": {
            "format": {
                "type": "json_schema",
                "name": "material_price_lookup",
                "strict": True,
                "schema": PRICE_LOOKUP_SCHEMA,
            }
        },
        "input": [
            {"role": "system", "content": [{"type": "input_text", "text": PRICE_SYSTEM_PROMPT}]},
            {"role": "user", "content": [{"type": "input_text", "text": user_text}]},
        ],
    }
