"""API endpoints for the AI gateway.

Provides:
  - POST /ai/scope — structured scope of work from a free-text prompt
  - POST /ai/material-prices — ranked vendor price comparison for a material
  - GET /ai/status — queue, cache, in-flight and budget snapshot

Gateway errors are rendered as {"error": message} by the handler in main.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from contractor_ai.core.dependencies import get_gateway, get_header_tenant_id, pick_tenant_id
from contractor_ai.gateway.gateway import AIGateway
from contractor_ai.schemas.ai import MaterialPriceRequestBody, ScopeRequestBody

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/scope")
async def generate_scope(
    body: ScopeRequestBody,
    gateway: AIGateway = Depends(get_gateway),
    header_tenant: str | None = Depends(get_header_tenant_id),
):
    """Generate title, tasks, checklist and Spanish process steps for a job."""
    result = await gateway.generate_scope(
        prompt=body.prompt,
        history=[turn.model_dump() for turn in body.history or []],
        tenant_id=pick_tenant_id(header_tenant, body.tenant_id),
    )
    return result.to_dict()


@router.post("/material-prices")
async def lookup_material_prices(
    body: MaterialPriceRequestBody,
    gateway: AIGateway = Depends(get_gateway),
    header_tenant: str | None = Depends(get_header_tenant_id),
):
    """Compare current prices for one material across big-box, marketplace and local vendors."""
    result = await gateway.lookup_material_prices(
        item_name=body.item_name,
        sku=body.sku,
        unit=body.unit,
        location=body.location,
        tenant_id=pick_tenant_id(header_tenant, body.tenant_id),
    )
    return result.to_dict()


@router.get("/status")
async def gateway_status(gateway: AIGateway = Depends(get_gateway)):
    return gateway.get_status()
