"""Pydantic schemas for the AI gateway API.

Request bodies are deliberately lenient: missing or null text fields pass
through as None so the gateway applies its own defaults and raises its own
"... is required" validation errors.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class HistoryTurn(BaseModel):
    """A prior chat turn; unknown roles are coerced to "user" by the gateway."""

    role: str | None = "user"
    content: str | None = ""


class ScopeRequestBody(BaseModel):
    """Input for scope generation."""

    model_config = ConfigDict(populate_by_name=True)

    prompt: str | None = Field("", description="Free-text description of the work")
    history: list[HistoryTurn] | None = Field(None, description="Prior turns, oldest first")
    tenant_id: str | None = Field(None, alias="tenantId")


class MaterialPriceRequestBody(BaseModel):
    """Input for material price lookup."""

    model_config = ConfigDict(populate_by_name=True)

    item_name: str | None = Field("", alias="itemName", description="Material to price, e.g. '2x4 stud'")
    sku: str | None = None
    unit: str | None = Field(None, description='Unit of sale; null or missing means "ea"')
    location: str | None = Field(None, description="Reference location for local suppliers, e.g. 'Houston, TX'")
    tenant_id: str | None = Field(None, alias="tenantId")
