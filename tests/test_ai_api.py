"""Tests for the AI gateway HTTP routes."""

import json
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from contractor_ai.gateway.exceptions import UpstreamHTTPError
from contractor_ai.gateway.gateway import AIGateway
from contractor_ai.gateway.types import GatewayConfig
from contractor_ai.gateway.upstream import OpenAIClient
from contractor_ai.main import create_app

SCOPE_DOC = {
    "title": "Drywall Scope",
    "tasks": ["Install drywall"],
    "checklist": ["Measure", "Cut", "Hang"],
    "processEs": ["Paso 1", "Paso 2"],
}

PRICE_DOC = {
    "itemQuery": "2x4 stud",
    "bestVendor": "Home Depot",
    "bestPrice": 4.2,
    "currency": "USD",
    "summaryEs": "Home Depot tiene el SKU exacto.",
    "exactMatchCount": 1,
    "coverage": {"homeDepot": True},
    "options": [
        {
            "vendor": "Home Depot",
            "vendorType": "big_box",
            "title": "2x4x8 Stud",
            "price": 4.2,
            "currency": "USD",
            "url": "https://www.homedepot.com/p/123",
            "matchType": "exact_sku",
            "unitMatch": True,
            "confidence": 0.9,
        }
    ],
}


def _gateway(**config_overrides) -> tuple[AIGateway, AsyncMock]:
    config = GatewayConfig(openai_api_key="test-key", retry_attempts=1, **config_overrides)
    client = AsyncMock(spec=OpenAIClient)
    client.create_chat_completion.return_value = {"choices": [{"message": {"content": json.dumps(SCOPE_DOC)}}]}
    client.create_response.return_value = {"output_text": json.dumps(PRICE_DOC)}
    return AIGateway(config, client=client), client


@pytest.fixture
def gateway():
    return _gateway()


@pytest.fixture
async def api(gateway):
    app = create_app(gateway=gateway[0])
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestScopeRoute:
    @pytest.mark.asyncio
    async def test_generate_scope(self, api, gateway):
        gw, client = gateway
        resp = await api.post("/api/v1/ai/scope", json={"prompt": "Install drywall"}, headers={"X-Tenant-Id": "acme"})

        assert resp.status_code == 200
        data = resp.json()
        assert data["title"] == "Drywall Scope"
        assert data["processEs"] == ["Paso 1", "Paso 2"]
        assert data["cache"] is False
        assert gw.budget.get_usage("acme").request_count == 1

        again = await api.post("/api/v1/ai/scope", json={"prompt": "Install drywall"}, headers={"X-Tenant-Id": "acme"})
        assert again.json()["cache"] is True
        assert client.create_chat_completion.await_count == 1

    @pytest.mark.asyncio
    async def test_tenant_from_body_then_default(self, api, gateway):
        gw, _ = gateway
        await api.post("/api/v1/ai/scope", json={"prompt": "Paint walls", "tenantId": "bodyco"})
        await api.post("/api/v1/ai/scope", json={"prompt": "Tile floor"})

        assert gw.budget.get_usage("bodyco").request_count == 1
        assert gw.budget.get_usage("default").request_count == 1

    @pytest.mark.asyncio
    async def test_header_tenant_wins_over_body(self, api, gateway):
        gw, _ = gateway
        await api.post(
            "/api/v1/ai/scope",
            json={"prompt": "Paint walls", "tenantId": "bodyco"},
            headers={"X-Tenant-Id": "headerco"},
        )

        assert gw.budget.get_usage("headerco").request_count == 1
        assert gw.budget.get_usage("bodyco").request_count == 0

    @pytest.mark.asyncio
    async def test_history_accepted(self, api, gateway):
        _, client = gateway
        resp = await api.post(
            "/api/v1/ai/scope",
            json={"prompt": "Add outlets", "history": [{"role": "assistant", "content": "Earlier scope"}]},
        )

        assert resp.status_code == 200
        body = client.create_chat_completion.await_args.args[0]
        assert {"role": "assistant", "content": "Earlier scope"} in body["messages"]

    @pytest.mark.asyncio
    async def test_empty_prompt(self, api):
        resp = await api.post("/api/v1/ai/scope", json={"prompt": "  "})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Prompt is required"}

    @pytest.mark.asyncio
    async def test_upstream_failure(self, api, gateway):
        _, client = gateway
        client.create_chat_completion.side_effect = UpstreamHTTPError("OpenAI error: overloaded", 503, "overloaded")

        resp = await api.post("/api/v1/ai/scope", json={"prompt": "Install drywall"})
        assert resp.status_code == 502
        assert resp.json() == {"error": "OpenAI error: overloaded"}

    @pytest.mark.asyncio
    async def test_unexpected_error_is_generic(self, api, gateway):
        _, client = gateway
        client.create_chat_completion.side_effect = RuntimeError("secret internals")

        resp = await api.post("/api/v1/ai/scope", json={"prompt": "Install drywall"})
        assert resp.status_code == 500
        assert resp.json() == {"error": "Unexpected error"}

    @pytest.mark.asyncio
    async def test_null_history_and_tenant_accepted(self, api, gateway):
        gw, client = gateway
        resp = await api.post(
            "/api/v1/ai/scope",
            json={"prompt": "Install drywall", "history": None, "tenantId": None},
        )

        assert resp.status_code == 200
        assert resp.json()["title"] == "Drywall Scope"
        assert gw.budget.get_usage("default").request_count == 1
        messages = client.create_chat_completion.await_args.args[0]["messages"]
        assert [m["role"] for m in messages] == ["system", "user"]

    @pytest.mark.asyncio
    async def test_null_history_turn_fields(self, api, gateway):
        _, client = gateway
        resp = await api.post(
            "/api/v1/ai/scope",
            json={"prompt": "Install drywall", "history": [{"role": None, "content": "Earlier"}, {"content": None}]},
        )

        assert resp.status_code == 200
        messages = client.create_chat_completion.await_args.args[0]["messages"]
        assert messages[1] == {"role": "user", "content": "Earlier"}
        assert len(messages) == 3

    @pytest.mark.asyncio
    async def test_null_prompt(self, api):
        resp = await api.post("/api/v1/ai/scope", json={"prompt": None})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Prompt is required"}

    @pytest.mark.asyncio
    async def test_malformed_body(self, api):
        resp = await api.post(
            "/api/v1/ai/scope",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json() == {"error": "Invalid request body"}

    @pytest.mark.asyncio
    async def test_wrong_field_type(self, api):
        resp = await api.post("/api/v1/ai/scope", json={"prompt": "Install drywall", "history": "nope"})
        assert resp.status_code == 400
        assert "error" in resp.json()


class TestBudgetRoute:
    @pytest.mark.asyncio
    async def test_budget_exceeded(self):
        gw, _ = _gateway(max_requests_per_tenant_per_hour=1)
        app = create_app(gateway=gw)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            ok = await ac.post("/api/v1/ai/scope", json={"prompt": "Job 1"}, headers={"X-Tenant-Id": "acme"})
            denied = await ac.post("/api/v1/ai/scope", json={"prompt": "Job 2"}, headers={"X-Tenant-Id": "acme"})

        assert ok.status_code == 200
        assert denied.status_code == 429
        assert denied.json() == {"error": "AI budget exceeded for tenant (hourly limit)"}


class TestMaterialPricesRoute:
    @pytest.mark.asyncio
    async def test_lookup(self, api, gateway):
        _, client = gateway
        resp = await api.post(
            "/api/v1/ai/material-prices",
            json={"itemName": "2x4 stud", "sku": "SKU123", "location": "Houston, TX"},
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["bestVendor"] == "Home Depot"
        assert data["coverage"]["homeDepot"] is True
        assert data["options"][0]["matchType"] == "exact_sku"
        assert data["source"] == "openai_web_search"
        assert "distanceMiles" not in data["options"][0]

        user_text = client.create_response.await_args.args[0]["input"][1]["content"][0]["text"]
        assert "Unidad: ea." in user_text

    @pytest.mark.asyncio
    async def test_null_optional_fields_use_defaults(self, api, gateway):
        _, client = gateway
        resp = await api.post(
            "/api/v1/ai/material-prices",
            json={"itemName": "2x4 stud", "sku": None, "unit": None, "location": None},
        )

        assert resp.status_code == 200
        assert resp.json()["bestVendor"] == "Home Depot"
        user_text = client.create_response.await_args.args[0]["input"][1]["content"][0]["text"]
        assert "Unidad: ea." in user_text
        assert "SKU" not in user_text
        assert "Ubicacion" not in user_text

    @pytest.mark.asyncio
    async def test_null_item_name(self, api):
        resp = await api.post("/api/v1/ai/material-prices", json={"itemName": None})
        assert resp.status_code == 400
        assert resp.json() == {"error": "itemName is required"}

    @pytest.mark.asyncio
    async def test_missing_item_name(self, api):
        resp = await api.post("/api/v1/ai/material-prices", json={"sku": "SKU123"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "itemName is required"}

    @pytest.mark.asyncio
    async def test_no_valid_options(self, api, gateway):
        _, client = gateway
        client.create_response.return_value = {"output_text": json.dumps({"options": [{"vendor": "X"}]})}

        resp = await api.post("/api/v1/ai/material-prices", json={"itemName": "2x4 stud"})
        assert resp.status_code == 502
        assert resp.json() == {"error": "AI did not return valid price options"}


class TestServiceRoutes:
    @pytest.mark.asyncio
    async def test_status(self, api):
        await api.post("/api/v1/ai/scope", json={"prompt": "Install drywall"})
        resp = await api.get("/api/v1/ai/status")

        assert resp.status_code == 200
        data = resp.json()
        assert data["scope_cache"]["entries"] == 1
        assert data["queue"] == {"concurrency": 2, "running": 0, "waiting": 0}
        assert data["budget"]["buckets"] == 1

    @pytest.mark.asyncio
    async def test_health(self, api):
        resp = await api.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "gateway": True}

    @pytest.mark.asyncio
    async def test_metrics(self, api):
        await api.post("/api/v1/ai/scope", json={"prompt": "Install drywall"})
        resp = await api.get("/metrics")

        assert resp.status_code == 200
        assert "ai_gateway_requests_total" in resp.text
        assert 'path="/api/v1/ai/scope"' in resp.text
