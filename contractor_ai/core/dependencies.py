from fastapi import Header, Request

from contractor_ai.gateway.gateway import AIGateway, resolve_tenant_id


def get_gateway(request: Request) -> AIGateway:
    """The process-wide gateway built at startup and held on app.state."""
    return request.app.state.gateway


async def get_header_tenant_id(
    x_tenant_id: str | None = Header(None, description="Caller-supplied tenant id (not authenticated)"),
) -> str | None:
    return x_tenant_id


def pick_tenant_id(header_tenant: str | None, body_tenant: str | None) -> str:
    """Header wins over body; blank values fall through to the default tenant."""
    for candidate in (header_tenant, body_tenant):
        if candidate and candidate.strip():
            return candidate.strip()
    return resolve_tenant_id(None)
