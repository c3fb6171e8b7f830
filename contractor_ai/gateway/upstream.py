"""Upstream provider client — HTTPS JSON calls to the OpenAI API.

Two endpoints are used:
  - /chat/completions: scope generation (JSON object response format)
  - /responses: price lookup (web search tool + strict JSON schema)

Any non-2xx status or transport failure raises UpstreamHTTPError carrying
the response body, which the retry policy treats as retryable. The client
returns the decoded JSON body untouched; shape validation belongs to the
normalizer.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from contractor_ai.core.metrics import record_upstream_call
from contractor_ai.gateway.exceptions import ResponseFormatError, UpstreamHTTPError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenAIClient:
    """Thin async client for the provider's JSON endpoints."""

    chat_completions_path = "/chat/completions"
    responses_path = "/responses"

    def __init__(self, api_key: str, base_url: str = DEFAULT_BASE_URL, timeout: float = 60.0):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def create_chat_completion(self, body: dict[str, Any]) -> dict[str, Any]:
        return await self._post(self.chat_completions_path, body)

    async def create_response(self, body: dict[str, Any]) -> dict[str, Any]:
        return await self._post(self.responses_path, body)

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        endpoint = path.strip("/").replace("/", "_")
        start = time.monotonic()

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    f"{self.base_url}{path}",
                    json=body,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.TimeoutException as e:
            record_upstream_call(endpoint, "timeout", time.monotonic() - start)
            raise UpstreamHTTPError(f"OpenAI error: timeout after {self.timeout}s") from e
        except httpx.TransportError as e:
            record_upstream_call(endpoint, "transport_error", time.monotonic() - start)
            raise UpstreamHTTPError(f"OpenAI error: {type(e).__name__}: {e}") from e

        elapsed = time.monotonic() - start
        record_upstream_call(endpoint, str(resp.status_code), elapsed)

        if not resp.is_success:
            logger.warning("OpenAI %s returned %d in %.2fs", path, resp.status_code, elapsed)
            raise UpstreamHTTPError(
                f"OpenAI error: {resp.text}",
                upstream_status=resp.status_code,
                detail=resp.text,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise ResponseFormatError() from e
        if not isinstance(data, dict):
            raise ResponseFormatError()

        logger.debug("OpenAI %s answered in %.2fs", path, elapsed)
        return data
