"""Error taxonomy surfaced by the AI gateway.

Every failure path raises a subclass of GatewayError so the HTTP layer can
map it to a status code without parsing messages:

  - GatewayValidationError: caller-correctable input problem (400)
  - BudgetExceededError: tenant hit its hourly ceiling (429)
  - GatewayConfigError: server is missing required configuration (500)
  - UpstreamHTTPError: non-2xx or transport failure talking to the provider (502)
  - ResponseFormatError: provider answered but the payload is unusable (502)
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for all gateway failures."""

    status_code: int = 500
    outcome: str = "error"  # metrics label
    retryable: bool = False


class GatewayValidationError(GatewayError):
    """Raised when a required input is missing after normalization."""

    status_code = 400
    outcome = "validation_error"


class BudgetExceededError(GatewayError):
    """Raised when a tenant has no requests left in the current hour bucket."""

    status_code = 429
    outcome = "budget_exceeded"

    def __init__(self, tenant_id: str, message: str = "AI budget exceeded for tenant (hourly limit)"):
        super().__init__(message)
        self.tenant_id = tenant_id


class GatewayConfigError(GatewayError):
    """Raised when the gateway cannot reach the provider due to missing config."""

    status_code = 500
    outcome = "config_error"


class UpstreamHTTPError(GatewayError):
    """Raised for non-2xx responses and transport failures.

    The only gateway error class the retry policy re-attempts; exceptions
    from outside the gateway taxonomy are retried as well.
    """

    status_code = 502
    outcome = "upstream_error"
    retryable = True

    def __init__(self, message: str, upstream_status: int = 0, detail: str = ""):
        super().__init__(message)
        self.upstream_status = upstream_status
        self.detail = detail


class ResponseFormatError(GatewayError):
    """Raised when the provider's payload is malformed or incomplete."""

    status_code = 502
    outcome = "format_error"

    def __init__(self, message: str = "Invalid AI response format"):
        super().__init__(message)


class NoValidOptionsError(ResponseFormatError):
    """Raised when every price option failed minimum-validity checks."""

    def __init__(self, message: str = "AI did not return valid price options"):
        super().__init__(message)
