"""Tenant Budget Tracker — per-tenant hourly request ceiling.

Usage is bucketed by tenant id plus the UTC calendar hour
(YYYY-MM-DD-HH). This is a fixed window, not a sliding one: a burst at
HH:59 and another at HH+1:00 draw from two independent budgets.

Buckets for past hours are kept for the life of the process; memory grows
with tenant x hour cardinality.

The check (can_consume) and the increment (consume) are separate calls.
They are safe as a pair only because the gateway runs both on one event
loop with no await in between; a threaded caller must hold a lock across
both.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UsageBucket:
    """Accumulated usage for one tenant in one hour window."""

    request_count: int = 0
    estimated_input_tokens: int = 0
    estimated_output_tokens: int = 0


class TenantBudgetTracker:
    """In-memory hourly request budget keyed by tenant.

    Usage:
        budget = TenantBudgetTracker(max_requests_per_tenant_per_hour=200)

        if not budget.can_consume(tenant_id):
            raise BudgetExceededError(tenant_id)
        budget.consume(tenant_id, est_input_tokens, est_output_tokens)
    """

    def __init__(
        self,
        max_requests_per_tenant_per_hour: int,
        clock: Callable[[], datetime] | None = None,
    ):
        self.max_requests_per_hour = max(1, int(max_requests_per_tenant_per_hour))
        self._clock = clock or _utcnow
        self._buckets: dict[tuple[str, str], UsageBucket] = {}

    def _bucket_key(self, tenant_id: str) -> tuple[str, str]:
        now = self._clock().astimezone(timezone.utc)
        return tenant_id, now.strftime("%Y-%m-%d-%H")

    def can_consume(self, tenant_id: str) -> bool:
        """True while the tenant's current hour bucket is below the ceiling."""
        bucket = self._buckets.get(self._bucket_key(tenant_id))
        if bucket is None:
            return True
        return bucket.request_count < self.max_requests_per_hour

    def consume(self, tenant_id: str, est_input_tokens: float, est_output_tokens: float) -> None:
        """Record one accepted request and its token estimates.

        Token estimates are truncated and floored at zero.
        """
        key = self._bucket_key(tenant_id)
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = self._buckets[key] = UsageBucket()

        bucket.request_count += 1
        bucket.estimated_input_tokens += max(0, int(est_input_tokens))
        bucket.estimated_output_tokens += max(0, int(est_output_tokens))

        if bucket.request_count >= self.max_requests_per_hour:
            logger.info(
                "Tenant %s reached its hourly AI budget (%d requests)",
                tenant_id,
                self.max_requests_per_hour,
            )

    def get_usage(self, tenant_id: str) -> UsageBucket:
        """Snapshot of the tenant's current hour bucket (zeroed if untouched)."""
        bucket = self._buckets.get(self._bucket_key(tenant_id))
        return replace(bucket) if bucket is not None else UsageBucket()

    @property
    def bucket_count(self) -> int:
        """Total (tenant, hour) buckets held in memory."""
        return len(self._buckets)

    def get_stats(self) -> dict:
        """Get budget statistics."""
        return {
            "max_requests_per_tenant_per_hour": self.max_requests_per_hour,
            "buckets": len(self._buckets),
        }
