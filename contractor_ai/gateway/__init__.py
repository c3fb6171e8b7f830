"""AI Request Gateway.

Server-side facade mediating every call from the contractor app to the
upstream LLM provider:
  - Bounded Task Queue (caps concurrent upstream calls, FIFO admission)
  - Retry Policy (exponential backoff with jitter)
  - Result Cache (TTL + capacity, insertion-order eviction)
  - In-flight Deduplicator (one computation per fingerprint)
  - Tenant Budget Tracker (hourly request ceiling per tenant)
  - Response Normalizer (scope validation, price option ranking)
"""
