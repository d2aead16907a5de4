"""In-memory request guards: idempotency cache and rate limiting."""
