"""Utility modules for the billing kernel."""

from billing_kernel.utils.idempotency import (
    generate_idempotency_key,
    parse_idempotency_key,
)

__all__ = [
    "generate_idempotency_key",
    "parse_idempotency_key",
]
