"""
billing_batch -- Bulk month regeneration.

Recalculates a month across many panels in fixed-size batches with bounded
concurrency, collects per-panel failures, retries them once, and
recomputes the month summary once at the end.

Architecture:
    billing_batch/ is a top-level package.  Nothing in billing_kernel/ or
    billing_services/ imports from billing_batch.
"""
