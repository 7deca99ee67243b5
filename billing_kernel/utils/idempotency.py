"""
Idempotency key generation utilities.

Idempotency keys ensure that replaying the same event authoring request
(an import row, a retried admin action) records the event only once.
"""

from uuid import UUID


def generate_idempotency_key(
    panel_id: UUID | str,
    action: str,
    effective_date_local: str,
    discriminator: str | None = None,
) -> str:
    """
    Generate an idempotency key for a panel event.

    Format: panel_id:action:effective_date_local[:discriminator]

    The key is stored on the PanelEvent and has a unique constraint.  Callers
    that may legitimately record two events of the same kind on the same day
    (two interventions, say) pass a discriminator.

    Example:
        >>> generate_idempotency_key(uuid, "REMOVAL", "2025-03-09")
        "550e8400-e29b-41d4-a716-446655440000:REMOVAL:2025-03-09"
    """
    key = f"{panel_id}:{action}:{effective_date_local}"
    if discriminator:
        key = f"{key}:{discriminator}"
    return key


def parse_idempotency_key(key: str) -> tuple[str, str, str]:
    """
    Parse an idempotency key into ``(panel_id, action, effective_date_local)``.

    Any discriminator suffix is dropped.

    Raises:
        ValueError: If key format is invalid.
    """
    parts = key.split(":")
    if len(parts) not in (3, 4):
        raise ValueError(f"Invalid idempotency key format: {key}")
    return parts[0], parts[1], parts[2]
