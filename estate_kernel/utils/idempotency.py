"""
Idempotency key utilities.

A posting is identified by the economic event that caused it. The pair
(source_type, source_id) is stored on every posting under a unique
constraint, so replaying the same event can never double-book.
"""

from uuid import UUID

REVERSAL_SUFFIX = ".reversal"


def posting_key(source_type: str, source_id: UUID | str) -> str:
    """
    Build the idempotency key for a posting.

    Format: source_type:source_id

    Example:
        >>> posting_key("payment.received", "pay-17")
        "payment.received:pay-17"
    """
    if not source_type or ":" in source_type:
        raise ValueError(f"Invalid source type: {source_type!r}")
    return f"{source_type}:{source_id}"


def parse_posting_key(key: str) -> tuple[str, str]:
    """
    Parse a posting idempotency key into (source_type, source_id).

    Raises:
        ValueError: If key format is invalid.
    """
    parts = key.split(":", 1)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValueError(f"Invalid posting key format: {key}")
    return parts[0], parts[1]


def reversal_source_type(source_type: str) -> str:
    """Source type used for the posting that reverses ``source_type``."""
    return f"{source_type}{REVERSAL_SUFFIX}"
