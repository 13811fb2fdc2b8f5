"""Prefixed ID generation utility."""

import uuid


def generate_id(prefix: str, length: int = 16) -> str:
    """Generate a prefixed unique ID.

    Args:
        prefix: The prefix (e.g., "notif_", "usr_", "alloc_").
        length: Number of hex characters taken from a random UUID.

    Returns:
        A string like "notif_a1b2c3d4e5f6a7b8".
    """
    short_uuid = uuid.uuid4().hex[:length]
    return f"{prefix}{short_uuid}"
