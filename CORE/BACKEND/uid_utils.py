"""
UID generation for stored records.

All generated IDs share one format:
    PREFIX_xxxxxxxxxxxx (12 hex characters)

Examples:
    - PATH_a1b2c3d4e5f6
"""
import secrets


def generate_uid(prefix: str) -> str:
    """
    Generate a unique ID with consistent format.

    Args:
        prefix: Record type prefix (e.g., 'PATH')

    Returns:
        UID in format PREFIX_xxxxxxxxxxxx (12 hex characters)
    """
    return f"{prefix}_{secrets.token_hex(6)}"


class UIDPrefix:
    """Standard prefixes for stored records."""
    PATH = "PATH"


def path_uid() -> str:
    """Generate PATH_xxxxxxxxxxxx"""
    return generate_uid(UIDPrefix.PATH)
