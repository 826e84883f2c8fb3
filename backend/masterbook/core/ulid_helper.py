"""ULID identifiers for every table and for lock tokens."""

import ulid


def generate_ulid() -> str:
    return str(ulid.ULID())


def is_valid_ulid(value: str) -> bool:
    """True when ``value`` parses as a 26-character ULID."""
    try:
        ulid.ULID.from_str(value)
    except (ValueError, TypeError):
        return False
    return True
