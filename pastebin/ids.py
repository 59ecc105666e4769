"""
Public paste identifiers.
"""
import secrets
import string

ALPHABET = string.ascii_letters + string.digits + "_-"
DEFAULT_LENGTH = 10


def generate_id(length: int = DEFAULT_LENGTH) -> str:
    """Return a random URL-safe identifier of exactly `length` characters."""
    return "".join(secrets.choice(ALPHABET) for _ in range(length))
