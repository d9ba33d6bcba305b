"""Utility functions for SSH tunnel manager."""

from pathlib import Path

# Port range constants
MIN_PORT = 1
MAX_PORT = 65535


def validate_non_empty_string(value: str, field_name: str) -> str:
    """Validate that a string is not empty or only whitespace.

    Args:
        value: String value to validate
        field_name: Name of the field for error messages

    Returns:
        Stripped string value

    Raises:
        ValueError: If string is empty or only whitespace
    """
    if not value or not value.strip():
        raise ValueError(f"{field_name} is required")
    return value.strip()


def read_passphrase(path: str) -> str:
    """Read a key passphrase from a file.

    Trailing newlines are stripped so files written by ``echo`` work as-is.

    Raises:
        OSError: If the file cannot be read
    """
    return Path(path).read_text().rstrip("\n")
