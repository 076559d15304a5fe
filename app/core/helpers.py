"""
Helper functions for common infrastructure operations.

These utilities are pure infrastructure; they have no knowledge of
purchases, gateways or any other domain concept.

Usage:
    from core.helpers import generate_token

    token = generate_token(16)
"""

from __future__ import annotations

import secrets


def generate_token(length: int = 32) -> str:
    """
    Generate a cryptographically secure random token.

    Args:
        length: Number of bytes (resulting string is 2x length in hex)

    Returns:
        Hexadecimal token string

    Example:
        token = generate_token(32)  # Returns 64-character hex string
    """
    return secrets.token_hex(length)
