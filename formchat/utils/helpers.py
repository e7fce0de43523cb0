"""
Utility helpers for the form chat system

Simple utility functions for ID generation.
"""

import uuid


def generate_session_id(short=False):
    """
    Generate unique chat session identifier

    Args:
        short (bool): If True, return 8-char hex. If False, return full UUID hex.

    Returns:
        str: Session ID

    Examples:
        >>> generate_session_id(short=True)
        'a3f7e2b9'

        >>> generate_session_id()
        'a3f7e2b9c1d2e3f4a5b6c7d8e9f0a1b2'
    """
    full_id = uuid.uuid4().hex
    return full_id[:8] if short else full_id


def is_valid_session_id(value):
    """Check a session cookie value looks like generate_session_id() output"""
    if not value or len(value) not in (8, 32):
        return False
    return all(c in "0123456789abcdef" for c in value)
