"""
Utility helpers for the conversational form engine

Simple utility functions for IDs and timestamps.
"""

import uuid
from datetime import datetime, timezone


def generate_conversation_id(short=True):
    """
    Generate unique conversation identifier

    Args:
        short (bool): If True, return 8-char hex. If False, return full UUID.

    Returns:
        str: Conversation ID

    Examples:
        >>> generate_conversation_id()
        'a3f7e2b9'

        >>> generate_conversation_id(short=False)
        'a3f7e2b9c1d2e3f4a5b6c7d8e9f0a1b2'
    """
    full_id = uuid.uuid4().hex
    return full_id[:8] if short else full_id


def utc_now():
    """Current time as an aware UTC datetime"""
    return datetime.now(timezone.utc)


def utc_now_iso():
    """
    Current time as an ISO-8601 UTC string

    Returns:
        str: e.g. '2026-01-20T13:45:10.123456+00:00'
    """
    return utc_now().isoformat()


def parse_iso(timestamp):
    """
    Parse an ISO-8601 timestamp written by utc_now_iso()

    Naive timestamps are read as UTC.

    Args:
        timestamp (str): ISO-8601 string

    Returns:
        datetime: Aware datetime
    """
    parsed = datetime.fromisoformat(timestamp)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
