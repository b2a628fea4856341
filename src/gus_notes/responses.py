"""Helpers for reading Salesforce HTTP responses.

The HTTP status code is the success signal. Bodies are decoded leniently: an
empty or malformed JSON body becomes an empty dict so that error handling
never fails on the body itself.
"""

from __future__ import annotations

from typing import Any

import httpx
import msgspec


def decode_json(response: httpx.Response) -> Any:
    """Decode a response body, returning ``{}`` when it is not valid JSON."""
    if not response.content:
        return {}
    try:
        return msgspec.json.decode(response.content)
    except msgspec.DecodeError:
        return {}


def extract_error_message(data: Any, status_code: int) -> str:
    """Pick the most useful error message out of a decoded error body.

    Salesforce returns either an OAuth-style object
    (``{"error": ..., "error_description": ...}``) or a list of
    ``{"message": ..., "errorCode": ...}`` entries. Falls back to the status
    code; never invents a message.
    """
    if isinstance(data, dict):
        for key in ("error_description", "message"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    elif isinstance(data, list) and data and isinstance(data[0], dict):
        value = data[0].get("message")
        if isinstance(value, str) and value:
            return value
    return f"HTTP {status_code}"
