"""Helpers for making provider payloads safe to log."""

import copy
import re
from typing import Any

REDACTED = "[REDACTED]"

SENSITIVE_KEYS = {"api_key", "apikey", "authorization", "token", "secret", "password"}

_SECRET_PATTERN = re.compile(r"\bsk-[A-Za-z0-9_\-]{8,}")
_BEARER_PATTERN = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._\-]+")
_BASE64_PATTERN = re.compile(r"^[A-Za-z0-9+/=_\-]+$")

# Base64 payloads are shortened to this many characters in logs
MAX_LOGGED_PAYLOAD = 64


def _is_sensitive_key(key: Any) -> bool:
    return isinstance(key, str) and key.lower().replace("-", "_") in SENSITIVE_KEYS


def _scrub_string(value: str) -> str:
    value = _SECRET_PATTERN.sub(REDACTED, value)
    value = _BEARER_PATTERN.sub(f"Bearer {REDACTED}", value)
    if value.startswith("data:") or (
        len(value) > 4 * MAX_LOGGED_PAYLOAD and _BASE64_PATTERN.match(value)
    ):
        return f"{value[:MAX_LOGGED_PAYLOAD]}...<{len(value)} chars>"
    return value


def _scrub(data: Any) -> Any:
    if isinstance(data, dict):
        for key in list(data.keys()):
            if _is_sensitive_key(key):
                data[key] = REDACTED
            else:
                data[key] = _scrub(data[key])
    elif isinstance(data, list):
        for i in range(len(data)):
            data[i] = _scrub(data[i])
    elif isinstance(data, tuple):
        return tuple(_scrub(list(data)))
    elif isinstance(data, str):
        return _scrub_string(data)
    elif isinstance(data, bytes):
        return f"<{len(data)} bytes>"
    return data


def redact_payload(payload: Any) -> Any:
    """Return a copy of ``payload`` with credentials masked and image data shortened.

    The input is never modified; the copy is meant for logging only.
    """
    return _scrub(copy.deepcopy(payload))
