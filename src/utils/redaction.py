"""Secret redaction for logs and persisted error strings.

Platform configs carry access tokens and app secrets, and adapter error
bodies sometimes echo them back. Everything logged by the adapter layer
goes through ``redact_secrets``; every adapter error written to an order
or cart item goes through ``sanitize_error_message``.
"""

import re
from typing import Any

REDACTED = "***REDACTED***"

# Lowercased, underscores removed before matching, so "accessToken",
# "access_token" and "ACCESS-TOKEN" all hit "accesstoken"/"token".
_SENSITIVE_FRAGMENTS = (
    "secret",
    "token",
    "password",
    "apikey",
    "authorization",
    "credential",
    "codeverifier",
    "hmac",
    "signature",
)

_WHOLE_VALUE_KEYS = frozenset({"headers", "credentials"})


def _normalize_key(key: str) -> str:
    return re.sub(r"[_\-\s]", "", key.lower())


def is_sensitive_key(key: str) -> bool:
    """Return True when a mapping key names a secret."""
    normalized = _normalize_key(key)
    return normalized in _WHOLE_VALUE_KEYS or any(
        fragment in normalized for fragment in _SENSITIVE_FRAGMENTS
    )


def redact_secrets(value: Any) -> Any:
    """Return a copy of value with secret-looking entries replaced.

    Walks nested dicts and lists; non-container values are returned as-is.
    """
    if isinstance(value, dict):
        return {
            key: REDACTED if is_sensitive_key(str(key)) else redact_secrets(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_secrets(item) for item in value]
    return value


_INLINE_SECRET = re.compile(
    r"(?i)"
    r"(?:bearer\s+[\w\-.~+/=]+"
    r"|\"?(?:access_?token|app_?secret|client_?secret|api_?key|password)\"?"
    r"\s*[:=]\s*\"?[^\s\",}]+\"?)"
)


def sanitize_error_message(message: str | None, max_length: int = 1000) -> str:
    """Scrub inline secrets from a free-text error and cap its length."""
    if not message:
        return ""
    cleaned = _INLINE_SECRET.sub(REDACTED, message)
    if len(cleaned) > max_length:
        cleaned = cleaned[: max_length - 3] + "..."
    return cleaned
