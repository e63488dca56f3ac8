"""HMAC-SHA256 webhook signature helpers.

Shopify sends ``base64(hmac_sha256(secret, raw_body))``; OpenFront sends
the hex digest, optionally prefixed with ``sha256=``. Comparison is always
constant-time.
"""

import base64
import hashlib
import hmac
from typing import Literal

SignatureEncoding = Literal["base64", "hex"]


def compute_signature(secret: str, raw_body: bytes, encoding: SignatureEncoding = "base64") -> str:
    """Return the expected signature for a raw webhook body."""
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    if encoding == "hex":
        return digest.hex()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(
    secret: str,
    raw_body: bytes,
    signature: str,
    encoding: SignatureEncoding = "base64",
) -> bool:
    """Check a received signature against the body.

    Args:
        secret: Shared webhook secret configured for the platform.
        raw_body: Exact bytes received (before any JSON parsing).
        signature: Header value sent by the platform.
        encoding: 'base64' or 'hex'.

    Returns:
        True if the signature matches.
    """
    received = signature.strip()
    if encoding == "hex":
        if received.lower().startswith("sha256="):
            received = received[len("sha256="):]
        received = received.lower()
    expected = compute_signature(secret, raw_body, encoding)
    return hmac.compare_digest(expected.encode("ascii"), received.encode("ascii", "replace"))
