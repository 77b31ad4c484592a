from __future__ import annotations

import hashlib
import hmac

SIGNATURE_PREFIX = "sha256="


def sign_body(secret: str, body: bytes) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Check an ``x-webhook-signature`` header; the ``sha256=`` prefix is optional."""
    if not signature:
        return False
    cleaned = signature.strip().removeprefix(SIGNATURE_PREFIX)
    expected = sign_body(secret, body).removeprefix(SIGNATURE_PREFIX)
    return hmac.compare_digest(expected, cleaned)


def constant_time_equals(left: str | None, right: str | None) -> bool:
    if not left or not right:
        return False
    return hmac.compare_digest(left.encode("utf-8"), right.encode("utf-8"))
