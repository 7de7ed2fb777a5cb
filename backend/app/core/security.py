from __future__ import annotations

import base64
import hashlib
import hmac
import secrets


def b64url_encode(data: bytes) -> str:
    # Unpadded, so the value is cookie-safe as-is.
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode("ascii"))


def sign(secret: bytes, data: str) -> str:
    mac = hmac.new(secret, data.encode("utf-8"), hashlib.sha256)
    return b64url_encode(mac.digest())


def verify(secret: bytes, data: str, signature: str) -> bool:
    return hmac.compare_digest(sign(secret, data).encode("ascii"), signature.encode("utf-8"))


def new_state_token() -> str:
    return secrets.token_urlsafe(32)


def states_match(expected: str | None, received: str | None) -> bool:
    if not expected or not received:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))
