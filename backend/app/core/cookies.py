"""Signed, client-held cookie sessions.

The cookie carries the whole session; nothing is stored server-side. The value
is ``<signature>.<payload>`` where ``payload`` is base64url(JSON) and
``signature`` is base64url(HMAC-SHA256(secret, payload)).

Anything that fails to decode or verify is treated as "no session": callers
get an empty mapping and the request continues anonymously.
"""

from __future__ import annotations

import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any, Literal

from starlette.requests import Request
from starlette.responses import Response

from app.core.security import b64url_decode, b64url_encode, sign, verify

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "auth-session"

# Browsers drop cookies larger than this.
MAX_COOKIE_BYTES = 4096


class SessionEncodeError(RuntimeError):
    pass


@dataclass(frozen=True)
class CookieOptions:
    max_age: int
    path: str = "/"
    httponly: bool = True
    secure: bool = False
    samesite: Literal["lax", "strict", "none"] = "lax"


def encode_values(secret: bytes, values: dict[str, Any]) -> str:
    try:
        raw = json.dumps(values, separators=(",", ":"), sort_keys=True)
    except (TypeError, ValueError) as e:
        raise SessionEncodeError(f"Session values are not serializable: {e}") from e
    payload = b64url_encode(raw.encode("utf-8"))
    return f"{sign(secret, payload)}.{payload}"


def decode_values(secret: bytes, raw: str) -> dict[str, Any] | None:
    parts = raw.split(".")
    if len(parts) != 2:
        return None

    signature, payload = parts
    if not signature or not payload or not verify(secret, payload, signature):
        return None

    try:
        values = json.loads(b64url_decode(payload).decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError):
        return None
    if not isinstance(values, dict):
        return None
    return values


class SignedCookieStore:
    def __init__(self, secret: str | bytes):
        if isinstance(secret, str):
            secret = secret.encode("utf-8")
        if not secret:
            raise ValueError("Session secret must not be empty")
        self._secret = secret

    def load(self, request: Request, name: str = SESSION_COOKIE_NAME) -> dict[str, Any]:
        raw = request.cookies.get(name)
        if not raw:
            return {}
        values = decode_values(self._secret, raw)
        if values is None:
            logger.info(f"Discarding invalid session cookie '{name}'")
            return {}
        return values

    def save(
        self,
        response: Response,
        values: dict[str, Any],
        options: CookieOptions,
        name: str = SESSION_COOKIE_NAME,
    ) -> None:
        encoded = encode_values(self._secret, values)
        if len(name) + len(encoded) + 1 > MAX_COOKIE_BYTES:
            raise SessionEncodeError(f"Session cookie would be {len(encoded)} bytes; limit is {MAX_COOKIE_BYTES}")
        response.set_cookie(
            key=name,
            value=encoded,
            max_age=options.max_age,
            path=options.path,
            httponly=options.httponly,
            secure=options.secure,
            samesite=options.samesite,
        )

    def delete(
        self,
        response: Response,
        options: CookieOptions | None = None,
        name: str = SESSION_COOKIE_NAME,
    ) -> None:
        # Browsers only honor the deletion when the flags match the ones the cookie was set with.
        if options is None:
            options = CookieOptions(max_age=0)
        response.delete_cookie(
            key=name,
            path=options.path,
            httponly=options.httponly,
            secure=options.secure,
            samesite=options.samesite,
        )
