from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from starlette.responses import Response

from app.core.cookies import SESSION_COOKIE_NAME, CookieOptions, SignedCookieStore
from app.core.sessions import SessionData
from app.core.settings import Settings
from app.crypto.fernet import TokenCipher
from app.providers.gateway import OAuthGateway

logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def is_https(request: Request, settings: Settings) -> bool:
    if request.url.scheme == "https":
        return True
    if settings.trust_forwarded_proto:
        # Proxies may append; the first hop is the client-facing scheme.
        forwarded = request.headers.get("x-forwarded-proto", "")
        return forwarded.split(",")[0].strip().lower() == "https"
    return False


def cookie_options(request: Request, settings: Settings) -> CookieOptions:
    secure = is_https(request, settings)
    return CookieOptions(
        max_age=settings.session_ttl_seconds,
        secure=secure,
        samesite="none" if secure else "lax",
    )


def get_cookie_store(request: Request) -> SignedCookieStore:
    return request.app.state.cookie_store


def get_gateway(request: Request) -> OAuthGateway:
    return request.app.state.gateway


def get_cipher(request: Request) -> TokenCipher:
    return request.app.state.cipher


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    session: SessionData


def optional_session(
    request: Request,
    store: SignedCookieStore = Depends(get_cookie_store),
) -> AuthContext | None:
    sess = SessionData.from_values(store.load(request, SESSION_COOKIE_NAME))
    if sess is None or sess.is_expired():
        return None
    return AuthContext(user_id=sess.user_id, session=sess)


def require_session(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    store: SignedCookieStore = Depends(get_cookie_store),
) -> AuthContext:
    """Downstream routers scope their queries by ``AuthContext.user_id``."""

    sess = SessionData.from_values(store.load(request, SESSION_COOKIE_NAME))
    if sess is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    if sess.is_expired():
        logger.info(f"Session expired for user {sess.user_id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired",
            headers={"set-cookie": _clear_cookie_header(store, cookie_options(request, settings))},
        )
    return AuthContext(user_id=sess.user_id, session=sess)


def _clear_cookie_header(store: SignedCookieStore, options: CookieOptions) -> str:
    scratch = Response()
    store.delete(scratch, options, SESSION_COOKIE_NAME)
    return scratch.headers["set-cookie"]
