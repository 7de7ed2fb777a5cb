from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, EmailStr
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps import (
    AuthContext,
    cookie_options,
    get_app_settings,
    get_cipher,
    get_cookie_store,
    get_gateway,
    require_session,
)
from app.core.cookies import SESSION_COOKIE_NAME, SessionEncodeError, SignedCookieStore
from app.core.security import new_state_token, states_match
from app.core.sessions import OAUTH_STATE_KEY, SessionData
from app.core.settings import Settings
from app.crypto.fernet import TokenCipher
from app.db.session import get_db
from app.providers.base import Provider, ProviderError
from app.providers.gateway import OAuthGateway
from app.repos.accounts import list_accounts
from app.repos.users import get_user_by_id
from app.services.linking import LinkingError, UnverifiedEmailError, create_session, link_identity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class MeResponse(BaseModel):
    id: str
    email: EmailStr
    name: str
    picture: str


class LinkedAccountOut(BaseModel):
    provider: str
    provider_account_id: str
    linked_at: datetime
    has_pat: bool


def _redirect(settings: Settings, *, error: str | None = None) -> RedirectResponse:
    url = settings.frontend_url
    if error:
        url = f"{url}?{urlencode({'error': error})}"
    return RedirectResponse(url=url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)


def _abort(
    request: Request,
    settings: Settings,
    store: SignedCookieStore,
    values: dict[str, Any],
    error: str,
) -> RedirectResponse:
    # The pending state is already removed from `values`; persist that so it cannot be replayed.
    resp = _redirect(settings, error=error)
    options = cookie_options(request, settings)
    if not values:
        store.delete(resp, options, SESSION_COOKIE_NAME)
        return resp
    try:
        store.save(resp, values, options, SESSION_COOKIE_NAME)
    except SessionEncodeError:
        store.delete(resp, options, SESSION_COOKIE_NAME)
    return resp


@router.get("/{provider}/login")
def login(
    provider: Provider,
    request: Request,
    settings: Settings = Depends(get_app_settings),
    store: SignedCookieStore = Depends(get_cookie_store),
    gateway: OAuthGateway = Depends(get_gateway),
):
    if not gateway.is_configured(provider):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{provider.value} OAuth is not configured")

    logger.info(f"Starting {provider.value} OAuth login")
    state = new_state_token()
    values = store.load(request, SESSION_COOKIE_NAME)
    values[OAUTH_STATE_KEY] = state

    resp = RedirectResponse(url=gateway.authorization_url(provider, state), status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    try:
        store.save(resp, values, cookie_options(request, settings), SESSION_COOKIE_NAME)
    except SessionEncodeError as e:
        logger.error(f"Failed to store OAuth state: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal Server Error") from e
    return resp


@router.get("/{provider}/callback")
def callback(
    provider: Provider,
    request: Request,
    state: str | None = None,
    code: str | None = None,
    error: str | None = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    store: SignedCookieStore = Depends(get_cookie_store),
    gateway: OAuthGateway = Depends(get_gateway),
    cipher: TokenCipher = Depends(get_cipher),
):
    logger.info(f"Handling {provider.value} OAuth callback")
    values = store.load(request, SESSION_COOKIE_NAME)
    pending = values.pop(OAUTH_STATE_KEY, None)

    if not states_match(pending if isinstance(pending, str) else None, state):
        logger.warning(f"OAuth state missing or mismatched for {provider.value}")
        return _abort(request, settings, store, values, "invalid_state")

    if not code:
        if error:
            logger.info(f"{provider.value} authorization was not granted: {error[:64]}")
        else:
            logger.warning(f"{provider.value} callback carried no authorization code")
        return _abort(request, settings, store, values, "no_code")

    try:
        token = gateway.exchange(provider, code)
        profile = gateway.fetch_profile(provider, token)
        user = link_identity(db, provider=provider, profile=profile, token=token, cipher=cipher)
    except ProviderError:
        return _abort(request, settings, store, values, "auth_failed")
    except UnverifiedEmailError as e:
        logger.warning(f"Rejected login: {e}")
        return _abort(request, settings, store, values, "auth_failed")
    except LinkingError as e:
        logger.error(f"Identity linking failed: {e}")
        return _abort(request, settings, store, values, "auth_failed")
    except SQLAlchemyError:
        db.rollback()
        logger.error(f"Persistence error during {provider.value} login", exc_info=True)
        return _abort(request, settings, store, values, "auth_failed")

    sess = create_session(user, timedelta(seconds=settings.session_ttl_seconds))
    resp = _redirect(settings)
    try:
        # Replaces the whole cookie, which also drops the pending state.
        store.save(resp, sess.to_values(), cookie_options(request, settings), SESSION_COOKIE_NAME)
    except SessionEncodeError as e:
        logger.error(f"Failed to save session for user {user.id}: {e}")
        return _abort(request, settings, store, values, "session_failed")

    logger.info(f"User {user.id} logged in via {provider.value}")
    return resp


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    settings: Settings = Depends(get_app_settings),
    store: SignedCookieStore = Depends(get_cookie_store),
) -> dict:
    store.delete(response, cookie_options(request, settings), SESSION_COOKIE_NAME)
    return {"message": "logged out successfully"}


@router.get("/me", response_model=MeResponse)
def me(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    store: SignedCookieStore = Depends(get_cookie_store),
):
    sess = SessionData.from_values(store.load(request, SESSION_COOKIE_NAME))
    if sess is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    if sess.is_expired():
        logger.info(f"Session expired for user {sess.user_id}")
        resp = JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"detail": "Unauthorized"})
        store.delete(resp, cookie_options(request, settings), SESSION_COOKIE_NAME)
        return resp

    try:
        user_id = uuid.UUID(sess.user_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized") from None

    user = get_user_by_id(db, user_id)
    if user is None:
        # A live session always refers to an existing user.
        logger.error(f"Session user {sess.user_id} not found")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal Server Error")

    return MeResponse(id=str(user.id), email=user.email, name=user.name, picture=user.picture)


@router.get("/accounts", response_model=list[LinkedAccountOut])
def accounts(db: Session = Depends(get_db), auth: AuthContext = Depends(require_session)) -> list[LinkedAccountOut]:
    try:
        user_id = uuid.UUID(auth.user_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized") from None

    return [
        LinkedAccountOut(
            provider=a.provider,
            provider_account_id=a.provider_account_id,
            linked_at=a.created_at,
            has_pat=a.encrypted_pat is not None,
        )
        for a in list_accounts(db, user_id=user_id)
    ]
