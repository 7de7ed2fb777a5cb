from __future__ import annotations

import logging

import requests

from app.providers.base import (
    OAuthToken,
    Provider,
    ProviderConfig,
    ProviderError,
    ProviderProfile,
    get_json,
    get_json_object,
)

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
TOKEN_URL = "https://github.com/login/oauth/access_token"
USER_URL = "https://api.github.com/user"
EMAILS_URL = "https://api.github.com/user/emails"

SCOPES = ("user:email", "read:user")

_API_HEADERS = {
    "Accept": "application/vnd.github+json",
    "X-GitHub-Api-Version": "2022-11-28",
}


def github_config(*, client_id: str, client_secret: str, redirect_uri: str) -> ProviderConfig:
    return ProviderConfig(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=redirect_uri,
        authorize_url=AUTHORIZE_URL,
        token_url=TOKEN_URL,
        scopes=SCOPES,
    )


def fetch_profile(http: requests.Session, token: OAuthToken, *, timeout: float) -> ProviderProfile:
    user = get_json_object(http, Provider.GITHUB, USER_URL, token, timeout=timeout, headers=_API_HEADERS)

    # GitHub only lets users publish an address they have verified.
    email = user.get("email") or ""
    verified = bool(email)
    if not email:
        email, verified = _verified_email(http, token, timeout=timeout)

    login = user.get("login") or ""
    return ProviderProfile(
        external_id=str(user.get("id") or ""),
        email=email,
        verified_email=verified,
        display_name=user.get("name") or login,
        avatar_url=user.get("avatar_url") or "",
    )


def _verified_email(http: requests.Session, token: OAuthToken, *, timeout: float) -> tuple[str, bool]:
    emails = get_json(http, Provider.GITHUB, EMAILS_URL, token, timeout=timeout, headers=_API_HEADERS)
    if not isinstance(emails, list) or not all(isinstance(e, dict) for e in emails):
        raise ProviderError(Provider.GITHUB, f"GET {EMAILS_URL} returned an unexpected shape")

    for e in emails:
        if e.get("primary") and e.get("verified") and e.get("email"):
            return e["email"], True
    for e in emails:
        if e.get("verified") and e.get("email"):
            return e["email"], True

    logger.warning("GitHub account has no verified email address")
    return "", False
