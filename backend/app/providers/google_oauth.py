from __future__ import annotations

import requests

from app.providers.base import OAuthToken, Provider, ProviderConfig, ProviderProfile, get_json_object

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

SCOPES = (
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
)


def google_config(*, client_id: str, client_secret: str, redirect_uri: str) -> ProviderConfig:
    return ProviderConfig(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=redirect_uri,
        authorize_url=AUTHORIZE_URL,
        token_url=TOKEN_URL,
        scopes=SCOPES,
        # Offline access plus forced consent, otherwise Google only issues a
        # refresh token on the very first approval.
        authorize_params={"access_type": "offline", "prompt": "consent"},
    )


def fetch_profile(http: requests.Session, token: OAuthToken, *, timeout: float) -> ProviderProfile:
    info = get_json_object(http, Provider.GOOGLE, USERINFO_URL, token, timeout=timeout)
    return ProviderProfile(
        external_id=str(info.get("id") or ""),
        email=info.get("email") or "",
        verified_email=bool(info.get("verified_email")),
        display_name=info.get("name") or "",
        avatar_url=info.get("picture") or "",
    )
