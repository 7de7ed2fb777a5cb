from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

import requests

from app.core.time import utcnow


class Provider(str, Enum):
    GOOGLE = "google"
    GITHUB = "github"


class ProviderError(RuntimeError):
    def __init__(self, provider: Provider, message: str, *, status_code: int | None = None):
        super().__init__(f"{provider.value}: {message}")
        self.provider = provider
        self.status_code = status_code


class ExchangeError(ProviderError):
    pass


@dataclass(frozen=True)
class ProviderConfig:
    client_id: str
    client_secret: str
    redirect_uri: str
    authorize_url: str
    token_url: str
    scopes: tuple[str, ...]
    authorize_params: dict[str, str] = field(default_factory=dict)

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)


@dataclass(frozen=True)
class OAuthToken:
    access_token: str
    token_type: str = "Bearer"
    refresh_token: str | None = None
    expires_at: datetime | None = None
    scope: str = ""


@dataclass(frozen=True)
class ProviderProfile:
    external_id: str
    email: str
    verified_email: bool
    display_name: str
    avatar_url: str


def exchange_code(
    http: requests.Session,
    provider: Provider,
    config: ProviderConfig,
    code: str,
    *,
    timeout: float,
) -> OAuthToken:
    try:
        resp = http.post(
            config.token_url,
            headers={"Accept": "application/json"},
            data={
                "client_id": config.client_id,
                "client_secret": config.client_secret,
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": config.redirect_uri,
            },
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise ExchangeError(provider, f"token endpoint unreachable: {e.__class__.__name__}") from e

    if not resp.ok:
        raise ExchangeError(provider, "token exchange rejected", status_code=resp.status_code)

    data = _json_body(resp, provider, ExchangeError)
    # GitHub answers 200 with an "error" field for expired or reused codes.
    if not isinstance(data, dict) or not isinstance(data.get("access_token"), str) or not data["access_token"]:
        reason = data.get("error") if isinstance(data, dict) else None
        raise ExchangeError(provider, f"token exchange failed: {reason or 'no access_token'}", status_code=resp.status_code)
    if not isinstance(data.get("refresh_token") or "", str):
        raise ExchangeError(provider, "token response has a malformed refresh_token", status_code=resp.status_code)

    expires_at = None
    if data.get("expires_in"):
        try:
            expires_in = int(data["expires_in"])
        except (TypeError, ValueError) as e:
            raise ExchangeError(provider, "token response has a non-numeric expires_in", status_code=resp.status_code) from e
        expires_at = utcnow() + timedelta(seconds=expires_in)
    return OAuthToken(
        access_token=data["access_token"],
        token_type=data.get("token_type") or "Bearer",
        refresh_token=data.get("refresh_token") or None,
        expires_at=expires_at,
        scope=data.get("scope") or "",
    )


def get_json(
    http: requests.Session,
    provider: Provider,
    url: str,
    token: OAuthToken,
    *,
    timeout: float,
    headers: dict[str, str] | None = None,
) -> Any:
    h = {"Authorization": f"Bearer {token.access_token}", "Accept": "application/json"}
    if headers:
        h.update(headers)
    try:
        resp = http.get(url, headers=h, timeout=timeout)
    except requests.RequestException as e:
        raise ProviderError(provider, f"GET {url} failed: {e.__class__.__name__}") from e
    if not resp.ok:
        raise ProviderError(provider, f"GET {url} returned {resp.status_code}", status_code=resp.status_code)
    return _json_body(resp, provider, ProviderError)


def get_json_object(
    http: requests.Session,
    provider: Provider,
    url: str,
    token: OAuthToken,
    *,
    timeout: float,
    headers: dict[str, str] | None = None,
) -> dict[str, Any]:
    data = get_json(http, provider, url, token, timeout=timeout, headers=headers)
    if not isinstance(data, dict):
        raise ProviderError(provider, f"GET {url} returned {type(data).__name__}, expected an object")
    return data


def _json_body(resp: requests.Response, provider: Provider, exc: type[ProviderError]) -> Any:
    try:
        return resp.json()
    except ValueError as e:
        raise exc(provider, "provider returned a non-JSON body", status_code=resp.status_code) from e
