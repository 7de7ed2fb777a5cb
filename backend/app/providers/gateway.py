"""One interface over the supported OAuth2 providers.

Provider differences live in two lookup tables: the per-provider
``ProviderConfig`` built from settings and the profile fetcher. Supporting a
new provider means adding an entry to each.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode

import requests

from app.core.settings import Settings
from app.providers import github_oauth, google_oauth
from app.providers.base import (
    OAuthToken,
    Provider,
    ProviderConfig,
    ProviderError,
    ProviderProfile,
    exchange_code,
)

logger = logging.getLogger(__name__)

_PROFILE_FETCHERS = {
    Provider.GOOGLE: google_oauth.fetch_profile,
    Provider.GITHUB: github_oauth.fetch_profile,
}


class OAuthGateway:
    def __init__(
        self,
        configs: dict[Provider, ProviderConfig],
        *,
        timeout: float = 15.0,
        http: requests.Session | None = None,
    ):
        self._configs = configs
        self._timeout = timeout
        self._http = http or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings, *, http: requests.Session | None = None) -> OAuthGateway:
        configs = {
            Provider.GOOGLE: google_oauth.google_config(
                client_id=settings.google_client_id,
                client_secret=settings.google_client_secret,
                redirect_uri=settings.google_oauth_redirect_uri,
            ),
            Provider.GITHUB: github_oauth.github_config(
                client_id=settings.github_client_id,
                client_secret=settings.github_client_secret,
                redirect_uri=settings.github_oauth_redirect_uri,
            ),
        }
        return cls(configs, timeout=settings.oauth_http_timeout_seconds, http=http)

    def is_configured(self, provider: Provider) -> bool:
        config = self._configs.get(provider)
        return config is not None and config.configured

    def authorization_url(self, provider: Provider, state: str) -> str:
        config = self._config(provider)
        q = {
            "client_id": config.client_id,
            "redirect_uri": config.redirect_uri,
            "response_type": "code",
            "scope": " ".join(config.scopes),
            "state": state,
        }
        q.update(config.authorize_params)
        return f"{config.authorize_url}?{urlencode(q)}"

    def exchange(self, provider: Provider, code: str) -> OAuthToken:
        try:
            return exchange_code(self._http, provider, self._config(provider), code, timeout=self._timeout)
        except ProviderError as e:
            logger.error(f"Token exchange failed for {provider.value} (status={e.status_code}): {e}")
            raise

    def fetch_profile(self, provider: Provider, token: OAuthToken) -> ProviderProfile:
        fetch = _PROFILE_FETCHERS[provider]
        try:
            return fetch(self._http, token, timeout=self._timeout)
        except ProviderError as e:
            logger.error(f"Profile fetch failed for {provider.value} (status={e.status_code}): {e}")
            raise

    def _config(self, provider: Provider) -> ProviderConfig:
        config = self._configs.get(provider)
        if config is None:
            raise ProviderError(provider, "provider is not supported")
        return config
