import base64
from dataclasses import dataclass, field

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.providers.base import ExchangeError, OAuthToken, Provider, ProviderProfile

SESSION_SECRET = "test-session-secret"
FRONTEND_URL = "http://localhost:5173"


def fernet_key() -> str:
    # urlsafe base64 of 32 bytes
    return base64.urlsafe_b64encode(b"1" * 32).decode("utf-8")


@pytest.fixture
def settings(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+pysqlite:///:memory:")
    monkeypatch.setenv("FERNET_KEY", fernet_key())
    monkeypatch.setenv("SESSION_SECRET", SESSION_SECRET)
    monkeypatch.setenv("FRONTEND_URL", FRONTEND_URL)
    monkeypatch.setenv("AUTO_CREATE_SCHEMA", "false")
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "google-client")
    monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "google-secret")
    monkeypatch.setenv("GOOGLE_OAUTH_REDIRECT_URI", "http://localhost:8080/auth/google/callback")
    monkeypatch.setenv("GITHUB_CLIENT_ID", "github-client")
    monkeypatch.setenv("GITHUB_CLIENT_SECRET", "github-secret")
    monkeypatch.setenv("GITHUB_OAUTH_REDIRECT_URI", "http://localhost:8080/auth/github/callback")

    from app.core.settings import get_settings

    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def session_factory():
    from app import models  # noqa: F401
    from app.db.base import Base

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def cipher():
    from app.crypto.fernet import TokenCipher

    return TokenCipher(fernet_key())


@dataclass
class FakeGateway:
    """Stands in for the provider gateway; records every provider call."""

    profiles: dict = field(default_factory=dict)
    tokens: dict = field(default_factory=dict)
    failing_codes: set = field(default_factory=set)
    calls: list = field(default_factory=list)

    def is_configured(self, provider: Provider) -> bool:
        return True

    def authorization_url(self, provider: Provider, state: str) -> str:
        return f"https://auth.example.com/{provider.value}/authorize?state={state}"

    def exchange(self, provider: Provider, code: str) -> OAuthToken:
        self.calls.append(("exchange", provider, code))
        if code in self.failing_codes:
            raise ExchangeError(provider, "bad_verification_code", status_code=400)
        return self.tokens.get(provider) or OAuthToken(access_token=f"{provider.value}-access")

    def fetch_profile(self, provider: Provider, token: OAuthToken) -> ProviderProfile:
        self.calls.append(("fetch_profile", provider, token.access_token))
        return self.profiles[provider]


@pytest.fixture
def gateway():
    return FakeGateway(
        profiles={
            Provider.GOOGLE: ProviderProfile(
                external_id="google-123",
                email="a@x.com",
                verified_email=True,
                display_name="Alice",
                avatar_url="https://img.example.com/alice.png",
            ),
            Provider.GITHUB: ProviderProfile(
                external_id="4242",
                email="a@x.com",
                verified_email=True,
                display_name="alice-gh",
                avatar_url="https://avatars.example.com/4242",
            ),
        }
    )


@pytest.fixture
def app(settings, session_factory, gateway):
    from app.api.deps import get_gateway
    from app.db.session import get_db
    from app.main import create_app

    application = create_app(settings)

    def override_get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_gateway] = lambda: gateway
    return application


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    return TestClient(app)
