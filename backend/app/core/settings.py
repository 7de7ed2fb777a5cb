from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    frontend_url: str = "http://localhost:5173"
    allowed_origins: str = ""
    allowed_hosts: str = ""
    log_level: str = "INFO"

    database_url: str
    auto_create_schema: bool = True

    # Signs the session cookie. Rotating it logs everyone out.
    session_secret: str
    session_ttl_seconds: int = 60 * 60 * 24 * 7
    trust_forwarded_proto: bool = True

    # Encrypts provider tokens at rest.
    fernet_key: str

    oauth_http_timeout_seconds: float = 15.0

    google_client_id: str = ""
    google_client_secret: str = ""
    google_oauth_redirect_uri: str = "http://localhost:8080/auth/google/callback"

    github_client_id: str = ""
    github_client_secret: str = ""
    github_oauth_redirect_uri: str = "http://localhost:8080/auth/github/callback"


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


def parse_allowed_origins(settings: Settings) -> list[str]:
    if settings.allowed_origins.strip():
        origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
        if "*" in origins:
            # Credentialed CORS cannot be combined with a wildcard origin.
            raise ValueError("ALLOWED_ORIGINS must list explicit origins, not '*'")
        return origins
    return list({settings.frontend_url, "http://localhost:5173", "http://127.0.0.1:5173"})


def parse_allowed_hosts(settings: Settings) -> list[str]:
    if settings.allowed_hosts.strip():
        return [h.strip() for h in settings.allowed_hosts.split(",") if h.strip()]
    # Default for local dev + tests.
    return ["localhost", "127.0.0.1", "testserver"]
