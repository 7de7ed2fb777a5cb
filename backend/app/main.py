from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app import models  # noqa: F401  (registers tables on Base.metadata)
from app.api.router import router as api_router
from app.core.cookies import SignedCookieStore
from app.core.settings import Settings, get_settings, parse_allowed_hosts, parse_allowed_origins
from app.crypto.fernet import TokenCipher
from app.db.base import Base
from app.db.session import build_engine, build_sessionmaker
from app.providers.gateway import OAuthGateway

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    if settings is None:
        settings = get_settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Task Controller",
        version="0.1.0",
        docs_url="/docs" if settings.app_env == "dev" else None,
        redoc_url="/redoc" if settings.app_env == "dev" else None,
        openapi_url="/openapi.json" if settings.app_env == "dev" else None,
    )

    # Everything request handlers need is built once here and read back via Depends.
    engine = build_engine(settings.database_url)
    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = build_sessionmaker(engine)
    app.state.cookie_store = SignedCookieStore(settings.session_secret)
    app.state.cipher = TokenCipher(settings.fernet_key)
    app.state.gateway = OAuthGateway.from_settings(settings)

    app.add_middleware(TrustedHostMiddleware, allowed_hosts=parse_allowed_hosts(settings))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=parse_allowed_origins(settings),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        resp: Response = await call_next(request)
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("Referrer-Policy", "no-referrer")
        resp.headers.setdefault("X-Frame-Options", "DENY")
        return resp

    @app.on_event("startup")
    async def _create_schema() -> None:
        if settings.auto_create_schema:
            Base.metadata.create_all(bind=engine)
            logger.info("Database schema ensured")

    app.include_router(api_router)
    return app


app = create_app()
