"""FastAPI application factory for the identity API."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from marketplace_identity.core.config import Settings, get_settings
from marketplace_identity.core.errors import register_error_handlers
from marketplace_identity.core.gateway import AuthGateway
from marketplace_identity.core.logging_config import configure_logging
from marketplace_identity.core.mailer import Notifier, SmtpNotifier
from marketplace_identity.core.security import Argon2PasswordHasher, PasswordHasher
from marketplace_identity.repositories.base import CredentialStore
from marketplace_identity.repositories.sql_repository import SQLCredentialStore
from marketplace_identity.routers import auth as auth_router
from marketplace_identity.services.auth_service import AuthService
from marketplace_identity.services.otp_service import OtpService
from marketplace_identity.services.registration_service import RegistrationService
from marketplace_identity.services.token_service import TokenService

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Inject baseline security headers on every response."""

    def __init__(self, app, *, enforce_hsts: bool) -> None:
        super().__init__(app)
        self._enforce_hsts = enforce_hsts

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("Cache-Control", "no-store")
        if self._enforce_hsts:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response


def create_app(
    settings: Settings | None = None,
    *,
    store: CredentialStore | None = None,
    notifier: Notifier | None = None,
    hasher: PasswordHasher | None = None,
) -> FastAPI:
    """Build the app; collaborators default to the SQL store, SMTP and argon2."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    store = store or SQLCredentialStore(settings.database_url)
    notifier = notifier or SmtpNotifier(settings)
    hasher = hasher or Argon2PasswordHasher()
    tokens = TokenService(settings)
    otp = OtpService(store, settings)

    app = FastAPI(title=f"{settings.app_name} Identity API")
    app.state.settings = settings
    app.state.registration_service = RegistrationService(
        store=store, otp=otp, tokens=tokens, notifier=notifier, hasher=hasher, settings=settings
    )
    app.state.auth_service = AuthService(
        store=store, tokens=tokens, hasher=hasher, notifier=notifier, settings=settings
    )
    app.state.gateway = AuthGateway(tokens, store, settings)

    allowed_cors = {settings.public_base_url}
    if not settings.is_production:
        allowed_cors.update({"http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"})
    app.add_middleware(
        CORSMiddleware,
        allow_origins=sorted(origin for origin in allowed_cors if origin),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware, enforce_hsts=settings.is_production)
    register_error_handlers(app)
    app.include_router(auth_router.router)

    @app.get("/health")
    def health():
        return {"ok": True}

    logger.info("Identity API configured (env=%s)", settings.app_env)
    return app
