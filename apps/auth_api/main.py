"""auth-api entrypoint and HTTP route wiring."""

from __future__ import annotations

import logging

import uvicorn
from fastapi import FastAPI

from credential_cache.application.ports.auth_record_repository_port import (
    AuthRecordRepositoryPort,
)
from credential_cache.application.ports.identity_provider_port import IdentityProviderPort
from credential_cache.application.ports.password_hasher_port import PasswordHasherPort
from credential_cache.application.services.access_guard_service import AccessGuardService
from credential_cache.application.services.credential_cache_service import (
    CredentialCacheService,
)
from credential_cache.application.services.upstream_auth_gateway import UpstreamAuthGateway
from credential_cache.config.settings import Settings, load_settings
from credential_cache.domain.auth.credentials import GraduateCardnumPattern
from credential_cache.infrastructure.db.auth_record_repository import (
    SqlAlchemyAuthRecordRepository,
)
from credential_cache.infrastructure.db.session import create_session_factory
from credential_cache.infrastructure.http.auth_router import build_auth_router
from credential_cache.infrastructure.http.identity_gate import (
    IdentityGate,
    build_request_context_dependency,
)
from credential_cache.infrastructure.logging import configure_logging
from credential_cache.infrastructure.security.credential_cipher import CredentialCipher
from credential_cache.infrastructure.security.password_hasher import BcryptPasswordHasher
from credential_cache.infrastructure.security.token_service import OpaqueTokenService
from credential_cache.infrastructure.upstream.http_identity_provider import HttpIdentityProvider
from credential_cache.infrastructure.upstream.static_identity_provider import (
    StaticIdentityProvider,
    load_static_accounts,
)

AUTH_API_HOST = "0.0.0.0"
AUTH_API_PORT = 8000
logger = logging.getLogger(__name__)


def build_identity_providers(
    settings: Settings,
) -> tuple[IdentityProviderPort, IdentityProviderPort]:
    """Select primary and graduate providers from the configured runtime mode."""

    if settings.auth_provider_mode == "http":
        assert settings.primary_provider_url is not None
        assert settings.graduate_provider_url is not None
        return (
            HttpIdentityProvider(
                provider_name="primary",
                login_url=str(settings.primary_provider_url),
                timeout_seconds=settings.upstream_timeout_seconds,
            ),
            HttpIdentityProvider(
                provider_name="graduate",
                login_url=str(settings.graduate_provider_url),
                timeout_seconds=settings.upstream_timeout_seconds,
            ),
        )

    if settings.static_accounts_file is None:
        logger.warning("static_identity_provider_empty accounts_file=None")
        return StaticIdentityProvider({}), StaticIdentityProvider({})
    primary_accounts, graduate_accounts = load_static_accounts(settings.static_accounts_file)
    return StaticIdentityProvider(primary_accounts), StaticIdentityProvider(graduate_accounts)


def build_cache_service(
    *,
    auth_records: AuthRecordRepositoryPort,
    primary_provider: IdentityProviderPort,
    graduate_provider: IdentityProviderPort,
    cipher: CredentialCipher,
    password_hasher: PasswordHasherPort | None = None,
    token_service: OpaqueTokenService | None = None,
    graduate_pattern: GraduateCardnumPattern | None = None,
) -> CredentialCacheService:
    """Build the credential cache service around one record store and provider pair."""

    gateway = UpstreamAuthGateway(
        primary_provider=primary_provider,
        graduate_provider=graduate_provider,
        auth_records=auth_records,
        graduate_pattern=graduate_pattern,
    )
    return CredentialCacheService(
        auth_records=auth_records,
        gateway=gateway,
        cipher=cipher,
        password_hasher=password_hasher or BcryptPasswordHasher(),
        token_service=token_service or OpaqueTokenService(cipher=cipher),
    )


def create_app(
    *,
    cache_service: CredentialCacheService | None = None,
    access_guard: AccessGuardService | None = None,
) -> FastAPI:
    """Create FastAPI app exposing login and identity-context routes."""

    if cache_service is None or access_guard is None:
        settings = load_settings()
        configure_logging(level=settings.log_level)
        if cache_service is None:
            cipher = CredentialCipher(
                salt=settings.credential_kdf_salt,
                iterations=settings.credential_kdf_iterations,
            )
            primary_provider, graduate_provider = build_identity_providers(settings)
            cache_service = build_cache_service(
                auth_records=SqlAlchemyAuthRecordRepository(
                    create_session_factory(settings.database_url)
                ),
                primary_provider=primary_provider,
                graduate_provider=graduate_provider,
                cipher=cipher,
                graduate_pattern=GraduateCardnumPattern(settings.graduate_cardnum_pattern),
            )
        if access_guard is None:
            access_guard = AccessGuardService(admin_cardnums=settings.admin_cardnum_set)
        logger.info(
            "auth_api_configured provider_mode=%s admin_count=%s",
            settings.auth_provider_mode,
            len(settings.admin_cardnum_set),
        )

    gate = IdentityGate(cache_service=cache_service)
    app = FastAPI()
    app.include_router(
        build_auth_router(
            cache_service=cache_service,
            access_guard=access_guard,
            request_context=build_request_context_dependency(gate),
        )
    )

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


def run_asgi_server(*, host: str = AUTH_API_HOST, port: int = AUTH_API_PORT) -> None:
    """Run auth-api as a long-lived ASGI process using application factory mode."""

    uvicorn.run(
        "apps.auth_api.main:create_app",
        host=host,
        port=port,
        factory=True,
    )


def main() -> None:
    """Run auth-api runtime process."""

    run_asgi_server()


if __name__ == "__main__":
    main()
