"""Session token header parsing and per-request identity resolution."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi import Request

from credential_cache.application.services.credential_cache_service import (
    CredentialCacheService,
)
from credential_cache.domain.auth.identity import Identity, RequestContext

TOKEN_HEADER = "token"


def extract_session_token(
    *,
    token_header: str | None,
    authorization_header: str | None,
) -> str | None:
    """Return the raw session token from `token` or `Authorization: Bearer` headers.

    Missing or malformed headers yield None; callers treat that like an
    unrecognized token.
    """

    if token_header is not None and token_header.strip():
        return token_header.strip()

    if authorization_header is None or not authorization_header.strip():
        return None
    parts = authorization_header.strip().split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


class IdentityGate:
    """Resolve each request's session token into an identity context."""

    def __init__(self, *, cache_service: CredentialCacheService) -> None:
        self._cache_service = cache_service

    async def resolve(
        self,
        *,
        context: RequestContext,
        token_header: str | None,
        authorization_header: str | None,
    ) -> Identity:
        token = extract_session_token(
            token_header=token_header,
            authorization_header=authorization_header,
        )
        return await self._cache_service.resolve(context, token=token)


def build_request_context_dependency(
    gate: IdentityGate,
) -> Callable[[Request], Awaitable[RequestContext]]:
    """Build a FastAPI dependency yielding the resolved request context."""

    async def resolve_request_context(request: Request) -> RequestContext:
        context = RequestContext()
        await gate.resolve(
            context=context,
            token_header=request.headers.get(TOKEN_HEADER),
            authorization_header=request.headers.get("authorization"),
        )
        request.state.auth_context = context
        return context

    return resolve_request_context
