"""FastAPI router for login, logout, and identity inspection endpoints."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from credential_cache.application.dto.auth_models import (
    IdentityProfileResponse,
    LoginRequest,
    LogoutResponse,
    ReauthenticateResponse,
)
from credential_cache.application.services.access_guard_service import AccessGuardService
from credential_cache.application.services.credential_cache_service import (
    CredentialCacheService,
    CredentialEncryptionError,
    CredentialStoreBusyError,
)
from credential_cache.domain.auth.errors import (
    AdminRequiredError,
    InvalidParameterError,
    MissingParameterError,
    UnauthorizedError,
    UpstreamUnavailableError,
)
from credential_cache.domain.auth.identity import AuthenticatedIdentity, RequestContext
from credential_cache.infrastructure.http.identity_gate import (
    TOKEN_HEADER,
    extract_session_token,
)

logger = logging.getLogger(__name__)


def build_auth_router(
    *,
    cache_service: CredentialCacheService,
    access_guard: AccessGuardService,
    request_context: Callable[[Request], Awaitable[RequestContext]],
) -> APIRouter:
    """Build router exposing the login endpoint and identity-consuming routes."""

    router = APIRouter(tags=["auth"])

    @router.post("/auth", response_class=PlainTextResponse)
    async def login(request: Request) -> PlainTextResponse:
        params = await _read_login_params(request)
        try:
            login_request = LoginRequest.model_validate(params)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail="invalid login parameters") from exc

        context = RequestContext()
        presented_token = extract_session_token(
            token_header=request.headers.get(TOKEN_HEADER),
            authorization_header=request.headers.get("authorization"),
        )
        try:
            token = await cache_service.login(
                context,
                cardnum=login_request.cardnum,
                password=login_request.password,
                secondary_password=login_request.secondary_password,
                platform=login_request.platform,
                presented_token=presented_token,
            )
        except (MissingParameterError, InvalidParameterError) as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except (UnauthorizedError, UpstreamUnavailableError) as exc:
            _raise_http_for_auth_error(exc)
        except (CredentialEncryptionError, CredentialStoreBusyError) as exc:
            _raise_http_for_store_error(exc)

        request.state.auth_context = context
        return PlainTextResponse(token)

    @router.delete("/auth/session", response_model=LogoutResponse)
    async def logout(context: RequestContext = Depends(request_context)) -> LogoutResponse:
        try:
            removed = await cache_service.logout(context)
        except UnauthorizedError as exc:
            _raise_http_for_auth_error(exc)
        return LogoutResponse(removed=removed)

    @router.get("/auth/me", response_model=IdentityProfileResponse)
    async def current_identity(
        context: RequestContext = Depends(request_context),
    ) -> IdentityProfileResponse:
        identity = _require_login(context)
        return IdentityProfileResponse(
            token=identity.token,
            identity=identity.identity,
            cardnum=identity.cardnum,
            name=identity.name,
            schoolnum=identity.schoolnum,
            platform=identity.platform,
            is_admin=access_guard.is_admin(identity),
        )

    @router.post("/auth/reauthenticate", response_model=ReauthenticateResponse)
    async def reauthenticate(
        context: RequestContext = Depends(request_context),
    ) -> ReauthenticateResponse:
        _require_login(context)
        try:
            profile = await cache_service.reauthenticate(context)
        except (UnauthorizedError, UpstreamUnavailableError) as exc:
            _raise_http_for_auth_error(exc)
        return ReauthenticateResponse(ok=True, name=profile.name, schoolnum=profile.schoolnum)

    @router.delete("/auth/admin/sessions/{cardnum}", response_model=LogoutResponse)
    async def revoke_sessions(
        cardnum: str,
        context: RequestContext = Depends(request_context),
    ) -> LogoutResponse:
        try:
            admin = access_guard.require_admin(context.identity)
        except AdminRequiredError as exc:
            raise HTTPException(status_code=403, detail="admin access required") from exc
        except UnauthorizedError as exc:
            _raise_http_for_auth_error(exc)
        removed = await cache_service.revoke_cardnum(cardnum)
        logger.info("admin_sessions_revoked admin=%s cardnum=%s", admin.cardnum, cardnum)
        return LogoutResponse(removed=removed)

    return router


async def _read_login_params(request: Request) -> dict[str, Any]:
    """Merge query-string parameters with a JSON object body, body taking precedence."""

    params: dict[str, Any] = dict(request.query_params)
    raw_body = await request.body()
    if not raw_body.strip():
        return params
    try:
        decoded = json.loads(raw_body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise HTTPException(status_code=400, detail="invalid request body") from exc
    if not isinstance(decoded, dict):
        raise HTTPException(status_code=400, detail="invalid request body")
    params.update(decoded)
    return params


def _require_login(context: RequestContext) -> AuthenticatedIdentity:
    try:
        return context.identity.require_login()
    except UnauthorizedError as exc:
        _raise_http_for_auth_error(exc)


def _raise_http_for_auth_error(exc: Exception) -> NoReturn:
    """Map authentication failures into HTTP response semantics."""

    if isinstance(exc, UpstreamUnavailableError):
        logger.warning("auth_upstream_unavailable error=%s", exc)
        raise HTTPException(status_code=503, detail="identity provider unavailable") from exc
    raise HTTPException(status_code=401, detail="unauthorized") from exc


def _raise_http_for_store_error(exc: Exception) -> NoReturn:
    """Map failures to persist a login into HTTP response semantics."""

    if isinstance(exc, CredentialStoreBusyError):
        logger.warning("auth_login_store_busy error=%s", exc)
        raise HTTPException(status_code=503, detail="credential store busy") from exc
    logger.error("auth_login_encryption_failed error=%s", exc)
    raise HTTPException(status_code=500, detail="credential encryption failed") from exc
