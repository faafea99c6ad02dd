"""Form-login identity provider adapter over HTTP."""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import urlencode

from credential_cache.application.ports.identity_provider_port import (
    IdentityProviderPort,
    UpstreamProfile,
)
from credential_cache.domain.auth.errors import UnauthorizedError, UpstreamUnavailableError
from credential_cache.domain.auth.identity import RequestContext
from credential_cache.infrastructure.upstream.http_transport import (
    UpstreamHttpTransportPort,
    UrllibUpstreamHttpTransport,
)

_REJECTED_STATUS_CODES = frozenset({401, 403})
logger = logging.getLogger(__name__)


class HttpIdentityProvider(IdentityProviderPort):
    """Validate credentials by form-posting them to a provider login URL.

    The provider answers 2xx with a JSON object carrying `name` and
    `schoolnum`, and 401/403 when it rejects the credentials. Session cookies
    set by the provider land in the request context's cookie jar.
    """

    def __init__(
        self,
        *,
        provider_name: str,
        login_url: str,
        transport: UpstreamHttpTransportPort | None = None,
        timeout_seconds: float = 20.0,
    ) -> None:
        login_url_value = login_url.strip()
        if not login_url_value:
            raise ValueError("login_url must be a non-empty string")
        self._provider_name = provider_name
        self._login_url = login_url_value
        self._transport = transport or UrllibUpstreamHttpTransport()
        self._timeout_seconds = timeout_seconds

    @property
    def provider_name(self) -> str:
        return self._provider_name

    async def authenticate(
        self,
        *,
        context: RequestContext,
        username: str,
        password: str,
    ) -> UpstreamProfile:
        body = urlencode({"username": username, "password": password}).encode("utf-8")
        try:
            response = await self._transport.request(
                method="POST",
                url=self._login_url,
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Accept": "application/json",
                },
                body=body,
                timeout_seconds=self._timeout_seconds,
                cookie_jar=context.cookie_jar,
            )
        except UpstreamUnavailableError:
            raise
        except Exception as error:  # noqa: BLE001
            raise UpstreamUnavailableError(
                f"{self._provider_name} transport failure"
            ) from error

        if response.status_code in _REJECTED_STATUS_CODES:
            logger.info(
                "upstream_credentials_rejected provider=%s status=%s",
                self._provider_name,
                response.status_code,
            )
            raise UnauthorizedError(f"{self._provider_name} rejected credentials")
        if response.status_code < 200 or response.status_code >= 300:
            raise UpstreamUnavailableError(
                f"{self._provider_name} failed with status {response.status_code}"
            )
        return _parse_profile(
            body_bytes=response.body_bytes,
            provider_name=self._provider_name,
        )


def _parse_profile(*, body_bytes: bytes, provider_name: str) -> UpstreamProfile:
    if not body_bytes.strip():
        return UpstreamProfile()
    try:
        decoded: Any = json.loads(body_bytes.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as error:
        raise UpstreamUnavailableError(
            f"{provider_name} returned invalid JSON payload"
        ) from error
    if not isinstance(decoded, dict):
        raise UpstreamUnavailableError(f"{provider_name} returned non-object JSON payload")

    name = decoded.get("name")
    schoolnum = decoded.get("schoolnum")
    return UpstreamProfile(
        name=name if isinstance(name, str) else "",
        schoolnum=schoolnum if isinstance(schoolnum, str) else "",
    )
