from __future__ import annotations

from dataclasses import dataclass
from http.cookiejar import CookieJar
from urllib.parse import parse_qs

import pytest

from credential_cache.application.ports.identity_provider_port import UpstreamProfile
from credential_cache.domain.auth.errors import UnauthorizedError, UpstreamUnavailableError
from credential_cache.domain.auth.identity import RequestContext
from credential_cache.infrastructure.upstream.http_identity_provider import HttpIdentityProvider
from credential_cache.infrastructure.upstream.http_transport import UpstreamHttpResponse


@dataclass
class _QueuedTransport:
    responses: list[UpstreamHttpResponse]
    error: Exception | None = None

    def __post_init__(self) -> None:
        self.calls: list[dict[str, object]] = []

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
        cookie_jar: CookieJar,
    ) -> UpstreamHttpResponse:
        self.calls.append(
            {
                "method": method,
                "url": url,
                "headers": headers,
                "body": body,
                "timeout_seconds": timeout_seconds,
                "cookie_jar": cookie_jar,
            }
        )
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)


def _provider(transport: _QueuedTransport) -> HttpIdentityProvider:
    return HttpIdentityProvider(
        provider_name="primary",
        login_url="https://ids.example.org/login",
        transport=transport,
        timeout_seconds=5.0,
    )


async def _authenticate(transport: _QueuedTransport) -> UpstreamProfile:
    return await _provider(transport).authenticate(
        context=RequestContext(),
        username="u",
        password="p",
    )


@pytest.mark.asyncio
async def test_authenticate_posts_form_credentials_and_returns_profile() -> None:
    transport = _QueuedTransport(
        responses=[
            UpstreamHttpResponse(
                status_code=200,
                body_bytes=b'{"name":"Alice","schoolnum":"71117100"}',
            )
        ]
    )
    context = RequestContext()

    profile = await _provider(transport).authenticate(
        context=context,
        username="213170000",
        password="p&1",
    )

    assert profile == UpstreamProfile(name="Alice", schoolnum="71117100")
    call = transport.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://ids.example.org/login"
    assert call["timeout_seconds"] == 5.0
    assert call["cookie_jar"] is context.cookie_jar
    form = parse_qs((call["body"] or b"").decode("utf-8"))  # type: ignore[union-attr]
    assert form == {"username": ["213170000"], "password": ["p&1"]}


@pytest.mark.asyncio
async def test_empty_success_body_yields_empty_profile() -> None:
    transport = _QueuedTransport(responses=[UpstreamHttpResponse(status_code=204, body_bytes=b"")])

    profile = await _provider(transport).authenticate(
        context=RequestContext(),
        username="u",
        password="p",
    )

    assert profile == UpstreamProfile()


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [401, 403])
async def test_rejection_status_raises_unauthorized(status_code: int) -> None:
    transport = _QueuedTransport(
        responses=[UpstreamHttpResponse(status_code=status_code, body_bytes=b"denied")]
    )

    with pytest.raises(UnauthorizedError):
        await _authenticate(transport)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        UpstreamHttpResponse(status_code=500, body_bytes=b"boom"),
        UpstreamHttpResponse(status_code=200, body_bytes=b"<html>"),
        UpstreamHttpResponse(status_code=200, body_bytes=b"[1, 2]"),
    ],
)
async def test_unexpected_responses_raise_unavailable(response: UpstreamHttpResponse) -> None:
    transport = _QueuedTransport(responses=[response])

    with pytest.raises(UpstreamUnavailableError):
        await _authenticate(transport)


@pytest.mark.asyncio
async def test_transport_failure_maps_to_unavailable() -> None:
    transport = _QueuedTransport(responses=[], error=OSError("connection reset"))

    with pytest.raises(UpstreamUnavailableError):
        await _authenticate(transport)


def test_blank_login_url_is_rejected() -> None:
    with pytest.raises(ValueError):
        HttpIdentityProvider(provider_name="primary", login_url="  ")
