"""Async HTTP transport for upstream identity providers."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from http.cookiejar import CookieJar
from typing import Protocol
from urllib.error import HTTPError, URLError
from urllib.request import HTTPCookieProcessor, Request, build_opener

from credential_cache.domain.auth.errors import UpstreamUnavailableError


@dataclass(frozen=True)
class UpstreamHttpResponse:
    """Normalized HTTP response data returned by transport implementations."""

    status_code: int
    body_bytes: bytes


class UpstreamHttpTransportPort(Protocol):
    """Transport protocol used by upstream identity provider adapters."""

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
        """Execute one HTTP request, recording response cookies in cookie_jar."""


class UrllibUpstreamHttpTransport:
    """urllib-based async transport that shares the request's cookie jar."""

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
        """Execute HTTP request in a worker thread and normalize HTTP errors."""

        return await asyncio.to_thread(
            self._request_sync,
            method=method,
            url=url,
            headers=headers,
            body=body,
            timeout_seconds=timeout_seconds,
            cookie_jar=cookie_jar,
        )

    def _request_sync(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
        cookie_jar: CookieJar,
    ) -> UpstreamHttpResponse:
        opener = build_opener(HTTPCookieProcessor(cookie_jar))
        request = Request(url=url, data=body, headers=headers, method=method)
        try:
            with opener.open(request, timeout=timeout_seconds) as response:
                return UpstreamHttpResponse(
                    status_code=int(response.getcode()),
                    body_bytes=response.read(),
                )
        except HTTPError as error:
            return UpstreamHttpResponse(status_code=int(error.code), body_bytes=error.read())
        except (URLError, TimeoutError) as error:
            raise UpstreamUnavailableError(f"transport connection failure: {error}") from error
