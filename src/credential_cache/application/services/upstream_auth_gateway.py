"""Upstream authentication gateway over primary and graduate identity providers."""

from __future__ import annotations

import logging

from credential_cache.application.ports.auth_record_repository_port import (
    AuthRecordFilter,
    AuthRecordRepositoryPort,
)
from credential_cache.application.ports.identity_provider_port import (
    IdentityProviderPort,
    UpstreamProfile,
)
from credential_cache.domain.auth.credentials import GraduateCardnumPattern, UpstreamCredentials
from credential_cache.domain.auth.errors import UnauthorizedError
from credential_cache.domain.auth.identity import RequestContext

logger = logging.getLogger(__name__)


class UpstreamAuthGateway:
    """Authenticate credentials upstream and drop stale cached records on rejection."""

    def __init__(
        self,
        *,
        primary_provider: IdentityProviderPort,
        graduate_provider: IdentityProviderPort,
        auth_records: AuthRecordRepositoryPort,
        graduate_pattern: GraduateCardnumPattern | None = None,
    ) -> None:
        self._primary_provider = primary_provider
        self._graduate_provider = graduate_provider
        self._auth_records = auth_records
        self._graduate_pattern = graduate_pattern or GraduateCardnumPattern()

    @property
    def graduate_pattern(self) -> GraduateCardnumPattern:
        return self._graduate_pattern

    async def authenticate(
        self,
        context: RequestContext,
        credentials: UpstreamCredentials,
    ) -> UpstreamProfile:
        """Validate credentials upstream and return profile fields.

        Graduate cardnums are checked against the graduate provider first, then
        the primary provider. When either rejects the credentials while the
        context holds an authenticated identity, that identity's cached record
        is removed before `UnauthorizedError` propagates.
        """

        try:
            sub_identity = self._graduate_pattern.sub_identity(credentials.cardnum)
            if sub_identity is not None:
                await self._graduate_provider.authenticate(
                    context=context,
                    username=sub_identity,
                    password=credentials.secondary_password,
                )
            return await self._primary_provider.authenticate(
                context=context,
                username=credentials.cardnum,
                password=credentials.password,
            )
        except UnauthorizedError:
            logger.info("upstream_auth_rejected cardnum=%s", credentials.cardnum)
            await self._remove_refreshing_identity(context)
            raise

    async def _remove_refreshing_identity(self, context: RequestContext) -> None:
        identity = context.identity
        if not identity.is_login:
            return

        # Best-effort: a leftover record is re-validated on its next refresh.
        try:
            removed = await self._auth_records.remove(AuthRecordFilter(token_hash=identity.token))
        except Exception:  # noqa: BLE001
            logger.exception(
                "upstream_auth_stale_record_removal_failed cardnum=%s platform=%s",
                identity.cardnum,
                identity.platform,
            )
            return
        logger.info(
            "upstream_auth_stale_record_removed cardnum=%s platform=%s removed=%s",
            identity.cardnum,
            identity.platform,
            removed,
        )
