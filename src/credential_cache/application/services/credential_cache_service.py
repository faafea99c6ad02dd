"""Session token issuance and credential caching over double-encrypted records.

Each record binds a session token to the user's password in both directions:
`token_encrypted = encrypt(password, token)` and
`password_encrypted = encrypt(token, password)`. Login recovers the token from
the presented password; passthrough requests recover the password from the
presented token. Only digests and ciphertexts are persisted.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from credential_cache.application.ports.auth_record_repository_port import (
    AuthRecord,
    AuthRecordConflictError,
    AuthRecordCreateInput,
    AuthRecordFilter,
    AuthRecordPatch,
    AuthRecordRepositoryPort,
)
from credential_cache.application.ports.credential_cipher_port import (
    CredentialCipherPort,
    SessionTokenPort,
)
from credential_cache.application.ports.identity_provider_port import UpstreamProfile
from credential_cache.application.ports.password_hasher_port import PasswordHasherPort
from credential_cache.application.services.upstream_auth_gateway import UpstreamAuthGateway
from credential_cache.domain.auth.credentials import LoginInput, normalize_login_input
from credential_cache.domain.auth.identity import (
    AnonymousIdentity,
    AuthenticatedIdentity,
    Identity,
    RequestContext,
)

_MAX_REPLACE_ATTEMPTS = 3
logger = logging.getLogger(__name__)


class CredentialEncryptionError(RuntimeError):
    """Raised when secret-derived fields cannot be computed for persistence."""


class CredentialStoreBusyError(RuntimeError):
    """Raised when concurrent logins for one pair keep winning the record replacement."""


@dataclass(frozen=True)
class _SecretFields:
    token_encrypted: str
    password_encrypted: str
    gpassword_encrypted: str
    password_hash: str


class CredentialCacheService:
    """Login, refresh, and per-request token resolution for cached credentials."""

    def __init__(
        self,
        *,
        auth_records: AuthRecordRepositoryPort,
        gateway: UpstreamAuthGateway,
        cipher: CredentialCipherPort,
        password_hasher: PasswordHasherPort,
        token_service: SessionTokenPort,
    ) -> None:
        self._auth_records = auth_records
        self._gateway = gateway
        self._cipher = cipher
        self._password_hasher = password_hasher
        self._tokens = token_service

    async def login(
        self,
        context: RequestContext,
        *,
        cardnum: str | None,
        password: str | None,
        secondary_password: str | None,
        platform: str | None,
        presented_token: str | None = None,
    ) -> str:
        """Return the session token for (cardnum, platform), issuing one if needed.

        `presented_token` is the caller's current session token, if any. It lets
        a client keep its token across an upstream password change, when the
        new password can no longer decrypt the stored token.
        """

        login_input = normalize_login_input(
            cardnum=cardnum,
            password=password,
            secondary_password=secondary_password,
            platform=platform,
        )
        existing = await self._auth_records.find(
            AuthRecordFilter(cardnum=login_input.cardnum, platform=login_input.platform)
        )
        if existing is not None:
            # Key derivation and bcrypt are CPU-bound; keep them off the event loop.
            token = await asyncio.to_thread(
                self._recover_token,
                existing,
                password=login_input.password,
                presented_token=presented_token,
            )
            if token is not None:
                cached_match = await asyncio.to_thread(
                    self._cached_credentials_match,
                    existing,
                    token=token,
                    login_input=login_input,
                )
                if cached_match:
                    logger.info(
                        "auth_login_cache_hit cardnum=%s platform=%s",
                        login_input.cardnum,
                        login_input.platform,
                    )
                    return token
                await self._refresh(context, existing, token=token, login_input=login_input)
                return token

        return await self._issue(context, login_input=login_input, existing=existing)

    async def resolve(self, context: RequestContext, *, token: str | None) -> Identity:
        """Resolve a presented session token into the request identity context.

        Unknown or blank tokens resolve to `AnonymousIdentity` rather than failing.
        """

        identity: Identity = AnonymousIdentity()
        if token:
            token_hash = self._tokens.hash_token(token)
            record = await self._auth_records.find(AuthRecordFilter(token_hash=token_hash))
            if record is not None:
                await self._auth_records.update(
                    AuthRecordFilter(token_hash=token_hash),
                    AuthRecordPatch(last_invoked=self._tokens.now()),
                )
                password, secondary_password = await asyncio.to_thread(
                    self._decrypt_secrets,
                    record,
                    token=token,
                )
                identity = self._build_identity(
                    record,
                    raw_token=token,
                    password=password,
                    secondary_password=secondary_password,
                )

        context.identity = identity
        return identity

    async def reauthenticate(self, context: RequestContext) -> UpstreamProfile:
        """Replay the cached credentials of the context identity against upstream."""

        identity = context.identity.require_login()
        return await self._gateway.authenticate(context, identity.credentials)

    async def logout(self, context: RequestContext) -> int:
        """Remove the record bound to the context identity's session token."""

        identity = context.identity.require_login()
        removed = await self._auth_records.remove(AuthRecordFilter(token_hash=identity.token))
        logger.info(
            "auth_logout cardnum=%s platform=%s removed=%s",
            identity.cardnum,
            identity.platform,
            removed,
        )
        context.identity = AnonymousIdentity()
        return removed

    async def revoke_cardnum(self, cardnum: str) -> int:
        """Remove every cached record of cardnum across platforms."""

        removed = await self._auth_records.remove(AuthRecordFilter(cardnum=cardnum))
        logger.info("auth_sessions_revoked cardnum=%s removed=%s", cardnum, removed)
        return removed

    def _recover_token(
        self,
        record: AuthRecord,
        *,
        password: str,
        presented_token: str | None,
    ) -> str | None:
        decrypted = self._cipher.try_decrypt(password, record.token_encrypted)
        if decrypted.ok and decrypted.plaintext:
            return decrypted.plaintext
        if presented_token and self._tokens.hash_token(presented_token) == record.token_hash:
            return presented_token

        logger.info(
            "auth_login_token_unrecoverable cardnum=%s platform=%s failure=%s",
            record.cardnum,
            record.platform,
            decrypted.failure,
        )
        return None

    def _cached_credentials_match(
        self,
        record: AuthRecord,
        *,
        token: str,
        login_input: LoginInput,
    ) -> bool:
        if not self._password_hasher.verify_password(
            password=login_input.password,
            password_hash=record.password_hash,
        ):
            return False
        if self._is_graduate(login_input.cardnum):
            cached_secondary = self._cipher.decrypt(token, record.gpassword_encrypted)
            return cached_secondary == login_input.secondary_password
        return True

    async def _refresh(
        self,
        context: RequestContext,
        record: AuthRecord,
        *,
        token: str,
        login_input: LoginInput,
    ) -> None:
        """Re-validate changed credentials upstream and rewrap them around the same token."""

        logger.info(
            "auth_login_refresh cardnum=%s platform=%s",
            login_input.cardnum,
            login_input.platform,
        )
        cached_secondary = await asyncio.to_thread(
            self._cipher.decrypt,
            token,
            record.gpassword_encrypted,
        )
        # An upstream rejection while this identity is set removes its record.
        context.identity = self._build_identity(
            record,
            raw_token=token,
            password=login_input.password,
            secondary_password=cached_secondary,
        )
        profile = await self._gateway.authenticate(context, login_input.credentials)

        secret_fields = await asyncio.to_thread(
            self._secret_fields,
            token=token,
            login_input=login_input,
        )
        name = profile.name or record.name
        schoolnum = profile.schoolnum or record.schoolnum
        await self._auth_records.update(
            AuthRecordFilter(cardnum=login_input.cardnum, platform=login_input.platform),
            AuthRecordPatch(
                token_encrypted=secret_fields.token_encrypted,
                password_encrypted=secret_fields.password_encrypted,
                gpassword_encrypted=secret_fields.gpassword_encrypted,
                password_hash=secret_fields.password_hash,
                name=name,
                schoolnum=schoolnum,
            ),
        )
        context.identity = AuthenticatedIdentity(
            token=record.token_hash,
            identity=self._cipher.hash(login_input.cardnum + name),
            cardnum=login_input.cardnum,
            password=login_input.password,
            secondary_password=self._graduate_secondary(login_input),
            name=name,
            schoolnum=schoolnum,
            platform=login_input.platform,
            raw_token=token,
            cipher=self._cipher,
        )

    async def _issue(
        self,
        context: RequestContext,
        *,
        login_input: LoginInput,
        existing: AuthRecord | None,
    ) -> str:
        """Authenticate upstream and persist a record around a freshly minted token."""

        profile = await self._gateway.authenticate(context, login_input.credentials)

        token = self._tokens.issue_token()
        secret_fields = await asyncio.to_thread(
            self._secret_fields,
            token=token,
            login_input=login_input,
        )
        now = self._tokens.now()
        payload = AuthRecordCreateInput(
            cardnum=login_input.cardnum,
            platform=login_input.platform,
            token_hash=self._tokens.hash_token(token),
            token_encrypted=secret_fields.token_encrypted,
            password_encrypted=secret_fields.password_encrypted,
            password_hash=secret_fields.password_hash,
            gpassword_encrypted=secret_fields.gpassword_encrypted,
            name=profile.name,
            schoolnum=profile.schoolnum,
            registered=now,
            last_invoked=now,
        )

        record: AuthRecord | None = None
        if existing is None:
            try:
                record = await self._auth_records.insert(payload)
            except AuthRecordConflictError:
                logger.info(
                    "auth_login_insert_conflict cardnum=%s platform=%s",
                    login_input.cardnum,
                    login_input.platform,
                )
        if record is None:
            record = await self._replace_record(payload)

        logger.info(
            "auth_login_token_issued cardnum=%s platform=%s replaced=%s",
            login_input.cardnum,
            login_input.platform,
            existing is not None,
        )
        context.identity = self._build_identity(
            record,
            raw_token=token,
            password=login_input.password,
            secondary_password=self._graduate_secondary(login_input),
        )
        return token

    async def _replace_record(self, payload: AuthRecordCreateInput) -> AuthRecord:
        """Swap the pair's record for payload atomically; the last writer wins."""

        pair_filter = AuthRecordFilter(cardnum=payload.cardnum, platform=payload.platform)
        for attempt in range(1, _MAX_REPLACE_ATTEMPTS + 1):
            try:
                return await self._auth_records.replace(pair_filter, payload)
            except AuthRecordConflictError:
                logger.info(
                    "auth_login_replace_conflict cardnum=%s platform=%s attempt=%s",
                    payload.cardnum,
                    payload.platform,
                    attempt,
                )
        raise CredentialStoreBusyError(
            f"record replacement kept conflicting for cardnum={payload.cardnum} "
            f"platform={payload.platform}"
        )

    def _decrypt_secrets(self, record: AuthRecord, *, token: str) -> tuple[str, str]:
        password = self._cipher.decrypt(token, record.password_encrypted)
        if not self._is_graduate(record.cardnum):
            return password, ""
        return password, self._cipher.decrypt(token, record.gpassword_encrypted)

    def _secret_fields(self, *, token: str, login_input: LoginInput) -> _SecretFields:
        token_encrypted = self._cipher.encrypt(login_input.password, token)
        password_encrypted = self._cipher.encrypt(token, login_input.password)
        gpassword_encrypted = ""
        if self._is_graduate(login_input.cardnum):
            gpassword_encrypted = self._cipher.encrypt(token, login_input.secondary_password)
            if not gpassword_encrypted:
                raise CredentialEncryptionError("failed to encrypt secondary password")
        if not token_encrypted or not password_encrypted:
            raise CredentialEncryptionError("failed to encrypt session credentials")

        return _SecretFields(
            token_encrypted=token_encrypted,
            password_encrypted=password_encrypted,
            gpassword_encrypted=gpassword_encrypted,
            password_hash=self._password_hasher.hash_password(login_input.password),
        )

    def _build_identity(
        self,
        record: AuthRecord,
        *,
        raw_token: str,
        password: str,
        secondary_password: str,
    ) -> AuthenticatedIdentity:
        return AuthenticatedIdentity(
            token=record.token_hash,
            identity=self._cipher.hash(record.cardnum + record.name),
            cardnum=record.cardnum,
            password=password,
            secondary_password=secondary_password,
            name=record.name,
            schoolnum=record.schoolnum,
            platform=record.platform,
            raw_token=raw_token,
            cipher=self._cipher,
        )

    def _graduate_secondary(self, login_input: LoginInput) -> str:
        if self._is_graduate(login_input.cardnum):
            return login_input.secondary_password
        return ""

    def _is_graduate(self, cardnum: str) -> bool:
        return self._gateway.graduate_pattern.matches(cardnum)
