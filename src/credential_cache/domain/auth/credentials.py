"""Credential value objects and normalization helpers for login inputs."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from credential_cache.domain.auth.errors import InvalidParameterError, MissingParameterError

DEFAULT_GRADUATE_CARDNUM_PATTERN = r"^22\d*(\d{6})$"


@dataclass(frozen=True)
class UpstreamCredentials:
    """Credentials replayed against upstream identity providers."""

    cardnum: str
    password: str = field(repr=False)
    secondary_password: str = field(repr=False)


@dataclass(frozen=True)
class LoginInput:
    """Normalized login request parameters."""

    cardnum: str
    password: str = field(repr=False)
    secondary_password: str = field(repr=False)
    platform: str

    @property
    def credentials(self) -> UpstreamCredentials:
        return UpstreamCredentials(
            cardnum=self.cardnum,
            password=self.password,
            secondary_password=self.secondary_password,
        )


def normalize_login_input(
    *,
    cardnum: str | None,
    password: str | None,
    secondary_password: str | None,
    platform: str | None,
) -> LoginInput:
    """Validate mandatory login parameters and apply the secondary-password default."""

    normalized_platform = (platform or "").strip()
    if not normalized_platform:
        raise MissingParameterError(parameter="platform")
    normalized_cardnum = (cardnum or "").strip()
    if not normalized_cardnum:
        raise MissingParameterError(parameter="cardnum")
    if not password:
        raise MissingParameterError(parameter="password")

    # Blank secondary passwords fall back as well as missing ones.
    login_input = LoginInput(
        cardnum=normalized_cardnum,
        password=password,
        secondary_password=secondary_password or password,
        platform=normalized_platform,
    )
    for parameter in ("platform", "cardnum", "password", "secondary_password"):
        _require_utf8(getattr(login_input, parameter), parameter=parameter)
    return login_input


def _require_utf8(value: str, *, parameter: str) -> None:
    # Lone surrogates survive JSON decoding but cannot key the cipher or bcrypt.
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise InvalidParameterError(parameter=parameter) from exc


class GraduateCardnumPattern:
    """Recognize graduate cardnums and extract the embedded sub-identity."""

    def __init__(self, pattern: str = DEFAULT_GRADUATE_CARDNUM_PATTERN) -> None:
        compiled = re.compile(pattern)
        if compiled.groups != 1:
            raise ValueError("graduate cardnum pattern must define exactly one capture group")
        self._pattern = compiled

    def matches(self, cardnum: str) -> bool:
        return self._pattern.fullmatch(cardnum) is not None

    def sub_identity(self, cardnum: str) -> str | None:
        """Return the embedded graduate identity, or None for non-graduate cardnums."""

        match = self._pattern.fullmatch(cardnum)
        if match is None:
            return None
        return match.group(1)
