"""Runtime settings loaded from environment variables."""

import re
from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, HttpUrl, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from credential_cache.domain.auth.credentials import DEFAULT_GRADUATE_CARDNUM_PATTERN

NonEmptyStr = Annotated[str, Field(min_length=1)]
NonNegativeFloat = Annotated[float, Field(ge=0.0)]
PositiveInt = Annotated[int, Field(gt=0)]


class Settings(BaseSettings):
    """Environment-driven application settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: NonEmptyStr = Field(validation_alias="DATABASE_URL")
    credential_kdf_salt: NonEmptyStr = Field(validation_alias="CREDENTIAL_KDF_SALT")
    credential_kdf_iterations: PositiveInt = Field(
        default=100_000,
        validation_alias="CREDENTIAL_KDF_ITERATIONS",
    )
    auth_provider_mode: Literal["static", "http"] = Field(
        default="static",
        validation_alias="AUTH_PROVIDER_MODE",
    )
    static_accounts_file: NonEmptyStr | None = Field(
        default=None,
        validation_alias="STATIC_ACCOUNTS_FILE",
    )
    primary_provider_url: HttpUrl | None = Field(
        default=None,
        validation_alias="PRIMARY_PROVIDER_URL",
    )
    graduate_provider_url: HttpUrl | None = Field(
        default=None,
        validation_alias="GRADUATE_PROVIDER_URL",
    )
    upstream_timeout_seconds: NonNegativeFloat = Field(
        default=20.0,
        validation_alias="UPSTREAM_TIMEOUT_SECONDS",
    )
    graduate_cardnum_pattern: NonEmptyStr = Field(
        default=DEFAULT_GRADUATE_CARDNUM_PATTERN,
        validation_alias="GRADUATE_CARDNUM_PATTERN",
    )
    admin_cardnums: str = Field(default="", validation_alias="ADMIN_CARDNUMS")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @field_validator("graduate_cardnum_pattern")
    @classmethod
    def _validate_graduate_pattern(cls, value: str) -> str:
        try:
            compiled = re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid graduate cardnum pattern: {exc}") from exc
        if compiled.groups != 1:
            raise ValueError("graduate cardnum pattern must define exactly one capture group")
        return value

    @model_validator(mode="after")
    def _require_http_provider_urls(self) -> "Settings":
        if self.auth_provider_mode == "http" and (
            self.primary_provider_url is None or self.graduate_provider_url is None
        ):
            raise ValueError(
                "PRIMARY_PROVIDER_URL and GRADUATE_PROVIDER_URL are required "
                "when AUTH_PROVIDER_MODE=http"
            )
        return self

    @property
    def admin_cardnum_set(self) -> frozenset[str]:
        """Return the parsed admin allow-list."""

        return frozenset(
            item.strip() for item in self.admin_cardnums.split(",") if item.strip()
        )


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Load and cache application settings."""

    return Settings()  # type: ignore[call-arg]
