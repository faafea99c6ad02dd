import pytest
from pydantic import ValidationError

from apps.auth_api.main import build_identity_providers
from credential_cache.config.settings import Settings
from credential_cache.infrastructure.upstream.http_identity_provider import HttpIdentityProvider
from credential_cache.infrastructure.upstream.static_identity_provider import (
    StaticIdentityProvider,
)

REQUIRED_ENV = {
    "DATABASE_URL": "sqlite+aiosqlite:///./credential_cache.db",
    "CREDENTIAL_KDF_SALT": "deployment-salt",
}

OPTIONAL_ENV = (
    "CREDENTIAL_KDF_ITERATIONS",
    "AUTH_PROVIDER_MODE",
    "STATIC_ACCOUNTS_FILE",
    "PRIMARY_PROVIDER_URL",
    "GRADUATE_PROVIDER_URL",
    "UPSTREAM_TIMEOUT_SECONDS",
    "GRADUATE_CARDNUM_PATTERN",
    "ADMIN_CARDNUMS",
    "LOG_LEVEL",
)


def _set_required_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key, value in REQUIRED_ENV.items():
        monkeypatch.setenv(key, value)
    for key in OPTIONAL_ENV:
        monkeypatch.delenv(key, raising=False)


@pytest.mark.parametrize("missing", sorted(REQUIRED_ENV))
def test_required_env_var_missing_raises_validation_error(
    monkeypatch: pytest.MonkeyPatch,
    missing: str,
) -> None:
    _set_required_env(monkeypatch)
    monkeypatch.delenv(missing, raising=False)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_defaults_are_deterministic(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_required_env(monkeypatch)

    settings = Settings(_env_file=None)

    assert settings.credential_kdf_iterations == 100_000
    assert settings.auth_provider_mode == "static"
    assert settings.static_accounts_file is None
    assert settings.primary_provider_url is None
    assert settings.graduate_provider_url is None
    assert settings.upstream_timeout_seconds == 20.0
    assert settings.graduate_cardnum_pattern == r"^22\d*(\d{6})$"
    assert settings.admin_cardnum_set == frozenset()
    assert settings.log_level == "INFO"


def test_admin_cardnums_are_parsed_as_comma_separated_set(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _set_required_env(monkeypatch)
    monkeypatch.setenv("ADMIN_CARDNUMS", " 213170000, ,213179999 ")

    settings = Settings(_env_file=None)

    assert settings.admin_cardnum_set == frozenset({"213170000", "213179999"})


@pytest.mark.parametrize("pattern", [r"^22\d+$", r"^22(\d)(\d{5})$", r"^22(\d{6}$"])
def test_invalid_graduate_pattern_is_rejected(
    monkeypatch: pytest.MonkeyPatch,
    pattern: str,
) -> None:
    _set_required_env(monkeypatch)
    monkeypatch.setenv("GRADUATE_CARDNUM_PATTERN", pattern)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_http_mode_requires_both_provider_urls(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_required_env(monkeypatch)
    monkeypatch.setenv("AUTH_PROVIDER_MODE", "http")
    monkeypatch.setenv("PRIMARY_PROVIDER_URL", "https://ids.example.org/login")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_http_mode_builds_http_providers(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_required_env(monkeypatch)
    monkeypatch.setenv("AUTH_PROVIDER_MODE", "http")
    monkeypatch.setenv("PRIMARY_PROVIDER_URL", "https://ids.example.org/login")
    monkeypatch.setenv("GRADUATE_PROVIDER_URL", "https://grad.example.org/login")

    primary, graduate = build_identity_providers(Settings(_env_file=None))

    assert isinstance(primary, HttpIdentityProvider)
    assert isinstance(graduate, HttpIdentityProvider)
    assert primary.provider_name == "primary"
    assert graduate.provider_name == "graduate"


def test_static_mode_without_accounts_file_builds_empty_providers(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _set_required_env(monkeypatch)

    primary, graduate = build_identity_providers(Settings(_env_file=None))

    assert isinstance(primary, StaticIdentityProvider)
    assert isinstance(graduate, StaticIdentityProvider)
