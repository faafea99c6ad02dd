"""Pydantic models for login and identity endpoint contracts."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    """Login parameters merged from query string and JSON body.

    Every field is optional here; mandatory-parameter checks happen in the
    service so a missing `platform` surfaces as a parameter error, not a
    schema error.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    cardnum: str | None = None
    password: str | None = Field(default=None, repr=False)
    secondary_password: str | None = Field(
        default=None,
        repr=False,
        validation_alias=AliasChoices("gpassword", "secondaryPassword", "secondary_password"),
    )
    platform: str | None = None


class IdentityProfileResponse(BaseModel):
    """Profile of the authenticated caller; never includes secrets."""

    model_config = ConfigDict(extra="forbid")

    token: str
    identity: str
    cardnum: str
    name: str
    schoolnum: str
    platform: str
    is_admin: bool


class ReauthenticateResponse(BaseModel):
    """Result of replaying cached credentials against upstream providers."""

    model_config = ConfigDict(extra="forbid")

    ok: bool
    name: str
    schoolnum: str


class LogoutResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    removed: int
