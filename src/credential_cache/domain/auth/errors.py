"""Authentication error taxonomy shared by services and HTTP adapters."""

from __future__ import annotations


class UnauthorizedError(PermissionError):
    """Raised when credentials are rejected or a login-only field is accessed anonymously."""

    def __init__(self, message: str = "unauthorized") -> None:
        super().__init__(message)


class MissingParameterError(ValueError):
    """Raised when a mandatory login parameter is absent or blank."""

    def __init__(self, *, parameter: str) -> None:
        super().__init__(f"missing parameter: {parameter}")
        self.parameter = parameter


class UpstreamUnavailableError(RuntimeError):
    """Raised when an identity provider cannot be reached or answers unexpectedly."""


class AdminRequiredError(PermissionError):
    """Raised when an authenticated caller is not on the admin allow-list."""

    def __init__(self) -> None:
        super().__init__("admin access required")


class InvalidParameterError(ValueError):
    """Raised when a login parameter cannot be represented as UTF-8 text."""

    def __init__(self, *, parameter: str) -> None:
        super().__init__(f"invalid parameter: {parameter}")
        self.parameter = parameter
