from __future__ import annotations


class PortalError(Exception):
    """Base class for failures contained to a single dashboard interaction."""


class MissingCredentialError(PortalError):
    def __init__(self, message: str = "You need to log in first!") -> None:
        super().__init__(message)


class ApiError(PortalError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
