from __future__ import annotations


class DomainError(Exception):
    """Base class for errors that map onto an HTTP status in the API layer."""

    status_code: int = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFoundError(DomainError):
    status_code = 404


class InvalidTransitionError(DomainError):
    status_code = 409

    def __init__(self, detail: str = "Invalid state transition") -> None:
        super().__init__(detail)


class PermissionDenied(DomainError):
    status_code = 403


class ReplayLimitExceeded(DomainError):
    status_code = 429


class IdempotencyConflict(DomainError):
    status_code = 422

    def __init__(self, detail: str = "Idempotency-Key was reused with a different request body") -> None:
        super().__init__(detail)


class ValidationFailed(DomainError):
    status_code = 400


class AuthenticationFailed(DomainError):
    status_code = 401

    def __init__(self, detail: str = "Invalid email or password") -> None:
        super().__init__(detail)
