# ABOUTME: Closed error taxonomy shared by services and the web layer.
# ABOUTME: ServiceError carries an ErrorKind discriminant mapped to HTTP status codes.

from enum import StrEnum
from http import HTTPStatus


class ErrorKind(StrEnum):
    """Kinds of failure a service operation can report."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INVALID_OR_EXPIRED_TOKEN = "invalid_or_expired_token"
    UNAUTHORIZED = "unauthorized"
    INTERNAL = "internal"
    CANCELLED = "cancelled"


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: HTTPStatus.BAD_REQUEST,
    ErrorKind.NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorKind.CONFLICT: HTTPStatus.CONFLICT,
    ErrorKind.INVALID_OR_EXPIRED_TOKEN: HTTPStatus.BAD_REQUEST,
    ErrorKind.UNAUTHORIZED: HTTPStatus.UNAUTHORIZED,
    ErrorKind.INTERNAL: HTTPStatus.INTERNAL_SERVER_ERROR,
    ErrorKind.CANCELLED: HTTPStatus.SERVICE_UNAVAILABLE,
}

INTERNAL_MESSAGE = "An internal error occurred. Please try again later."


class ServiceError(Exception):
    """A typed business or infrastructure failure.

    Compare on ``kind`` (and ``reason`` where a kind has several causes),
    never on the exception instance.

    Attributes:
        kind: Error category, decides the HTTP status.
        reason: Stable machine-readable cause, e.g. ``already_confirmed``.
        message: Human-readable text safe to return to the caller.
    """

    def __init__(self, kind: ErrorKind, message: str, reason: str | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.reason = reason or kind.value

    @property
    def status_code(self) -> int:
        return int(STATUS_BY_KIND[self.kind])

    def __repr__(self) -> str:
        return f"<ServiceError {self.kind.value}/{self.reason}: {self.message}>"

    # Factories for the causes the services raise

    @classmethod
    def validation(cls, message: str) -> "ServiceError":
        return cls(ErrorKind.VALIDATION, message)

    @classmethod
    def newsletter_not_found(cls) -> "ServiceError":
        return cls(ErrorKind.NOT_FOUND, "Newsletter not found.", "newsletter_not_found")

    @classmethod
    def subscription_not_found(cls) -> "ServiceError":
        return cls(
            ErrorKind.NOT_FOUND,
            "Subscription not found for the given email and newsletter.",
            "subscription_not_found",
        )

    @classmethod
    def already_subscribed(cls) -> "ServiceError":
        return cls(
            ErrorKind.CONFLICT,
            "Email is already subscribed to this newsletter.",
            "already_subscribed",
        )

    @classmethod
    def already_confirmed(cls) -> "ServiceError":
        return cls(ErrorKind.CONFLICT, "Subscription is already confirmed.", "already_confirmed")

    @classmethod
    def invalid_or_expired_token(cls) -> "ServiceError":
        return cls(ErrorKind.INVALID_OR_EXPIRED_TOKEN, "Invalid or expired token.")

    @classmethod
    def unauthorized(cls, message: str = "Unauthorized") -> "ServiceError":
        return cls(ErrorKind.UNAUTHORIZED, message)

    @classmethod
    def internal(cls) -> "ServiceError":
        return cls(ErrorKind.INTERNAL, INTERNAL_MESSAGE)

    @classmethod
    def cancelled(cls, operation: str) -> "ServiceError":
        return cls(ErrorKind.CANCELLED, f"The {operation} operation did not complete in time.")


class DuplicateSubscriberError(Exception):
    """Raised by the subscriber store when (email, newsletter) already exists."""
