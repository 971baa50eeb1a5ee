"""
Failure classification for the card registry.

Every failure a caller can observe is a KnownError subclass carrying a
FailureKind, a user-facing message and an HTTP status. The API renders
them through a single exception handler into an ApiResponse envelope.

Only STORAGE_UNAVAILABLE is retryable. Every other kind describes a request
that must be corrected before it is sent again.
"""

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Input validation failures
    INVALID_INPUT = "invalid_input"

    # Resource failures
    NOT_FOUND = "not_found"

    # Constraint violations
    DUPLICATE_NAME = "duplicate_name"
    CYCLE_DETECTED = "cycle_detected"
    AUTH_CONFLICT = "auth_conflict"

    # Access failures
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    HIDDEN = "hidden"

    # Service failures
    STORAGE_UNAVAILABLE = "storage_unavailable"


class OutcomeType(str, Enum):
    """High-level outcome classification."""

    SUCCESS = "success"
    KNOWN_FAILURE = "known_failure"


T = TypeVar("T")


class FailureDetail(BaseModel):
    """Detailed information about a failure."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    message: str = Field(
        ...,
        description="User-appropriate explanation of what went wrong",
    )
    detail: str | None = Field(
        default=None,
        description="Additional technical detail (optional)",
    )
    retryable: bool = Field(
        default=False,
        description="True when the same request may succeed if sent again",
    )


class ApiResponse(BaseModel, Generic[T]):
    """Response envelope for API failures."""

    outcome: OutcomeType
    data: T | None = None
    failure: FailureDetail | None = None

    @classmethod
    def known_failure(
        cls,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        retryable: bool = False,
    ) -> "ApiResponse[Any]":
        """Create a known failure response."""
        return cls(
            outcome=OutcomeType.KNOWN_FAILURE,
            failure=FailureDetail(
                kind=kind,
                message=message,
                detail=detail,
                retryable=retryable,
            ),
        )


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    retryable = False

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        status_code: int = 400,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.status_code = status_code
        super().__init__(message)

    def to_response(self) -> ApiResponse[Any]:
        """Convert to an ApiResponse."""
        return ApiResponse.known_failure(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            retryable=self.retryable,
        )


class InvalidInputError(KnownError):
    """The request was well-formed but carried unusable values."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(FailureKind.INVALID_INPUT, message, detail=detail, status_code=400)


class NotFoundError(KnownError):
    """A referenced card, user or ownership row does not exist."""

    def __init__(self, resource: str, key: object):
        self.resource = resource
        self.key = key
        super().__init__(
            FailureKind.NOT_FOUND,
            f"The {resource} {key} does not exist.",
            status_code=404,
        )


class DuplicateNameError(KnownError):
    """A card with this name already exists in the guild."""

    def __init__(self, guild_id: int, name: str):
        self.guild_id = guild_id
        self.name = name
        super().__init__(
            FailureKind.DUPLICATE_NAME,
            f"A card named `{name}` already exists in this guild.",
            status_code=409,
        )


class CycleDetectedError(KnownError):
    """Linking the cards would make a card its own ancestor."""

    def __init__(self, card_id: int, previous_id: int):
        self.card_id = card_id
        self.previous_id = previous_id
        super().__init__(
            FailureKind.CYCLE_DETECTED,
            f"Card {previous_id} cannot precede card {card_id}: "
            "the version chain would loop back on itself.",
            status_code=409,
        )


class AuthConflictError(KnownError):
    """A credential is already bound to a different user."""

    def __init__(self, message: str):
        super().__init__(FailureKind.AUTH_CONFLICT, message, status_code=409)


class UnauthenticatedError(KnownError):
    """No credential was supplied, or it matches no user."""

    def __init__(self, message: str = "Valid credentials are required."):
        super().__init__(FailureKind.UNAUTHENTICATED, message, status_code=401)


class ForbiddenError(KnownError):
    """The authenticated user may not access this resource."""

    def __init__(self, message: str = "You do not have access to this resource."):
        super().__init__(FailureKind.FORBIDDEN, message, status_code=403)


class HiddenCardError(KnownError):
    """The card exists, but its details are hidden from this user."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            FailureKind.HIDDEN,
            f"The card `{name}` is hidden.",
            status_code=403,
        )


class StorageUnavailableError(KnownError):
    """The database could not be reached or timed out. Safe to retry."""

    retryable = True

    def __init__(self, detail: str | None = None):
        super().__init__(
            FailureKind.STORAGE_UNAVAILABLE,
            "Storage is temporarily unavailable. Please retry.",
            detail=detail,
            status_code=503,
        )
