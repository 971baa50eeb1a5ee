from cardkeep.models.card import (
    LEGACY_VISIBILITY_CODES,
    Card,
    CardHistory,
    CardView,
    Visibility,
)
from cardkeep.models.failure import (
    ApiResponse,
    AuthConflictError,
    CycleDetectedError,
    DuplicateNameError,
    FailureDetail,
    FailureKind,
    ForbiddenError,
    HiddenCardError,
    InvalidInputError,
    KnownError,
    NotFoundError,
    OutcomeType,
    StorageUnavailableError,
    UnauthenticatedError,
)
from cardkeep.models.user import ApiKeyCredential, AuthMethod, DiscordIdentity, User

__all__ = [
    "ApiKeyCredential",
    "ApiResponse",
    "AuthConflictError",
    "AuthMethod",
    "Card",
    "CardHistory",
    "CardView",
    "CycleDetectedError",
    "DiscordIdentity",
    "DuplicateNameError",
    "FailureDetail",
    "FailureKind",
    "ForbiddenError",
    "HiddenCardError",
    "InvalidInputError",
    "KnownError",
    "LEGACY_VISIBILITY_CODES",
    "NotFoundError",
    "OutcomeType",
    "StorageUnavailableError",
    "UnauthenticatedError",
    "User",
    "Visibility",
]
