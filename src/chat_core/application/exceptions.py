from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    code = "error"
    default_detail = ""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFoundError(AppError):
    code = "not_found"
    default_detail = "Not found"


class ConversationNotFoundError(NotFoundError):
    code = "conversation_not_found"
    default_detail = "Conversation not found"


class MessageNotFoundError(NotFoundError):
    code = "message_not_found"
    default_detail = "Message not found"


class UserNotFoundError(NotFoundError):
    code = "user_not_found"
    default_detail = "User not found"


class ForbiddenError(AppError):
    code = "forbidden"
    default_detail = "Forbidden"


class NotParticipantError(ForbiddenError):
    code = "not_participant"
    default_detail = "Not a participant of this conversation"


class NotOwnerError(ForbiddenError):
    code = "not_owner"
    default_detail = "Only the sender can delete this message"


class ValidationError(AppError):
    code = "invalid_data"


class AuthenticationError(AppError):
    code = "authentication_failed"
    default_detail = "Authentication failed"


class StoreUnavailableError(AppError):
    """Transient persistence failure. Never retried by the core."""

    code = "store_unavailable"
    default_detail = "Storage temporarily unavailable"


class MediaIngestError(AppError):
    code = "media_ingest_failed"
    default_detail = "Attachment upload failed"


class RateLimitedError(AppError):
    code = "rate_limited"
    default_detail = "Too many attempts. Please try again later."

    def __init__(self, detail: str = "", retry_after: int = 0) -> None:
        super().__init__(detail)
        self.retry_after = retry_after
