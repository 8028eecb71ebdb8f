# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Exception classes for the completion throttle library.

All exceptions inherit from ThrottleError, so a single except clause catches
anything the library raises. Failures reported by the chat-completion
provider are ProviderError subclasses tagged with an ErrorCategory; the
category decides whether the retry executor tries again and which fixed,
caller-safe message is shown to end users.
"""

from enum import Enum


class ErrorCategory(Enum):
    """Named categories a provider or transport failure is classified into."""

    RATE_LIMIT = "rate_limit"
    QUOTA_EXCEEDED = "quota_exceeded"
    INVALID_CREDENTIALS = "invalid_credentials"
    BAD_REQUEST = "bad_request"
    SERVER_ERROR = "server_error"
    TIMEOUT = "timeout"
    NETWORK = "network"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        """Credential and malformed-request failures are caller defects."""
        return self not in NON_RETRYABLE_CATEGORIES


NON_RETRYABLE_CATEGORIES = frozenset(
    {ErrorCategory.INVALID_CREDENTIALS, ErrorCategory.BAD_REQUEST}
)

# Categories that warrant an immediate quota re-check when a request fails.
QUOTA_SENSITIVE_CATEGORIES = frozenset(
    {ErrorCategory.RATE_LIMIT, ErrorCategory.QUOTA_EXCEEDED}
)

USER_MESSAGES: dict[ErrorCategory, dict[str, str]] = {
    ErrorCategory.RATE_LIMIT: {
        "en": "Many users are asking right now. Please try again in a few moments.",
        "ar": "يسأل العديد من المستخدمين الآن. يرجى المحاولة مرة أخرى خلال لحظات.",
    },
    ErrorCategory.QUOTA_EXCEEDED: {
        "en": "Many users are asking right now. Please try again in a few moments.",
        "ar": "يسأل العديد من المستخدمين الآن. يرجى المحاولة مرة أخرى خلال لحظات.",
    },
    ErrorCategory.TIMEOUT: {
        "en": "The AI service is temporarily slow. Please try again.",
        "ar": "خدمة الذكاء الاصطناعي بطيئة مؤقتاً. يرجى المحاولة مرة أخرى.",
    },
    ErrorCategory.INVALID_CREDENTIALS: {
        "en": "The AI service is currently being configured. Please try again later.",
        "ar": "خدمة الذكاء الاصطناعي قيد الإعداد حالياً. يرجى المحاولة لاحقاً.",
    },
    ErrorCategory.BAD_REQUEST: {
        "en": "The AI service could not process this message. Please rephrase and try again.",
        "ar": "تعذر على خدمة الذكاء الاصطناعي معالجة هذه الرسالة. يرجى إعادة الصياغة والمحاولة مرة أخرى.",
    },
    ErrorCategory.SERVER_ERROR: {
        "en": "The AI service is temporarily unavailable. Please try again later.",
        "ar": "خدمة الذكاء الاصطناعي غير متاحة مؤقتاً. يرجى المحاولة لاحقاً.",
    },
    ErrorCategory.NETWORK: {
        "en": "Connection seems slow. Please try again.",
        "ar": "يبدو أن الاتصال بطيء. يرجى المحاولة مرة أخرى.",
    },
    ErrorCategory.UNKNOWN: {
        "en": "The AI service is temporarily unavailable. Please try again later.",
        "ar": "خدمة الذكاء الاصطناعي غير متاحة مؤقتاً. يرجى المحاولة لاحقاً.",
    },
}

DEFAULT_LANGUAGE = "en"


def user_message(category: ErrorCategory, language: str = DEFAULT_LANGUAGE) -> str:
    """Return the fixed end-user message for a category, falling back to English."""
    messages = USER_MESSAGES[category]
    return messages.get(language.lower(), messages[DEFAULT_LANGUAGE])


class ThrottleError(Exception):
    """Base exception for all completion throttle errors.

    Example:
        try:
            await manager.send_request(payload)
        except ThrottleError as e:
            logger.error(f"Completion failed: {e}")
    """

    pass


class ConfigurationError(ThrottleError):
    """Raised when the manager is wired up with unusable settings.

    For example, asking for a Prometheus exposition port while metrics are
    disabled.
    """

    pass


class RateLimiterClosedError(ThrottleError):
    """Raised when work is scheduled on, or still queued in, a stopped limiter."""

    pass


class EmptyResponseError(ThrottleError):
    """Raised when a successful completion carries no assistant message."""

    pass


class ProviderError(ThrottleError):
    """A classified failure of one call to the chat-completion provider.

    The exception message is technical and meant for logs. Callers that
    display errors to end users should use ``user_message()`` instead,
    which never includes provider text.

    Attributes:
        category: The ErrorCategory this failure was classified into.
        status_code: HTTP status returned by the provider, if any.
        retry_after: Seconds the provider asked us to wait (429 only).
        detail: Raw provider error text, for logging only.
        attempts: Number of attempts made before this error was surfaced.
            Zero until the retry executor surfaces the error.
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retry_after: float | None = None,
        detail: str | None = None,
        attempts: int = 0,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after
        self.detail = detail
        self.attempts = attempts

    @property
    def retryable(self) -> bool:
        """Whether the retry executor may try this request again."""
        return self.category.retryable

    def user_message(self, language: str = DEFAULT_LANGUAGE) -> str:
        """Fixed, non-technical message for this error's category."""
        return user_message(self.category, language)

    def surfaced(self, attempts: int) -> "ProviderError":
        """Copy of this error whose message is the caller-safe text.

        The technical message is kept in ``detail`` so it is still available
        to logging, while ``str(error)`` becomes safe to hand to a UI layer.
        """
        return type(self)(
            self.user_message(),
            status_code=self.status_code,
            retry_after=self.retry_after,
            detail=self.detail or str(self),
            attempts=attempts,
        )


class RateLimitError(ProviderError):
    """HTTP 429 without a billing-exhaustion code."""

    category = ErrorCategory.RATE_LIMIT


class QuotaExceededError(ProviderError):
    """HTTP 429 with the provider's ``insufficient_quota`` code.

    Waiting does not resolve quota exhaustion, yet it is retried exactly
    like RateLimitError.
    """

    category = ErrorCategory.QUOTA_EXCEEDED


class InvalidCredentialsError(ProviderError):
    """HTTP 401. Never retried."""

    category = ErrorCategory.INVALID_CREDENTIALS


class BadRequestError(ProviderError):
    """HTTP 400. Never retried."""

    category = ErrorCategory.BAD_REQUEST


class ServerError(ProviderError):
    """HTTP 5xx."""

    category = ErrorCategory.SERVER_ERROR


class ProviderTimeoutError(ProviderError):
    """The per-attempt client timeout elapsed."""

    category = ErrorCategory.TIMEOUT


class NetworkError(ProviderError):
    """DNS resolution or connection failure."""

    category = ErrorCategory.NETWORK


class UnknownProviderError(ProviderError):
    """Anything that fits no other category."""

    category = ErrorCategory.UNKNOWN


ERROR_CLASSES: dict[ErrorCategory, type[ProviderError]] = {
    ErrorCategory.RATE_LIMIT: RateLimitError,
    ErrorCategory.QUOTA_EXCEEDED: QuotaExceededError,
    ErrorCategory.INVALID_CREDENTIALS: InvalidCredentialsError,
    ErrorCategory.BAD_REQUEST: BadRequestError,
    ErrorCategory.SERVER_ERROR: ServerError,
    ErrorCategory.TIMEOUT: ProviderTimeoutError,
    ErrorCategory.NETWORK: NetworkError,
    ErrorCategory.UNKNOWN: UnknownProviderError,
}


__all__ = [
    "ERROR_CLASSES",
    "NON_RETRYABLE_CATEGORIES",
    "QUOTA_SENSITIVE_CATEGORIES",
    "USER_MESSAGES",
    "BadRequestError",
    "ConfigurationError",
    "EmptyResponseError",
    "ErrorCategory",
    "InvalidCredentialsError",
    "NetworkError",
    "ProviderError",
    "ProviderTimeoutError",
    "QuotaExceededError",
    "RateLimitError",
    "RateLimiterClosedError",
    "ServerError",
    "ThrottleError",
    "UnknownProviderError",
    "user_message",
]
