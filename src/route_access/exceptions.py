"""Route access exceptions.

Every error surfaced by the step-up verification flow carries a stable
``code`` string (the UI branches its messaging on it) and an HTTP-equivalent
``status_code`` so that transport adapters never have to re-derive them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar

# ═══════════════════════════════════════════════════════════════
# BASE ROUTE ACCESS ERROR
# ═══════════════════════════════════════════════════════════════


class RouteAccessError(Exception):
    """Base class for all route access errors.

    Attributes:
        code: Stable machine-readable error code.
        status_code: HTTP-equivalent status.
        message: Human-readable description.
        details: Optional structured payload for the caller.
    """

    code: ClassVar[str] = "INTERNAL_ERROR"
    status_code: ClassVar[int] = 500
    default_message: ClassVar[str] = "Internal error"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Render the error as a JSON-friendly payload."""
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class RouteNotSupportedError(RouteAccessError):
    """Raised when a route is not configured for email OTP step-up.

    Always a caller bug; never retried.
    """

    code = "BAD_REQUEST"
    status_code = 400
    default_message = "Route does not support email OTP verification"


# ═══════════════════════════════════════════════════════════════
# RATE LIMIT ERRORS
# ═══════════════════════════════════════════════════════════════


class RateLimitError(RouteAccessError):
    """Base class for errors that clear up by waiting."""

    status_code = 429


class ResendCooldownActiveError(RateLimitError):
    """Raised when a new code is requested before the resend cooldown elapsed.

    Attributes:
        resend_available_at: Instant at which a new send will be accepted.
    """

    code = "ROUTE_OTP_COOLDOWN"
    default_message = "Please wait before requesting another verification code"

    def __init__(self, resend_available_at: datetime, message: str | None = None):
        super().__init__(
            message,
            details={"resendAvailableAt": resend_available_at.isoformat()},
        )
        self.resend_available_at = resend_available_at


class DailyLimitExceededError(RateLimitError):
    """Raised when the rolling 24h send quota is used up."""

    code = "ROUTE_OTP_DAILY_LIMIT"
    default_message = "Daily verification email limit reached"


# ═══════════════════════════════════════════════════════════════
# VERIFICATION ERRORS
# ═══════════════════════════════════════════════════════════════


class VerificationError(RouteAccessError):
    """Base class for code verification failures."""


class InvalidOrExpiredCodeError(VerificationError):
    """Raised for a wrong code, a malformed code, or no active challenge.

    The three cases are deliberately indistinguishable to the caller.
    """

    code = "ROUTE_OTP_INVALID_OR_EXPIRED"
    status_code = 400
    default_message = "Invalid or expired verification code"


class AttemptsExceededError(VerificationError):
    """Raised once a challenge has been burned by too many wrong attempts.

    A fresh send is required; the same challenge never verifies again.
    """

    code = "ROUTE_OTP_ATTEMPTS_EXCEEDED"
    status_code = 429
    default_message = "Verification attempts exceeded. Request a new code."


class VerificationRequiredError(RouteAccessError):
    """Raised by the route guard when no valid grant exists.

    The route-protection layer should redirect to the verification UI.
    """

    code = "ROUTE_VERIFICATION_REQUIRED"
    status_code = 403
    default_message = "Route requires additional email verification"


# ═══════════════════════════════════════════════════════════════
# DELIVERY ERRORS
# ═══════════════════════════════════════════════════════════════


class EmailDeliveryError(RouteAccessError):
    """Raised when the email provider fails to deliver a code."""

    code = "EMAIL_DELIVERY_FAILED"
    default_message = "Unable to deliver verification email"


class EmailProviderNotConfiguredError(EmailDeliveryError):
    """Raised when the email provider has no usable configuration."""

    code = "EMAIL_PROVIDER_NOT_CONFIGURED"
    default_message = "Email provider is not configured"


# ═══════════════════════════════════════════════════════════════
# INFRASTRUCTURE ERRORS
# ═══════════════════════════════════════════════════════════════


class RepositoryInvariantError(RouteAccessError):
    """Raised when the storage layer breaks its contract (e.g. no row returned)."""


__all__: list[str] = [
    "RouteAccessError",
    "RouteNotSupportedError",
    "RateLimitError",
    "ResendCooldownActiveError",
    "DailyLimitExceededError",
    "VerificationError",
    "InvalidOrExpiredCodeError",
    "AttemptsExceededError",
    "VerificationRequiredError",
    "EmailDeliveryError",
    "EmailProviderNotConfiguredError",
    "RepositoryInvariantError",
]
