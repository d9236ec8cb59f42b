"""route_access: route-level step-up verification by email one-time code.

A signed-in user who opens a protected route must prove control of their
mailbox once: request a 6-digit code, type it back, and an access grant is
stored for (user, route). Adapters for SQLAlchemy, SMTP and FastAPI live in
``route_access.adapters`` and ``route_access.contrib`` and are imported
explicitly.
"""

from .clock import IClock, ManualClock, SystemClock
from .exceptions import (
    AttemptsExceededError,
    DailyLimitExceededError,
    EmailDeliveryError,
    EmailProviderNotConfiguredError,
    InvalidOrExpiredCodeError,
    RateLimitError,
    RepositoryInvariantError,
    ResendCooldownActiveError,
    RouteAccessError,
    RouteNotSupportedError,
    VerificationError,
    VerificationRequiredError,
)
from .factory import create_route_email_otp_service
from .models import (
    NEVER_EXPIRES_AT,
    Challenge,
    Grant,
    RouteAccessStatus,
    RouteEmailOtpSendResult,
    RouteEmailOtpVerifyResult,
)
from .policy import (
    DEFAULT_ROUTE_POLICIES,
    EMAIL_OTP_METHOD,
    IRoutePolicyResolver,
    PolicyRegistry,
    RouteProtectionPolicy,
)
from .ports import (
    IRouteEmailOtpRepository,
    IRouteOtpEmailSender,
    RouteOtpEmail,
    UnitOfWork,
)
from .service import RouteEmailOtpService

__all__: list[str] = [
    # Service
    "RouteEmailOtpService",
    "create_route_email_otp_service",
    # Policy
    "DEFAULT_ROUTE_POLICIES",
    "EMAIL_OTP_METHOD",
    "IRoutePolicyResolver",
    "PolicyRegistry",
    "RouteProtectionPolicy",
    # Models
    "NEVER_EXPIRES_AT",
    "Challenge",
    "Grant",
    "RouteAccessStatus",
    "RouteEmailOtpSendResult",
    "RouteEmailOtpVerifyResult",
    # Ports
    "IRouteEmailOtpRepository",
    "IRouteOtpEmailSender",
    "RouteOtpEmail",
    "UnitOfWork",
    # Clock
    "IClock",
    "ManualClock",
    "SystemClock",
    # Exceptions
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
