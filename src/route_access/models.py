"""Challenge and grant records, plus the views returned to callers."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from .policy import EMAIL_OTP_METHOD

# Far-future expiry stored for grants on routes whose verification never expires.
NEVER_EXPIRES_AT = datetime(9999, 12, 31, 23, 59, 59, 999000, tzinfo=timezone.utc)


class Challenge(BaseModel):
    """One issued code and its verification state for a (user, route) pair.

    Active means: not invalidated, not consumed, and not yet expired.
    Rows are never deleted; a new send always creates a fresh one.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_user_id: str
    route_key: str
    code_hash: str
    code_salt: str
    attempt_count: int = 0
    max_attempts: int
    expires_at: datetime
    invalidated_at: datetime | None = None
    consumed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    ip_address: str | None = None
    user_agent: str | None = None

    def is_active(self, now: datetime) -> bool:
        return (
            self.invalidated_at is None
            and self.consumed_at is None
            and self.expires_at > now
        )


class Grant(BaseModel):
    """Proof that a user passed step-up verification for a route.

    Unique per (owner_user_id, route_key, method).
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_user_id: str
    route_key: str
    method: str = EMAIL_OTP_METHOD
    verified_at: datetime
    expires_at: datetime
    revoked_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    def is_valid(self, now: datetime, *, ignore_expiry: bool = False) -> bool:
        if self.revoked_at is not None:
            return False
        return ignore_expiry or self.expires_at > now


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class RouteAccessStatus(_CamelModel):
    """Advisory state of a (user, route) pair for rendering the verification UI."""

    route_key: str = Field(alias="routeKey")
    required: bool = True
    verified: bool
    verification_expires_at: datetime | None = Field(
        default=None, alias="verificationExpiresAt"
    )
    challenge_active: bool = Field(alias="challengeActive")
    challenge_expires_at: datetime | None = Field(
        default=None, alias="challengeExpiresAt"
    )
    remaining_sends_24h: int = Field(alias="remainingSends24h")
    resend_available_at: datetime | None = Field(
        default=None, alias="resendAvailableAt"
    )


class RouteEmailOtpSendResult(_CamelModel):
    route_key: str = Field(alias="routeKey")
    challenge_expires_at: datetime = Field(alias="challengeExpiresAt")
    resend_available_at: datetime = Field(alias="resendAvailableAt")
    remaining_sends_24h: int = Field(alias="remainingSends24h")


class RouteEmailOtpVerifyResult(_CamelModel):
    route_key: str = Field(alias="routeKey")
    verified: bool = True
    verification_expires_at: datetime = Field(alias="verificationExpiresAt")


__all__: list[str] = [
    "NEVER_EXPIRES_AT",
    "Challenge",
    "Grant",
    "RouteAccessStatus",
    "RouteEmailOtpSendResult",
    "RouteEmailOtpVerifyResult",
]
