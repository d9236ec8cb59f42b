"""Route email OTP service: step-up verification for protected routes.

Flow:
    1. ``send_route_email_otp_for_user`` issues a 6-digit code by email,
       subject to a resend cooldown and a rolling 24h quota.
    2. ``verify_route_email_otp_for_user`` checks the code against the single
       active challenge and, on success, upserts an access grant.
    3. ``assert_route_access_for_user`` guards protected routes.
    4. ``get_route_access_status_for_user`` feeds the verification UI.

Example:
    ```python
    service = RouteEmailOtpService(
        repository=SQLAlchemyRouteEmailOtpRepository(session_factory),
        email_sender=SmtpRouteOtpEmailSender(SmtpEmailConfig.from_env()),
    )

    await service.send_route_email_otp_for_user(
        owner_user_id=user.id, email=user.email, route_key="comparison"
    )
    await service.verify_route_email_otp_for_user(
        owner_user_id=user.id, route_key="comparison", code="123456"
    )
    await service.assert_route_access_for_user(user.id, "comparison")
    ```
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import timedelta
from typing import TYPE_CHECKING

from .clock import IClock, SystemClock
from .codes import compare_hashes, generate_code, generate_salt, hash_code, normalize_code
from .exceptions import (
    AttemptsExceededError,
    DailyLimitExceededError,
    InvalidOrExpiredCodeError,
    ResendCooldownActiveError,
    RouteAccessError,
    RouteNotSupportedError,
    VerificationRequiredError,
)
from .models import (
    NEVER_EXPIRES_AT,
    Challenge,
    Grant,
    RouteAccessStatus,
    RouteEmailOtpSendResult,
    RouteEmailOtpVerifyResult,
)
from .observability import RouteAccessMetrics
from .policy import EMAIL_OTP_METHOD, IRoutePolicyResolver, PolicyRegistry
from .ports.email import RouteOtpEmail

if TYPE_CHECKING:
    from collections.abc import Callable

    from .policy import RouteProtectionPolicy
    from .ports.email import IRouteOtpEmailSender
    from .ports.repository import IRouteEmailOtpRepository

logger = logging.getLogger(__name__)

SEND_WINDOW = timedelta(hours=24)


def _new_id() -> str:
    return str(uuid.uuid4())


class RouteEmailOtpService:
    """Orchestrates send / verify / status / assert for email OTP step-up.

    Holds no per-request state; construct once at startup and share.
    """

    def __init__(
        self,
        *,
        repository: IRouteEmailOtpRepository,
        email_sender: IRouteOtpEmailSender,
        policies: IRoutePolicyResolver | None = None,
        clock: IClock | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            repository: Challenge and grant storage.
            email_sender: Delivers plaintext codes.
            policies: Route policy lookup (defaults to the built-in table).
            clock: Time source (defaults to the UTC wall clock).
            id_factory: Row id generator (defaults to UUID4 strings).
        """
        self.repository = repository
        self.email_sender = email_sender
        self.policies = policies or PolicyRegistry()
        self.clock = clock or SystemClock()
        self._new_id = id_factory or _new_id

    def _get_policy_or_raise(self, route_key: str) -> RouteProtectionPolicy:
        policy = self.policies.resolve(route_key)
        if policy is None:
            raise RouteNotSupportedError()
        return policy

    # -- status -------------------------------------------------------------

    async def get_route_access_status_for_user(
        self, owner_user_id: str, route_key: str
    ) -> RouteAccessStatus:
        """Compute the advisory verification state for the UI.

        Reads are not transactional; a torn read only skews UI hints.

        Raises:
            RouteNotSupportedError: If the route is not gated by email OTP.
        """
        policy = self._get_policy_or_raise(route_key)
        now = self.clock.now()
        since = now - SEND_WINDOW

        active_grant, active_challenge, latest_challenge, sent_in_window = (
            await asyncio.gather(
                self.repository.get_active_grant(
                    owner_user_id,
                    route_key,
                    now,
                    ignore_expiry=policy.grant_never_expires,
                ),
                self.repository.get_latest_active_challenge(
                    owner_user_id, route_key, now
                ),
                self.repository.get_latest_challenge(owner_user_id, route_key),
                self.repository.count_challenges_since(owner_user_id, route_key, since),
            )
        )

        resend_available_at = None
        if latest_challenge is not None:
            candidate = latest_challenge.created_at + timedelta(
                seconds=policy.resend_cooldown_seconds
            )
            if candidate > now:
                resend_available_at = candidate

        return RouteAccessStatus(
            route_key=route_key,
            verified=active_grant is not None,
            verification_expires_at=active_grant.expires_at if active_grant else None,
            challenge_active=active_challenge is not None,
            challenge_expires_at=(
                active_challenge.expires_at if active_challenge else None
            ),
            remaining_sends_24h=max(0, policy.max_sends_per_24_hours - sent_in_window),
            resend_available_at=resend_available_at,
        )

    # -- send ---------------------------------------------------------------

    async def send_route_email_otp_for_user(
        self,
        *,
        owner_user_id: str,
        email: str,
        route_key: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> RouteEmailOtpSendResult:
        """Issue a new code for (user, route) and email it.

        The new challenge is committed before the email is sent. A delivery
        failure therefore still counts towards cooldown and daily quota.

        Raises:
            RouteNotSupportedError: If the route is not gated by email OTP.
            DailyLimitExceededError: If the rolling 24h quota is used up.
            ResendCooldownActiveError: If the previous send is too recent.
            EmailDeliveryError: Propagated unchanged from the email sender.
        """
        policy = self._get_policy_or_raise(route_key)

        try:
            async with self.repository.transaction() as tx:
                await tx.lock_challenge_scope(owner_user_id, route_key)
                now = self.clock.now()

                sent_in_window = await tx.count_challenges_since(
                    owner_user_id, route_key, now - SEND_WINDOW
                )
                if sent_in_window >= policy.max_sends_per_24_hours:
                    raise DailyLimitExceededError()

                latest_challenge = await tx.get_latest_challenge(
                    owner_user_id, route_key
                )
                if latest_challenge is not None:
                    resend_available_at = latest_challenge.created_at + timedelta(
                        seconds=policy.resend_cooldown_seconds
                    )
                    if now < resend_available_at:
                        raise ResendCooldownActiveError(resend_available_at)

                await tx.invalidate_active_challenges(owner_user_id, route_key, now)

                code = generate_code()
                code_salt = generate_salt()
                challenge = await tx.create_challenge(
                    Challenge(
                        id=self._new_id(),
                        owner_user_id=owner_user_id,
                        route_key=route_key,
                        code_hash=hash_code(code_salt, code),
                        code_salt=code_salt,
                        attempt_count=0,
                        max_attempts=policy.max_attempts,
                        expires_at=now + timedelta(hours=policy.ttl_hours),
                        created_at=now,
                        updated_at=now,
                        ip_address=ip_address,
                        user_agent=user_agent,
                    )
                )
        except RouteAccessError as exc:
            logger.warning(
                "Email OTP send rejected for user=%s route=%s: %s",
                owner_user_id,
                route_key,
                exc.code,
            )
            RouteAccessMetrics.record_send(route_key, exc.code)
            raise

        logger.info(
            "Issued email OTP challenge %s for user=%s route=%s",
            challenge.id,
            owner_user_id,
            route_key,
        )

        try:
            await self.email_sender.send_email(
                RouteOtpEmail(
                    owner_user_id=owner_user_id,
                    email=email,
                    route_key=route_key,
                    challenge_id=challenge.id,
                    code=code,
                    expires_in_hours=policy.ttl_hours,
                )
            )
        except Exception as exc:
            logger.warning(
                "Email OTP delivery failed for challenge %s: %s", challenge.id, exc
            )
            RouteAccessMetrics.record_send(
                route_key, getattr(exc, "code", "EMAIL_DELIVERY_FAILED")
            )
            raise

        RouteAccessMetrics.record_send(route_key, "sent")
        return RouteEmailOtpSendResult(
            route_key=route_key,
            challenge_expires_at=challenge.expires_at,
            resend_available_at=challenge.created_at
            + timedelta(seconds=policy.resend_cooldown_seconds),
            remaining_sends_24h=max(
                0, policy.max_sends_per_24_hours - (sent_in_window + 1)
            ),
        )

    # -- verify -------------------------------------------------------------

    async def verify_route_email_otp_for_user(
        self,
        *,
        owner_user_id: str,
        route_key: str,
        code: str,
    ) -> RouteEmailOtpVerifyResult:
        """Check ``code`` against the active challenge and grant access.

        Wrong codes increment the attempt counter; once the counter would
        pass ``max_attempts`` the challenge is invalidated. That bookkeeping
        is committed before the corresponding error is raised.

        Raises:
            RouteNotSupportedError: If the route is not gated by email OTP.
            InvalidOrExpiredCodeError: Malformed code, wrong code, or no
                active challenge.
            AttemptsExceededError: The challenge is burned.
        """
        policy = self._get_policy_or_raise(route_key)
        normalized_code = normalize_code(code)
        if normalized_code is None:
            RouteAccessMetrics.record_verification(
                route_key, InvalidOrExpiredCodeError.code
            )
            raise InvalidOrExpiredCodeError()

        failure: RouteAccessError | None = None
        try:
            async with self.repository.transaction() as tx:
                await tx.lock_challenge_scope(owner_user_id, route_key)
                now = self.clock.now()

                challenge = await tx.get_latest_active_challenge(
                    owner_user_id, route_key, now
                )
                if challenge is None:
                    raise InvalidOrExpiredCodeError()

                attempt_count = challenge.attempt_count
                if attempt_count >= challenge.max_attempts:
                    burned = await tx.update_challenge_attempts(
                        challenge.id,
                        attempt_count,
                        now,
                        invalidated_at=now,
                        expected_attempt_count=attempt_count,
                    )
                    if not burned:
                        raise InvalidOrExpiredCodeError()
                    failure = AttemptsExceededError()
                elif not compare_hashes(
                    challenge.code_hash, hash_code(challenge.code_salt, normalized_code)
                ):
                    next_attempt_count = attempt_count + 1
                    attempts_exceeded = next_attempt_count > challenge.max_attempts
                    recorded = await tx.update_challenge_attempts(
                        challenge.id,
                        next_attempt_count,
                        now,
                        invalidated_at=now if attempts_exceeded else None,
                        expected_attempt_count=attempt_count,
                    )
                    # another verify changed the challenge since it was read
                    if not recorded:
                        raise InvalidOrExpiredCodeError()
                    failure = (
                        AttemptsExceededError()
                        if attempts_exceeded
                        else InvalidOrExpiredCodeError()
                    )
                else:
                    if not await tx.consume_challenge(challenge.id, now):
                        raise InvalidOrExpiredCodeError()
                    verification_expires_at = (
                        NEVER_EXPIRES_AT
                        if policy.grant_never_expires
                        else now + timedelta(hours=policy.effective_grant_ttl_hours)
                    )
                    await tx.upsert_grant(
                        Grant(
                            id=self._new_id(),
                            owner_user_id=owner_user_id,
                            route_key=route_key,
                            method=EMAIL_OTP_METHOD,
                            verified_at=now,
                            expires_at=verification_expires_at,
                            created_at=now,
                            updated_at=now,
                        )
                    )
        except RouteAccessError as exc:
            logger.debug(
                "Email OTP verification failed for user=%s route=%s: %s",
                owner_user_id,
                route_key,
                exc.code,
            )
            RouteAccessMetrics.record_verification(route_key, exc.code)
            raise

        # raised outside the transaction so the attempt bookkeeping sticks
        if failure is not None:
            if isinstance(failure, AttemptsExceededError):
                logger.warning(
                    "Email OTP challenge %s burned for user=%s route=%s",
                    challenge.id,
                    owner_user_id,
                    route_key,
                )
            else:
                logger.debug(
                    "Wrong email OTP for challenge %s (attempt %d)",
                    challenge.id,
                    next_attempt_count,
                )
            RouteAccessMetrics.record_verification(route_key, failure.code)
            raise failure

        logger.info(
            "Granted route access user=%s route=%s until %s",
            owner_user_id,
            route_key,
            verification_expires_at.isoformat(),
        )
        RouteAccessMetrics.record_verification(route_key, "verified")
        return RouteEmailOtpVerifyResult(
            route_key=route_key,
            verified=True,
            verification_expires_at=verification_expires_at,
        )

    # -- guard --------------------------------------------------------------

    async def assert_route_access_for_user(
        self, owner_user_id: str, route_key: str
    ) -> None:
        """Guard for protected routes. Performs no mutation.

        Raises:
            RouteNotSupportedError: If the route is not gated by email OTP.
            VerificationRequiredError: If no valid grant exists.
        """
        policy = self._get_policy_or_raise(route_key)
        grant = await self.repository.get_active_grant(
            owner_user_id,
            route_key,
            self.clock.now(),
            ignore_expiry=policy.grant_never_expires,
        )

        if grant is None:
            logger.debug(
                "Route access denied user=%s route=%s", owner_user_id, route_key
            )
            RouteAccessMetrics.record_guard_check(
                route_key, VerificationRequiredError.code
            )
            raise VerificationRequiredError()

        RouteAccessMetrics.record_guard_check(route_key, "allowed")


__all__: list[str] = ["RouteEmailOtpService", "SEND_WINDOW"]
