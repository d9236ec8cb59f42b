"""Route protection policies.

A policy describes how a protected route is gated: code lifetime, attempt
budget, resend spacing, daily send quota, and how long a successful
verification keeps the route open.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

EMAIL_OTP_METHOD = "email_otp"


@dataclass(frozen=True)
class RouteProtectionPolicy:
    """Step-up verification rules for one route.

    Attributes:
        ttl_hours: Lifetime of an issued code.
        max_sends_per_24_hours: Codes that may be issued in a rolling 24h window.
        resend_cooldown_seconds: Minimum spacing between two sends.
        max_attempts: Wrong codes tolerated before the challenge is burned.
        grant_ttl_hours: Lifetime of the access grant. Falls back to ``ttl_hours``.
        grant_never_expires: Grants stay valid until revoked.
        enabled: Disabled policies resolve as "not protected".
        method: Verification method; only ``"email_otp"`` is handled here.
    """

    ttl_hours: float = 5
    max_sends_per_24_hours: int = 5
    resend_cooldown_seconds: int = 60
    max_attempts: int = 5
    grant_ttl_hours: float | None = None
    grant_never_expires: bool = False
    enabled: bool = True
    method: str = EMAIL_OTP_METHOD

    def __post_init__(self) -> None:
        if self.ttl_hours <= 0:
            raise ValueError("ttl_hours must be positive")
        if self.max_sends_per_24_hours < 1:
            raise ValueError("max_sends_per_24_hours must be at least 1")
        if self.resend_cooldown_seconds < 0:
            raise ValueError("resend_cooldown_seconds cannot be negative")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.grant_ttl_hours is not None and self.grant_ttl_hours <= 0:
            raise ValueError("grant_ttl_hours must be positive")

    @property
    def effective_grant_ttl_hours(self) -> float:
        if self.grant_ttl_hours is not None:
            return self.grant_ttl_hours
        return self.ttl_hours


@runtime_checkable
class IRoutePolicyResolver(Protocol):
    """Protocol for looking up the policy of a route."""

    def resolve(self, route_key: str) -> RouteProtectionPolicy | None:
        """Return the email OTP policy for ``route_key``.

        Returns:
            The policy, or None if the route is not gated by email OTP.
        """
        ...


class PolicyRegistry(IRoutePolicyResolver):
    """In-process route → policy table."""

    def __init__(
        self, policies: Mapping[str, RouteProtectionPolicy] | None = None
    ) -> None:
        self._policies: dict[str, RouteProtectionPolicy] = dict(
            DEFAULT_ROUTE_POLICIES if policies is None else policies
        )

    @property
    def route_keys(self) -> tuple[str, ...]:
        return tuple(self._policies)

    def register(self, route_key: str, policy: RouteProtectionPolicy) -> None:
        self._policies[route_key] = policy

    def is_protected(self, route_key: str) -> bool:
        return self.resolve(route_key) is not None

    def resolve(self, route_key: str) -> RouteProtectionPolicy | None:
        policy = self._policies.get(route_key)
        if policy is None or not policy.enabled:
            return None
        if policy.method != EMAIL_OTP_METHOD:
            return None
        return policy


DEFAULT_ROUTE_POLICIES: Mapping[str, RouteProtectionPolicy] = MappingProxyType(
    {
        "comparison": RouteProtectionPolicy(
            ttl_hours=5,
            max_sends_per_24_hours=5,
            resend_cooldown_seconds=60,
            max_attempts=5,
            grant_never_expires=True,
        ),
    }
)


__all__: list[str] = [
    "EMAIL_OTP_METHOD",
    "RouteProtectionPolicy",
    "IRoutePolicyResolver",
    "PolicyRegistry",
    "DEFAULT_ROUTE_POLICIES",
]
