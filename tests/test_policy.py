"""Tests for route protection policies."""

import pytest

from route_access.policy import (
    DEFAULT_ROUTE_POLICIES,
    EMAIL_OTP_METHOD,
    IRoutePolicyResolver,
    PolicyRegistry,
    RouteProtectionPolicy,
)


def test_default_table_protects_comparison():
    policy = DEFAULT_ROUTE_POLICIES["comparison"]
    assert policy.ttl_hours == 5
    assert policy.max_sends_per_24_hours == 5
    assert policy.resend_cooldown_seconds == 60
    assert policy.max_attempts == 5
    assert policy.grant_never_expires is True
    assert policy.method == EMAIL_OTP_METHOD


def test_registry_is_a_policy_resolver():
    assert isinstance(PolicyRegistry(), IRoutePolicyResolver)


def test_registry_resolves_known_route():
    registry = PolicyRegistry()
    assert registry.resolve("comparison") is DEFAULT_ROUTE_POLICIES["comparison"]
    assert registry.is_protected("comparison") is True
    assert registry.route_keys == ("comparison",)


def test_registry_unknown_route_is_unprotected():
    registry = PolicyRegistry()
    assert registry.resolve("settings") is None
    assert registry.is_protected("settings") is False


def test_registry_ignores_disabled_policy():
    registry = PolicyRegistry({"reports": RouteProtectionPolicy(enabled=False)})
    assert registry.resolve("reports") is None


def test_registry_ignores_other_methods():
    registry = PolicyRegistry({"reports": RouteProtectionPolicy(method="totp")})
    assert registry.resolve("reports") is None


def test_register_adds_route():
    registry = PolicyRegistry({})
    policy = RouteProtectionPolicy(ttl_hours=1)
    registry.register("reports", policy)
    assert registry.resolve("reports") is policy


def test_registry_copies_default_table():
    registry = PolicyRegistry()
    registry.register("reports", RouteProtectionPolicy())
    assert "reports" not in DEFAULT_ROUTE_POLICIES


def test_effective_grant_ttl_falls_back_to_code_ttl():
    assert RouteProtectionPolicy(ttl_hours=4).effective_grant_ttl_hours == 4
    assert (
        RouteProtectionPolicy(ttl_hours=4, grant_ttl_hours=12).effective_grant_ttl_hours
        == 12
    )


@pytest.mark.parametrize(
    "kwargs",
    [
        {"ttl_hours": 0},
        {"max_sends_per_24_hours": 0},
        {"resend_cooldown_seconds": -1},
        {"max_attempts": 0},
        {"grant_ttl_hours": 0},
    ],
)
def test_policy_rejects_invalid_values(kwargs):
    with pytest.raises(ValueError):
        RouteProtectionPolicy(**kwargs)
