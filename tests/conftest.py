"""Test configuration and fixtures."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from route_access import ManualClock, PolicyRegistry, RouteEmailOtpService
from route_access.adapters.memory import (
    InMemoryRouteEmailOtpRepository,
    RecordingEmailSender,
)

pytest_plugins = ["pytest_asyncio"]

START = datetime(2026, 2, 19, 20, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock() -> ManualClock:
    """Clock frozen at a fixed instant; tests move it explicitly."""
    return ManualClock(START)


@pytest.fixture
def repository() -> InMemoryRouteEmailOtpRepository:
    return InMemoryRouteEmailOtpRepository()


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def policies() -> PolicyRegistry:
    return PolicyRegistry()


@pytest.fixture
def service(
    repository: InMemoryRouteEmailOtpRepository,
    email_sender: RecordingEmailSender,
    policies: PolicyRegistry,
    clock: ManualClock,
) -> RouteEmailOtpService:
    return RouteEmailOtpService(
        repository=repository,
        email_sender=email_sender,
        policies=policies,
        clock=clock,
    )
