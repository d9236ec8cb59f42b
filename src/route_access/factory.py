"""Composition root for the route email OTP service.

Wiring is explicit: adapters are built here and handed to the service;
nothing is looked up from module-level globals.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .service import RouteEmailOtpService

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from .adapters.email.smtp import SmtpEmailConfig
    from .clock import IClock
    from .policy import IRoutePolicyResolver
    from .ports.email import IRouteOtpEmailSender
    from .ports.repository import IRouteEmailOtpRepository


def create_route_email_otp_service(
    *,
    repository: IRouteEmailOtpRepository,
    email_sender: IRouteOtpEmailSender,
    policies: IRoutePolicyResolver | None = None,
    clock: IClock | None = None,
) -> RouteEmailOtpService:
    """Build a service from already-constructed adapters."""
    return RouteEmailOtpService(
        repository=repository,
        email_sender=email_sender,
        policies=policies,
        clock=clock,
    )


def create_sqlalchemy_route_email_otp_service(
    session_factory: Callable[[], AsyncSession],
    *,
    email_sender: IRouteOtpEmailSender | None = None,
    smtp_config: SmtpEmailConfig | None = None,
    policies: IRoutePolicyResolver | None = None,
    clock: IClock | None = None,
) -> RouteEmailOtpService:
    """Build a service backed by SQLAlchemy and, by default, SMTP.

    Args:
        session_factory: ``async_sessionmaker`` (``expire_on_commit=False``).
        email_sender: Explicit sender; overrides ``smtp_config``.
        smtp_config: SMTP settings; read from ``ROUTE_ACCESS_*`` env vars
            when neither this nor ``email_sender`` is given.
        policies: Route policy lookup (defaults to the built-in table).
        clock: Time source (defaults to the UTC wall clock).
    """
    from .adapters.sqlalchemy.repository import SQLAlchemyRouteEmailOtpRepository

    if email_sender is None:
        from .adapters.email.smtp import SmtpEmailConfig, SmtpRouteOtpEmailSender

        email_sender = SmtpRouteOtpEmailSender(smtp_config or SmtpEmailConfig.from_env())

    return create_route_email_otp_service(
        repository=SQLAlchemyRouteEmailOtpRepository(session_factory),
        email_sender=email_sender,
        policies=policies,
        clock=clock,
    )


__all__: list[str] = [
    "create_route_email_otp_service",
    "create_sqlalchemy_route_email_otp_service",
]
