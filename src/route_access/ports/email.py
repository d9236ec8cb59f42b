"""Email delivery port for one-time codes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class RouteOtpEmail:
    """A code ready to be delivered.

    Attributes:
        owner_user_id: Recipient principal.
        email: Recipient address.
        route_key: Route the code unlocks.
        challenge_id: Challenge the code belongs to (idempotency key material).
        code: Plaintext code. Excluded from repr so it never lands in logs.
        expires_in_hours: Code lifetime, for the message body.
    """

    owner_user_id: str
    email: str
    route_key: str
    challenge_id: str
    code: str = field(repr=False)
    expires_in_hours: float | None = None

    @property
    def idempotency_key(self) -> str:
        return f"route-otp/{self.owner_user_id}/{self.route_key}/{self.challenge_id}"


@runtime_checkable
class IRouteOtpEmailSender(Protocol):
    """Protocol for delivering one-time codes by email.

    Failures must raise a :class:`~route_access.exceptions.EmailDeliveryError`
    subclass (e.g. ``EmailProviderNotConfiguredError``); the service lets it
    propagate unchanged.
    """

    async def send_email(self, message: RouteOtpEmail) -> None:
        """Deliver ``message``. No retries are expected from the caller."""
        ...


__all__: list[str] = ["RouteOtpEmail", "IRouteOtpEmailSender"]
