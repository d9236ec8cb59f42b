"""SMTP delivery of one-time codes."""

from __future__ import annotations

import asyncio
import email.message
import email.policy
import html
import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ...exceptions import EmailDeliveryError, EmailProviderNotConfiguredError
from ...ports.email import IRouteOtpEmailSender, RouteOtpEmail

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class SmtpEmailConfig:
    """
    SMTP connection and message settings.

    ``host`` and ``from_email`` may be left empty; the sender then raises
    ``EmailProviderNotConfiguredError`` on every send.
    """

    host: str | None = None
    port: int = 587
    username: str | None = None
    password: str | None = field(default=None, repr=False)
    use_tls: bool = True
    timeout: float = 10.0
    from_email: str | None = None
    reply_to: str | None = None
    max_send_attempts: int = 3
    backoff_base_seconds: float = 0.5
    product_name: str = "Salary Path"

    def __post_init__(self) -> None:
        if self.max_send_attempts < 1:
            raise ValueError("max_send_attempts must be at least 1")
        if self.backoff_base_seconds < 0:
            raise ValueError("backoff_base_seconds must be non-negative")

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.from_email)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SmtpEmailConfig:
        """Read ``ROUTE_ACCESS_*`` variables; missing ones keep the defaults."""
        env = os.environ if environ is None else environ
        port = env.get("ROUTE_ACCESS_SMTP_PORT")
        use_tls = env.get("ROUTE_ACCESS_SMTP_USE_TLS")
        return cls(
            host=env.get("ROUTE_ACCESS_SMTP_HOST") or None,
            port=int(port) if port else 587,
            username=env.get("ROUTE_ACCESS_SMTP_USERNAME") or None,
            password=env.get("ROUTE_ACCESS_SMTP_PASSWORD") or None,
            use_tls=use_tls.strip().lower() in _TRUTHY if use_tls else True,
            from_email=env.get("ROUTE_ACCESS_FROM_EMAIL") or None,
            reply_to=env.get("ROUTE_ACCESS_REPLY_TO") or None,
        )


def _format_lifetime(hours: float | None) -> str:
    if hours is None:
        return "soon"
    if hours == int(hours):
        count = int(hours)
        return f"in {count} hour" if count == 1 else f"in {count} hours"
    return f"in {hours:g} hours"


def build_route_otp_message(
    message: RouteOtpEmail, config: SmtpEmailConfig
) -> email.message.EmailMessage:
    """Render the code email as a text/html multipart message."""
    lifetime = _format_lifetime(message.expires_in_hours)
    route = html.escape(message.route_key)
    code = html.escape(message.code)

    text = (
        f"Verify access to {message.route_key}. "
        f"Your verification code is {message.code}. "
        f"This code expires {lifetime}."
    )
    body_html = (
        '<div style="font-family:Arial,sans-serif;line-height:1.6">'
        f"<h2>Verify access to {route}</h2>"
        "<p>Your verification code is:</p>"
        f'<p style="font-size:28px;font-weight:700;letter-spacing:6px">{code}</p>'
        f"<p>This code expires {lifetime}.</p>"
        "<p>If you did not request this, you can ignore this email.</p>"
        "</div>"
    )

    msg = email.message.EmailMessage(policy=email.policy.default)
    msg["To"] = message.email
    msg["From"] = config.from_email or ""
    msg["Subject"] = f"{config.product_name} verification code"
    if config.reply_to:
        msg["Reply-To"] = config.reply_to
    msg["X-Idempotency-Key"] = message.idempotency_key
    msg.set_content(text, subtype="plain", charset="utf-8")
    msg.add_alternative(body_html, subtype="html", charset="utf-8")
    return msg


def _is_transient(error: Exception, aiosmtplib: Any) -> bool:
    if isinstance(error, aiosmtplib.SMTPResponseException):
        return 400 <= error.code < 500
    return isinstance(
        error,
        (
            aiosmtplib.SMTPConnectError,
            aiosmtplib.SMTPServerDisconnected,
            aiosmtplib.SMTPTimeoutError,
            ConnectionError,
            TimeoutError,
            asyncio.TimeoutError,
        ),
    )


class SmtpRouteOtpEmailSender(IRouteOtpEmailSender):
    """
    Async SMTP code sender using aiosmtplib.

    Transient failures (connection drops, timeouts, 4xx replies) are retried
    with exponential backoff; anything else fails on the first attempt.
    """

    def __init__(
        self,
        config: SmtpEmailConfig,
        *,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.config = config
        self._sleep = sleep or asyncio.sleep

    async def send_email(self, message: RouteOtpEmail) -> None:
        if not self.config.is_configured:
            raise EmailProviderNotConfiguredError()

        # Lazy import of aiosmtplib
        try:
            import aiosmtplib
        except ImportError as e:
            raise ImportError(
                "aiosmtplib is required for SmtpRouteOtpEmailSender. "
                "Install with: pip install 'route-access-otp[smtp]'"
            ) from e

        mime = build_route_otp_message(message, self.config)
        last_error: Exception | None = None

        for attempt in range(1, self.config.max_send_attempts + 1):
            try:
                await self._deliver(aiosmtplib, mime)
            except Exception as e:  # noqa: BLE001
                last_error = e
                if not _is_transient(e, aiosmtplib):
                    break
                if attempt < self.config.max_send_attempts:
                    delay = self.config.backoff_base_seconds * 2 ** (attempt - 1)
                    logger.debug(
                        "Transient SMTP failure for %s (attempt %d), retrying in %.2fs",
                        message.idempotency_key,
                        attempt,
                        delay,
                    )
                    await self._sleep(delay)
                continue

            logger.info(
                "Verification email sent for %s (attempt %d)",
                message.idempotency_key,
                attempt,
            )
            return

        logger.error(
            "Failed to send verification email for %s: %s",
            message.idempotency_key,
            last_error,
        )
        raise EmailDeliveryError() from last_error

    async def _deliver(self, aiosmtplib: Any, mime: email.message.EmailMessage) -> None:
        async with aiosmtplib.SMTP(
            hostname=self.config.host,
            port=self.config.port,
            timeout=self.config.timeout,
            start_tls=self.config.use_tls,
        ) as smtp:
            if self.config.username and self.config.password:
                await smtp.login(self.config.username, self.config.password)
            await smtp.send_message(mime)


__all__: list[str] = [
    "SmtpEmailConfig",
    "SmtpRouteOtpEmailSender",
    "build_route_otp_message",
]
