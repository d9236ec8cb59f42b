"""Email delivery adapters."""

from .smtp import SmtpEmailConfig, SmtpRouteOtpEmailSender, build_route_otp_message

__all__: list[str] = [
    "SmtpEmailConfig",
    "SmtpRouteOtpEmailSender",
    "build_route_otp_message",
]
