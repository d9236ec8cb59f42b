"""RecordingEmailSender: captures outgoing codes instead of sending them."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ...ports.email import IRouteOtpEmailSender

if TYPE_CHECKING:
    from ...ports.email import RouteOtpEmail


class RecordingEmailSender(IRouteOtpEmailSender):
    """Email sender for TESTING ONLY.

    ⚠️ WARNING: Keeps plaintext codes in memory. Do NOT use in production!
    """

    def __init__(self) -> None:
        self.sent: list[RouteOtpEmail] = []
        self._failure: Exception | None = None

    def fail_with(self, error: Exception | None) -> None:
        """Make every following ``send_email`` raise ``error`` (None resets)."""
        self._failure = error

    async def send_email(self, message: RouteOtpEmail) -> None:
        if self._failure is not None:
            raise self._failure
        self.sent.append(message)

    @property
    def last_code(self) -> str:
        if not self.sent:
            raise LookupError("No email has been sent")
        return self.sent[-1].code
