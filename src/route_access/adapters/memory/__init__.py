"""In-memory adapters for tests and local development."""

from route_access.adapters.memory.email import RecordingEmailSender
from route_access.adapters.memory.repository import InMemoryRouteEmailOtpRepository

__all__: list[str] = ["InMemoryRouteEmailOtpRepository", "RecordingEmailSender"]
