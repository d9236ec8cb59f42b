"""Ports (contracts) consumed by the route access service."""

from .email import IRouteOtpEmailSender, RouteOtpEmail
from .repository import IRouteEmailOtpRepository
from .unit_of_work import UnitOfWork

__all__: list[str] = [
    "IRouteEmailOtpRepository",
    "IRouteOtpEmailSender",
    "RouteOtpEmail",
    "UnitOfWork",
]
