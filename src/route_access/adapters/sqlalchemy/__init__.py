"""SQLAlchemy (async) persistence for challenges and grants."""

from .exceptions import (
    SessionManagementError,
    SQLAlchemyPersistenceError,
    UnitOfWorkError,
)
from .models import (
    RouteAccessBase,
    RouteAccessGrantModel,
    RouteEmailOtpChallengeModel,
    create_route_access_tables,
)
from .repository import SQLAlchemyRouteEmailOtpRepository
from .types import UtcDateTime
from .uow import SQLAlchemyUnitOfWork

__all__: list[str] = [
    "RouteAccessBase",
    "RouteAccessGrantModel",
    "RouteEmailOtpChallengeModel",
    "SQLAlchemyPersistenceError",
    "SQLAlchemyRouteEmailOtpRepository",
    "SQLAlchemyUnitOfWork",
    "SessionManagementError",
    "UnitOfWorkError",
    "UtcDateTime",
    "create_route_access_tables",
]
