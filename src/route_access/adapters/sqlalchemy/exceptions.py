"""Exceptions for the SQLAlchemy persistence adapter."""

from __future__ import annotations

from ...exceptions import RouteAccessError


class SQLAlchemyPersistenceError(RouteAccessError):
    """Storage failure in the OTP tables; surfaced as a 500."""


class SessionManagementError(SQLAlchemyPersistenceError):
    """A session could not be opened, begun or closed."""


class UnitOfWorkError(SQLAlchemyPersistenceError):
    """Commit or rollback failed, or the session was used outside its scope."""


__all__: list[str] = [
    "SQLAlchemyPersistenceError",
    "SessionManagementError",
    "UnitOfWorkError",
]
