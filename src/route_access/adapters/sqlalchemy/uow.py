"""Transaction scope over an ``AsyncSession`` for the OTP tables."""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

from ...ports.unit_of_work import UnitOfWork
from .exceptions import SessionManagementError, UnitOfWorkError

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from sqlalchemy.ext.asyncio import AsyncSession

    AsyncSessionFactory = Callable[[], AsyncSession]

logger = logging.getLogger("route_access.uow")


class SQLAlchemyUnitOfWork(UnitOfWork):
    """
    One database transaction for a send or verify step.

    Pass either an existing ``session`` (the caller closes it) or a
    ``session_factory`` (a session is opened on enter and closed on exit):

    ```python
    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with SQLAlchemyUnitOfWork(session_factory=factory) as uow:
        uow.session.add(row)
    ```
    """

    def __init__(
        self,
        session: AsyncSession | None = None,
        session_factory: AsyncSessionFactory | None = None,
    ) -> None:
        if (session is None) == (session_factory is None):
            raise SessionManagementError(
                "Pass exactly one of 'session' or 'session_factory'."
            )
        self._session: AsyncSession | None = session
        self._session_factory = session_factory

    @property
    def owns_session(self) -> bool:
        return self._session_factory is not None

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise UnitOfWorkError("No session is open; enter the unit of work first.")
        return self._session

    async def __aenter__(self) -> SQLAlchemyUnitOfWork:
        try:
            if self._session_factory is not None:
                self._session = self._session_factory()
            if not self.session.in_transaction():
                await self.session.begin()
        except (SessionManagementError, UnitOfWorkError):
            raise
        except Exception as e:  # noqa: BLE001
            raise SessionManagementError(f"Could not open transaction: {e}") from e
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        in_flight = exc_type is not None
        try:
            await super().__aexit__(exc_type, exc_val, exc_tb)
        except BaseException:
            in_flight = True
            raise
        finally:
            if self.owns_session and self._session is not None:
                session, self._session = self._session, None
                try:
                    await session.close()
                except Exception as e:  # noqa: BLE001
                    logger.error("Could not close session: %s", e, exc_info=True)
                    # an error already leaving the block takes precedence
                    if not in_flight:
                        raise SessionManagementError(f"Could not close session: {e}") from e

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except Exception as e:  # noqa: BLE001
            logger.error("Commit failed, rolling back: %s", e, exc_info=True)
            # the commit error is the one worth surfacing
            with contextlib.suppress(Exception):
                await self.rollback()
            raise UnitOfWorkError(f"Commit failed: {e}") from e

    async def rollback(self) -> None:
        if not self.session.in_transaction():
            return
        try:
            await self.session.rollback()
        except Exception as e:  # noqa: BLE001
            raise UnitOfWorkError(f"Rollback failed: {e}") from e
