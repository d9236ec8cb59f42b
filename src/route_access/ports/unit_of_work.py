"""UnitOfWork: transactional scope used by repository adapters."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger("route_access.uow")


class UnitOfWork(ABC):
    """
    Async context manager around one storage transaction.

    Leaving the block normally commits. Leaving it with an exception rolls
    back and lets the exception propagate, so a rejected send never leaves a
    half-written challenge behind.
    """

    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...

    async def __aenter__(self) -> UnitOfWork:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        if exc_type is not None:
            logger.debug("Rolling back after %s", exc_type.__name__)
            await self.rollback()
            return
        await self.commit()
