"""Storage contract for OTP challenges and access grants.

The step-up service never talks to a database directly; every read and
write goes through :class:`IRouteEmailOtpRepository`, which lets the same
state machine run against SQLAlchemy or the in-memory double.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from contextlib import AbstractAsyncContextManager
    from datetime import datetime

    from ..models import Challenge, Grant

T = TypeVar("T")


class IRouteEmailOtpRepository(ABC):
    """Repository for route email OTP challenges and route access grants.

    Implementations must make ``transaction()`` atomic with respect to
    concurrent callers working on the same (owner_user_id, route_key):
    either serializable isolation or row locks on the rows read inside it.
    """

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[IRouteEmailOtpRepository]:
        """Open a transactional view of this repository.

        Commits on clean exit, rolls back when the block raises. Calling
        ``transaction()`` on a view that is already transactional yields
        the same view.
        """
        ...

    async def with_transaction(
        self, fn: Callable[[IRouteEmailOtpRepository], Awaitable[T]]
    ) -> T:
        """Run ``fn`` against a transactional view and return its result."""
        async with self.transaction() as tx:
            return await fn(tx)

    async def lock_challenge_scope(  # noqa: B027
        self, owner_user_id: str, route_key: str
    ) -> None:
        """Serialize transactions touching the same (user, route).

        Called first inside a transaction. The default is a no-op for stores
        whose ``transaction()`` is already serialized.
        """

    @abstractmethod
    async def get_latest_challenge(
        self, owner_user_id: str, route_key: str
    ) -> Challenge | None:
        """Most recently created challenge in any state."""
        ...

    @abstractmethod
    async def get_latest_active_challenge(
        self, owner_user_id: str, route_key: str, now: datetime
    ) -> Challenge | None:
        """Most recent challenge that is not invalidated, consumed or expired."""
        ...

    @abstractmethod
    async def count_challenges_since(
        self, owner_user_id: str, route_key: str, since: datetime
    ) -> int:
        """Number of challenges created at or after ``since``."""
        ...

    @abstractmethod
    async def invalidate_active_challenges(
        self, owner_user_id: str, route_key: str, now: datetime
    ) -> None:
        """Set ``invalidated_at = now`` on every active challenge."""
        ...

    @abstractmethod
    async def create_challenge(self, challenge: Challenge) -> Challenge:
        """Insert a challenge and return the stored row.

        Raises:
            RepositoryInvariantError: If the store returns no row.
        """
        ...

    @abstractmethod
    async def update_challenge_attempts(
        self,
        challenge_id: str,
        attempt_count: int,
        now: datetime,
        invalidated_at: datetime | None = None,
        *,
        expected_attempt_count: int | None = None,
    ) -> bool:
        """Persist the attempt counter and, when burned, ``invalidated_at``.

        Only an unconsumed, uninvalidated challenge is updated, and only when
        its stored counter still equals ``expected_attempt_count`` (if given).
        Returns ``False`` when no row matched.
        """
        ...

    @abstractmethod
    async def consume_challenge(self, challenge_id: str, consumed_at: datetime) -> bool:
        """Mark a challenge as successfully verified.

        Returns ``False`` if the challenge was already consumed or invalidated.
        """
        ...

    @abstractmethod
    async def get_active_grant(
        self,
        owner_user_id: str,
        route_key: str,
        now: datetime,
        *,
        ignore_expiry: bool = False,
    ) -> Grant | None:
        """Latest unrevoked email OTP grant, unexpired unless ``ignore_expiry``."""
        ...

    @abstractmethod
    async def upsert_grant(self, grant: Grant) -> Grant:
        """Insert or refresh the grant keyed by (owner, route, method).

        On conflict ``verified_at``, ``expires_at`` and ``updated_at`` are
        overwritten and ``revoked_at`` is cleared.

        Raises:
            RepositoryInvariantError: If the store returns no row.
        """
        ...

    @abstractmethod
    async def revoke_grant(
        self, owner_user_id: str, route_key: str, now: datetime
    ) -> bool:
        """Revoke the email OTP grant out-of-band. Returns whether one was revoked."""
        ...


__all__: list[str] = ["IRouteEmailOtpRepository"]
