"""
SQLAlchemy implementation of the route email OTP repository.
"""

from __future__ import annotations

import hashlib
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, text, update
from sqlalchemy.exc import IntegrityError

from ...exceptions import RepositoryInvariantError
from ...models import Challenge, Grant
from ...policy import EMAIL_OTP_METHOD
from ...ports.repository import IRouteEmailOtpRepository
from .models import RouteAccessGrantModel, RouteEmailOtpChallengeModel
from .uow import SQLAlchemyUnitOfWork

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from datetime import datetime

    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def _advisory_lock_key(owner_user_id: str, route_key: str) -> int:
    digest = hashlib.sha256(f"{owner_user_id}:{route_key}".encode()).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


class SQLAlchemyRouteEmailOtpRepository(IRouteEmailOtpRepository):
    """
    SQLAlchemy-backed persistence for challenges and grants.

    Outside ``transaction()`` every call runs in its own short-lived unit of
    work. Inside it, all calls share one session, reads take ``FOR UPDATE``
    row locks, and ``lock_challenge_scope`` serializes writers on the same
    (owner_user_id, route_key). Attempt and consume updates only touch open
    challenges and report whether a row changed.

    The session factory should be created with ``expire_on_commit=False``.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        *,
        lock_rows: bool = True,
        _uow: SQLAlchemyUnitOfWork | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._lock_rows = lock_rows
        self._uow = _uow
        self._scope_locked = False

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SQLAlchemyRouteEmailOtpRepository]:
        if self._uow is not None:
            yield self
            return

        async with SQLAlchemyUnitOfWork(session_factory=self._session_factory) as uow:
            yield SQLAlchemyRouteEmailOtpRepository(
                self._session_factory, lock_rows=self._lock_rows, _uow=uow
            )

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        if self._uow is not None:
            yield self._uow.session
            return

        async with SQLAlchemyUnitOfWork(session_factory=self._session_factory) as uow:
            yield uow.session

    def _for_update(self, stmt: Select[Any]) -> Select[Any]:
        if self._uow is not None and self._lock_rows:
            return stmt.with_for_update()
        return stmt

    async def lock_challenge_scope(self, owner_user_id: str, route_key: str) -> None:
        """Serialize this transaction against others on the same (user, route).

        PostgreSQL takes a transaction-scoped advisory lock. SQLite has no row
        locks and pysqlite defers ``BEGIN`` until the first write, so the
        database write lock is taken up front with ``BEGIN IMMEDIATE``; this
        must be the first statement of the transaction. Other dialects rely on
        the ``FOR UPDATE`` reads.
        """
        if self._uow is None or self._scope_locked:
            return
        session = self._uow.session
        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            await session.execute(
                select(func.pg_advisory_xact_lock(_advisory_lock_key(owner_user_id, route_key)))
            )
        elif dialect == "sqlite":
            await session.execute(text("BEGIN IMMEDIATE"))
        self._scope_locked = True

    # -- challenges ---------------------------------------------------------

    def _challenges_stmt(
        self, owner_user_id: str, route_key: str
    ) -> Select[tuple[RouteEmailOtpChallengeModel]]:
        return (
            select(RouteEmailOtpChallengeModel)
            .where(
                RouteEmailOtpChallengeModel.owner_user_id == owner_user_id,
                RouteEmailOtpChallengeModel.route_key == route_key,
            )
            .order_by(RouteEmailOtpChallengeModel.created_at.desc())
        )

    async def get_latest_challenge(
        self, owner_user_id: str, route_key: str
    ) -> Challenge | None:
        stmt = self._for_update(self._challenges_stmt(owner_user_id, route_key).limit(1))
        async with self._session() as session:
            model = await session.scalar(stmt)
            return Challenge.model_validate(model) if model is not None else None

    async def get_latest_active_challenge(
        self, owner_user_id: str, route_key: str, now: datetime
    ) -> Challenge | None:
        stmt = self._for_update(
            self._challenges_stmt(owner_user_id, route_key)
            .where(
                RouteEmailOtpChallengeModel.invalidated_at.is_(None),
                RouteEmailOtpChallengeModel.consumed_at.is_(None),
                RouteEmailOtpChallengeModel.expires_at > now,
            )
            .limit(1)
        )
        async with self._session() as session:
            model = await session.scalar(stmt)
            return Challenge.model_validate(model) if model is not None else None

    async def count_challenges_since(
        self, owner_user_id: str, route_key: str, since: datetime
    ) -> int:
        stmt = select(func.count()).where(
            RouteEmailOtpChallengeModel.owner_user_id == owner_user_id,
            RouteEmailOtpChallengeModel.route_key == route_key,
            RouteEmailOtpChallengeModel.created_at >= since,
        )
        async with self._session() as session:
            return int(await session.scalar(stmt) or 0)

    async def invalidate_active_challenges(
        self, owner_user_id: str, route_key: str, now: datetime
    ) -> None:
        stmt = (
            update(RouteEmailOtpChallengeModel)
            .where(
                RouteEmailOtpChallengeModel.owner_user_id == owner_user_id,
                RouteEmailOtpChallengeModel.route_key == route_key,
                RouteEmailOtpChallengeModel.invalidated_at.is_(None),
                RouteEmailOtpChallengeModel.consumed_at.is_(None),
                RouteEmailOtpChallengeModel.expires_at > now,
            )
            .values(invalidated_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        async with self._session() as session:
            await session.execute(stmt)

    async def create_challenge(self, challenge: Challenge) -> Challenge:
        async with self._session() as session:
            model = RouteEmailOtpChallengeModel(**challenge.model_dump())
            session.add(model)
            try:
                await session.flush()
            except IntegrityError as e:
                raise RepositoryInvariantError("Failed to create OTP challenge") from e
            return Challenge.model_validate(model)

    @staticmethod
    def _open_challenge(challenge_id: str) -> tuple[Any, ...]:
        return (
            RouteEmailOtpChallengeModel.id == challenge_id,
            RouteEmailOtpChallengeModel.invalidated_at.is_(None),
            RouteEmailOtpChallengeModel.consumed_at.is_(None),
        )

    async def update_challenge_attempts(
        self,
        challenge_id: str,
        attempt_count: int,
        now: datetime,
        invalidated_at: datetime | None = None,
        *,
        expected_attempt_count: int | None = None,
    ) -> bool:
        stmt = update(RouteEmailOtpChallengeModel).where(*self._open_challenge(challenge_id))
        if expected_attempt_count is not None:
            stmt = stmt.where(
                RouteEmailOtpChallengeModel.attempt_count == expected_attempt_count
            )
        stmt = stmt.values(
            attempt_count=attempt_count,
            invalidated_at=invalidated_at,
            updated_at=now,
        ).execution_options(synchronize_session=False)
        async with self._session() as session:
            result = await session.execute(stmt)
            return bool(getattr(result, "rowcount", 0))

    async def consume_challenge(self, challenge_id: str, consumed_at: datetime) -> bool:
        stmt = (
            update(RouteEmailOtpChallengeModel)
            .where(*self._open_challenge(challenge_id))
            .values(consumed_at=consumed_at, updated_at=consumed_at)
            .execution_options(synchronize_session=False)
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return bool(getattr(result, "rowcount", 0))

    # -- grants -------------------------------------------------------------

    async def get_active_grant(
        self,
        owner_user_id: str,
        route_key: str,
        now: datetime,
        *,
        ignore_expiry: bool = False,
    ) -> Grant | None:
        stmt = select(RouteAccessGrantModel).where(
            RouteAccessGrantModel.owner_user_id == owner_user_id,
            RouteAccessGrantModel.route_key == route_key,
            RouteAccessGrantModel.method == EMAIL_OTP_METHOD,
            RouteAccessGrantModel.revoked_at.is_(None),
        )
        if not ignore_expiry:
            stmt = stmt.where(RouteAccessGrantModel.expires_at > now)
        stmt = stmt.order_by(RouteAccessGrantModel.verified_at.desc()).limit(1)

        async with self._session() as session:
            model = await session.scalar(stmt)
            return Grant.model_validate(model) if model is not None else None

    async def upsert_grant(self, grant: Grant) -> Grant:
        stmt = self._for_update(
            select(RouteAccessGrantModel).where(
                RouteAccessGrantModel.owner_user_id == grant.owner_user_id,
                RouteAccessGrantModel.route_key == grant.route_key,
                RouteAccessGrantModel.method == grant.method,
            )
        )
        async with self._session() as session:
            model = await session.scalar(stmt)
            if model is None:
                model = RouteAccessGrantModel(
                    **grant.model_dump(exclude={"revoked_at"}), revoked_at=None
                )
                session.add(model)
            else:
                model.verified_at = grant.verified_at
                model.expires_at = grant.expires_at
                model.revoked_at = None
                model.updated_at = grant.updated_at

            try:
                await session.flush()
            except IntegrityError as e:
                raise RepositoryInvariantError("Failed to upsert route access grant") from e
            return Grant.model_validate(model)

    async def revoke_grant(
        self, owner_user_id: str, route_key: str, now: datetime
    ) -> bool:
        stmt = (
            update(RouteAccessGrantModel)
            .where(
                RouteAccessGrantModel.owner_user_id == owner_user_id,
                RouteAccessGrantModel.route_key == route_key,
                RouteAccessGrantModel.method == EMAIL_OTP_METHOD,
                RouteAccessGrantModel.revoked_at.is_(None),
            )
            .values(revoked_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            revoked = bool(getattr(result, "rowcount", 0))

        if revoked:
            logger.info("Revoked route access grant user=%s route=%s", owner_user_id, route_key)
        return revoked


__all__: list[str] = ["SQLAlchemyRouteEmailOtpRepository"]
