"""InMemoryRouteEmailOtpRepository: list-backed fake for unit tests."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from ...exceptions import RepositoryInvariantError
from ...policy import EMAIL_OTP_METHOD
from ...ports.repository import IRouteEmailOtpRepository

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from datetime import datetime

    from ...models import Challenge, Grant


class _InMemoryStore:
    def __init__(self) -> None:
        self.challenges: list[Challenge] = []
        self.grants: list[Grant] = []
        self.lock = asyncio.Lock()


class InMemoryRouteEmailOtpRepository(IRouteEmailOtpRepository):
    """In-memory implementation of ``IRouteEmailOtpRepository``.

    ``transaction()`` serializes callers on one lock, snapshots the rows on
    entry and restores the snapshot if the block raises.

    Stored rows are handed out by reference, so tests can inspect
    ``repository.challenges[0].invalidated_at`` directly.
    """

    def __init__(
        self,
        *,
        _store: _InMemoryStore | None = None,
        _in_transaction: bool = False,
    ) -> None:
        self._store = _store or _InMemoryStore()
        self._in_transaction = _in_transaction

    @property
    def challenges(self) -> list[Challenge]:
        return self._store.challenges

    @property
    def grants(self) -> list[Grant]:
        return self._store.grants

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemoryRouteEmailOtpRepository]:
        if self._in_transaction:
            yield self
            return

        async with self._store.lock:
            challenges = [row.model_copy() for row in self._store.challenges]
            grants = [row.model_copy() for row in self._store.grants]
            try:
                yield InMemoryRouteEmailOtpRepository(
                    _store=self._store, _in_transaction=True
                )
            except BaseException:
                self._store.challenges[:] = challenges
                self._store.grants[:] = grants
                raise

    # -- challenges ---------------------------------------------------------

    def _challenges_for(self, owner_user_id: str, route_key: str) -> list[Challenge]:
        rows = [
            row
            for row in self._store.challenges
            if row.owner_user_id == owner_user_id and row.route_key == route_key
        ]
        return sorted(rows, key=lambda row: row.created_at, reverse=True)

    def _find_challenge(self, challenge_id: str) -> Challenge | None:
        return next(
            (row for row in self._store.challenges if row.id == challenge_id), None
        )

    def _find_open_challenge(self, challenge_id: str) -> Challenge | None:
        row = self._find_challenge(challenge_id)
        if row is None or row.consumed_at is not None or row.invalidated_at is not None:
            return None
        return row

    async def get_latest_challenge(
        self, owner_user_id: str, route_key: str
    ) -> Challenge | None:
        rows = self._challenges_for(owner_user_id, route_key)
        return rows[0] if rows else None

    async def get_latest_active_challenge(
        self, owner_user_id: str, route_key: str, now: datetime
    ) -> Challenge | None:
        return next(
            (
                row
                for row in self._challenges_for(owner_user_id, route_key)
                if row.is_active(now)
            ),
            None,
        )

    async def count_challenges_since(
        self, owner_user_id: str, route_key: str, since: datetime
    ) -> int:
        return sum(
            1
            for row in self._challenges_for(owner_user_id, route_key)
            if row.created_at >= since
        )

    async def invalidate_active_challenges(
        self, owner_user_id: str, route_key: str, now: datetime
    ) -> None:
        for row in self._challenges_for(owner_user_id, route_key):
            if row.is_active(now):
                row.invalidated_at = now
                row.updated_at = now

    async def create_challenge(self, challenge: Challenge) -> Challenge:
        if self._find_challenge(challenge.id) is not None:
            raise RepositoryInvariantError("Failed to create OTP challenge")
        row = challenge.model_copy()
        self._store.challenges.append(row)
        return row

    async def update_challenge_attempts(
        self,
        challenge_id: str,
        attempt_count: int,
        now: datetime,
        invalidated_at: datetime | None = None,
        *,
        expected_attempt_count: int | None = None,
    ) -> bool:
        row = self._find_open_challenge(challenge_id)
        if row is None:
            return False
        if expected_attempt_count is not None and row.attempt_count != expected_attempt_count:
            return False
        row.attempt_count = attempt_count
        row.invalidated_at = invalidated_at
        row.updated_at = now
        return True

    async def consume_challenge(self, challenge_id: str, consumed_at: datetime) -> bool:
        row = self._find_open_challenge(challenge_id)
        if row is None:
            return False
        row.consumed_at = consumed_at
        row.updated_at = consumed_at
        return True

    # -- grants -------------------------------------------------------------

    async def get_active_grant(
        self,
        owner_user_id: str,
        route_key: str,
        now: datetime,
        *,
        ignore_expiry: bool = False,
    ) -> Grant | None:
        rows = [
            row
            for row in self._store.grants
            if row.owner_user_id == owner_user_id
            and row.route_key == route_key
            and row.method == EMAIL_OTP_METHOD
            and row.is_valid(now, ignore_expiry=ignore_expiry)
        ]
        rows.sort(key=lambda row: row.verified_at, reverse=True)
        return rows[0] if rows else None

    async def upsert_grant(self, grant: Grant) -> Grant:
        existing = next(
            (
                row
                for row in self._store.grants
                if row.owner_user_id == grant.owner_user_id
                and row.route_key == grant.route_key
                and row.method == grant.method
            ),
            None,
        )

        if existing is not None:
            existing.verified_at = grant.verified_at
            existing.expires_at = grant.expires_at
            existing.revoked_at = None
            existing.updated_at = grant.updated_at
            return existing

        row = grant.model_copy(update={"revoked_at": None})
        self._store.grants.append(row)
        return row

    async def revoke_grant(
        self, owner_user_id: str, route_key: str, now: datetime
    ) -> bool:
        revoked = False
        for row in self._store.grants:
            if (
                row.owner_user_id == owner_user_id
                and row.route_key == route_key
                and row.method == EMAIL_OTP_METHOD
                and row.revoked_at is None
            ):
                row.revoked_at = now
                row.updated_at = now
                revoked = True
        return revoked

    # ── Test helpers ─────────────────────────────────────────────

    def clear(self) -> None:
        self._store.challenges.clear()
        self._store.grants.clear()
