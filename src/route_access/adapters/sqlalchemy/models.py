from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ...policy import EMAIL_OTP_METHOD
from .types import UtcDateTime

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


class RouteAccessBase(DeclarativeBase):
    """Declarative base for the route access tables."""


class RouteEmailOtpChallengeModel(RouteAccessBase):
    """
    One issued email OTP challenge.
    Never deleted; superseded rows keep ``invalidated_at`` for auditing.
    """

    __tablename__ = "route_email_otp_challenges"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner_user_id: Mapped[str] = mapped_column(String, nullable=False)
    route_key: Mapped[str] = mapped_column(String, nullable=False)
    code_hash: Mapped[str] = mapped_column(String, nullable=False)
    code_salt: Mapped[str] = mapped_column(String, nullable=False)
    attempt_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    expires_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    invalidated_at: Mapped[datetime | None] = mapped_column(UtcDateTime, nullable=True)
    consumed_at: Mapped[datetime | None] = mapped_column(UtcDateTime, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String, nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)

    __table_args__ = (
        Index(
            "route_email_otp_challenges_owner_route_created_idx",
            "owner_user_id",
            "route_key",
            "created_at",
        ),
        Index(
            "route_email_otp_challenges_owner_route_expires_idx",
            "owner_user_id",
            "route_key",
            "expires_at",
        ),
        Index("route_email_otp_challenges_expires_idx", "expires_at"),
    )


class RouteAccessGrantModel(RouteAccessBase):
    """
    Access grant produced by a successful verification.
    Unique per (owner_user_id, route_key, method); refreshed in place.
    """

    __tablename__ = "route_access_grants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner_user_id: Mapped[str] = mapped_column(String, nullable=False)
    route_key: Mapped[str] = mapped_column(String, nullable=False)
    method: Mapped[str] = mapped_column(
        String, nullable=False, default=EMAIL_OTP_METHOD
    )
    verified_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(UtcDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)

    __table_args__ = (
        Index(
            "route_access_grants_owner_route_method_unique",
            "owner_user_id",
            "route_key",
            "method",
            unique=True,
        ),
        Index("route_access_grants_expires_idx", "expires_at"),
    )


async def create_route_access_tables(engine: AsyncEngine) -> None:
    """Create both tables (idempotent). Intended for tests and bootstrapping."""
    async with engine.begin() as conn:
        await conn.run_sync(RouteAccessBase.metadata.create_all)
