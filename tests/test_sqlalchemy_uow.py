"""Unit tests for SQLAlchemyUnitOfWork against a mocked AsyncSession."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from route_access import DailyLimitExceededError
from route_access.adapters.sqlalchemy.uow import (
    SessionManagementError,
    SQLAlchemyUnitOfWork,
    UnitOfWorkError,
)


def _mock_session(*, in_transaction: bool) -> AsyncMock:
    session = AsyncMock(spec=AsyncSession)
    session.in_transaction.return_value = in_transaction
    session.begin = AsyncMock()
    return session


def test_rejects_missing_or_double_session_source():
    with pytest.raises(SessionManagementError):
        SQLAlchemyUnitOfWork()
    session = _mock_session(in_transaction=False)
    with pytest.raises(SessionManagementError):
        SQLAlchemyUnitOfWork(session=session, session_factory=MagicMock())


def test_session_unavailable_until_entered():
    uow = SQLAlchemyUnitOfWork(session_factory=MagicMock())
    assert uow.owns_session is True
    with pytest.raises(UnitOfWorkError):
        _ = uow.session


@pytest.mark.asyncio()
async def test_clean_exit_commits_and_leaves_caller_session_open():
    session = _mock_session(in_transaction=False)

    async with SQLAlchemyUnitOfWork(session=session):
        session.begin.assert_awaited_once()

    session.commit.assert_awaited_once()
    session.rollback.assert_not_awaited()
    session.close.assert_not_awaited()


@pytest.mark.asyncio()
async def test_error_inside_block_rolls_back_and_propagates():
    session = _mock_session(in_transaction=True)

    with pytest.raises(ValueError, match="bad code"):
        async with SQLAlchemyUnitOfWork(session=session):
            raise ValueError("bad code")

    session.commit.assert_not_awaited()
    session.rollback.assert_awaited_once()


@pytest.mark.asyncio()
async def test_failed_commit_is_wrapped_after_rollback():
    session = _mock_session(in_transaction=True)
    session.commit.side_effect = RuntimeError("unique violation")

    with pytest.raises(UnitOfWorkError, match="unique violation"):
        async with SQLAlchemyUnitOfWork(session=session):
            pass

    session.rollback.assert_awaited_once()


@pytest.mark.asyncio()
async def test_rollback_skipped_outside_transaction():
    session = _mock_session(in_transaction=False)
    uow = SQLAlchemyUnitOfWork(session=session)

    async with uow:
        pass
    await uow.rollback()

    session.rollback.assert_not_awaited()


@pytest.mark.asyncio()
async def test_factory_session_is_opened_and_closed():
    session = _mock_session(in_transaction=False)
    factory = MagicMock(return_value=session)

    async with SQLAlchemyUnitOfWork(session_factory=factory) as uow:
        assert uow.session is session

    factory.assert_called_once_with()
    session.commit.assert_awaited_once()
    session.close.assert_awaited_once()


@pytest.mark.asyncio()
async def test_factory_session_closed_after_rollback():
    session = _mock_session(in_transaction=True)
    factory = MagicMock(return_value=session)
    uow = SQLAlchemyUnitOfWork(session_factory=factory)

    with pytest.raises(RuntimeError):
        async with uow:
            raise RuntimeError("smtp down")

    session.rollback.assert_awaited_once()
    session.close.assert_awaited_once()
    with pytest.raises(UnitOfWorkError):
        _ = uow.session


@pytest.mark.asyncio()
async def test_begin_failure_is_wrapped():
    session = _mock_session(in_transaction=False)
    session.begin.side_effect = OSError("no connection")

    with pytest.raises(SessionManagementError, match="no connection"):
        async with SQLAlchemyUnitOfWork(session=session):
            pass


@pytest.mark.asyncio()
async def test_close_failure_does_not_mask_error_in_flight():
    session = _mock_session(in_transaction=True)
    session.close.side_effect = OSError("socket closed")
    factory = MagicMock(return_value=session)

    with pytest.raises(DailyLimitExceededError):
        async with SQLAlchemyUnitOfWork(session_factory=factory):
            raise DailyLimitExceededError()

    session.rollback.assert_awaited_once()
    session.close.assert_awaited_once()


@pytest.mark.asyncio()
async def test_close_failure_does_not_mask_commit_failure():
    session = _mock_session(in_transaction=True)
    session.commit.side_effect = RuntimeError("disk full")
    session.close.side_effect = OSError("socket closed")
    factory = MagicMock(return_value=session)

    with pytest.raises(UnitOfWorkError, match="disk full"):
        async with SQLAlchemyUnitOfWork(session_factory=factory):
            pass


@pytest.mark.asyncio()
async def test_close_failure_after_clean_exit_is_raised():
    session = _mock_session(in_transaction=False)
    session.close.side_effect = OSError("socket closed")
    factory = MagicMock(return_value=session)

    with pytest.raises(SessionManagementError, match="socket closed"):
        async with SQLAlchemyUnitOfWork(session_factory=factory):
            pass

    session.commit.assert_awaited_once()
