"""
Unit Tests for the Ticket Document Store

Database sessions are mocked; these tests cover argument checking, error
mapping and record conversion.

Run with: pytest tests/test_ticket_store.py -v
"""

import uuid
from datetime import datetime, timezone

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.exc import IntegrityError

from database.ticket_models import TicketDB
from tickets.exceptions import TicketConflictError, TicketNotFoundError
from tickets.store import TicketStore


def make_row(**overrides) -> TicketDB:
    now = datetime.now(timezone.utc)
    values = {
        "record_id": uuid.uuid4(),
        "sequence_number": 1,
        "source_control_user": "octocat",
        "account_email": None,
        "display_name": "Octo Cat",
        "is_premium_member": False,
        "created_at": now,
        "updated_at": now,
    }
    values.update(overrides)
    return TicketDB(**values)


@pytest.fixture
def mock_session():
    """Create a mock database session."""
    session = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def store(mock_session):
    """Create store whose session factory yields the mock session."""
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = mock_session
    factory.return_value.__aexit__.return_value = False
    return TicketStore(factory)


def unique_violation(constraint: str) -> IntegrityError:
    return IntegrityError(
        "INSERT INTO ticket ...",
        {},
        Exception(f'duplicate key value violates unique constraint "{constraint}"')
    )


class TestQuery:

    @pytest.mark.asyncio
    async def test_rejects_unknown_field(self, store, mock_session):
        with pytest.raises(ValueError):
            await store.query("display_name", "Octo Cat")

        mock_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_converts_rows(self, store, mock_session):
        row = make_row()
        result = MagicMock()
        result.scalars.return_value.all.return_value = [row]
        mock_session.execute.return_value = result

        records = await store.query("source_control_user", "octocat")

        assert len(records) == 1
        assert records[0].record_id == str(row.record_id)
        assert records[0].source_control_user == "octocat"
        assert records[0].account_email is None


class TestGetById:

    @pytest.mark.asyncio
    async def test_invalid_id_is_not_found(self, store, mock_session):
        with pytest.raises(TicketNotFoundError):
            await store.get_by_id("not-a-uuid")

        mock_session.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_row_is_not_found(self, store, mock_session):
        mock_session.get.return_value = None

        with pytest.raises(TicketNotFoundError) as exc_info:
            await store.get_by_id(str(uuid.uuid4()))

        assert "not found" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_returns_record(self, store, mock_session):
        row = make_row(sequence_number=42)
        mock_session.get.return_value = row

        record = await store.get_by_id(str(row.record_id))

        assert record.sequence_number == 42
        assert record.display_name == "Octo Cat"


class TestCreate:

    @pytest.mark.asyncio
    async def test_rejects_unknown_fields(self, store, mock_session):
        with pytest.raises(ValueError):
            await store.create({"sequence_number": 1, "role": "admin"})

        mock_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_creates_row(self, store, mock_session):
        record_id = uuid.uuid4()

        async def refresh(row):
            row.record_id = record_id

        mock_session.refresh.side_effect = refresh

        record = await store.create({
            "sequence_number": 3,
            "source_control_user": "octocat",
            "account_email": None,
            "display_name": "Octo Cat",
            "is_premium_member": True,
        })

        mock_session.add.assert_called_once()
        mock_session.commit.assert_awaited_once()
        assert record.record_id == str(record_id)
        assert record.sequence_number == 3
        assert record.is_premium_member is True

    @pytest.mark.asyncio
    async def test_unique_violation_becomes_conflict(self, store, mock_session):
        mock_session.commit.side_effect = unique_violation("ticket_sequence_number_key")

        with pytest.raises(TicketConflictError) as exc_info:
            await store.create({"sequence_number": 1})

        assert exc_info.value.field == "sequence_number"
        mock_session.rollback.assert_awaited_once()


class TestUpdateById:

    @pytest.mark.asyncio
    async def test_sequence_number_is_immutable(self, store, mock_session):
        with pytest.raises(ValueError):
            await store.update_by_id(str(uuid.uuid4()), {"sequence_number": 9})

        mock_session.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_row_is_not_found(self, store, mock_session):
        mock_session.get.return_value = None

        with pytest.raises(TicketNotFoundError):
            await store.update_by_id(str(uuid.uuid4()), {"account_email": "cat@example.com"})

        mock_session.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_applies_partial_update(self, store, mock_session):
        row = make_row()
        mock_session.get.return_value = row

        record = await store.update_by_id(str(row.record_id), {
            "source_control_user": None,
            "account_email": None,
        })

        assert record.is_orphaned
        assert record.display_name == "Octo Cat"
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unique_violation_becomes_conflict(self, store, mock_session):
        mock_session.get.return_value = make_row()
        mock_session.commit.side_effect = unique_violation("ticket_account_email_key")

        with pytest.raises(TicketConflictError) as exc_info:
            await store.update_by_id(str(uuid.uuid4()), {"account_email": "cat@example.com"})

        assert exc_info.value.field == "account_email"


class TestCount:

    @pytest.mark.asyncio
    async def test_count(self, store, mock_session):
        result = MagicMock()
        result.scalar_one.return_value = 7
        mock_session.execute.return_value = result

        assert await store.count() == 7


class TestDatabasePackage:

    def test_exports_session_factory_not_request_sessions(self):
        import database

        assert set(database.__all__) == {
            'get_engine', 'get_session_factory', 'init_db', 'close_db', 'Base', 'TicketDB',
        }
        assert not hasattr(database, 'get_db')
