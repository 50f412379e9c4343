"""
Ticket Identity - Document Store

Thin document-store client over the ``ticket`` table. Each operation runs
in its own session and commits before returning, so two operations can be
awaited concurrently.
"""

import uuid
import logging
from typing import Optional, Dict, Any, List

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from database.ticket_models import TicketDB

from .exceptions import TicketConflictError, TicketNotFoundError
from .models import TicketRecord

logger = logging.getLogger(__name__)

# Fields that may be used as query filters
QUERYABLE_FIELDS = ("source_control_user", "account_email")

# Fields a caller may write
WRITABLE_FIELDS = (
    "sequence_number",
    "source_control_user",
    "account_email",
    "display_name",
    "is_premium_member",
)


def _parse_record_id(record_id: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(record_id))
    except (TypeError, ValueError):
        return None


def _check_fields(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - set(WRITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown ticket fields: {sorted(unknown)}")


def _conflict_field(error: IntegrityError) -> Optional[str]:
    message = str(error.orig) if error.orig is not None else str(error)
    for field in WRITABLE_FIELDS:
        if field in message:
            return field
    return None


class TicketStore:
    """
    Ticket document store.

    Mirrors a document-store client: equality query, get by id, create,
    partial update by id, and a total count.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def query(self, field: str, value: Any) -> List[TicketRecord]:
        """Return records whose ``field`` equals ``value``."""
        if field not in QUERYABLE_FIELDS:
            raise ValueError(f"Cannot query tickets by {field!r}")

        async with self.session_factory() as session:
            result = await session.execute(
                select(TicketDB)
                .where(getattr(TicketDB, field) == value)
                .order_by(TicketDB.sequence_number)
            )
            return [TicketRecord(**row.to_dict()) for row in result.scalars().all()]

    async def get_by_id(self, record_id: str) -> TicketRecord:
        """Fetch a record by id; raises TicketNotFoundError if absent."""
        key = _parse_record_id(record_id)
        if key is None:
            raise TicketNotFoundError(record_id)

        async with self.session_factory() as session:
            row = await session.get(TicketDB, key)
            if row is None:
                raise TicketNotFoundError(record_id)
            return TicketRecord(**row.to_dict())

    async def create(self, fields: Dict[str, Any]) -> TicketRecord:
        """Insert a new record and return it."""
        _check_fields(fields)

        async with self.session_factory() as session:
            row = TicketDB(**fields)
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                field = _conflict_field(e)
                raise TicketConflictError(f"Ticket create conflicts on {field or 'unique key'}", field) from e
            await session.refresh(row)

            logger.info(f"Created ticket {row.record_id} (#{row.sequence_number})")
            return TicketRecord(**row.to_dict())

    async def update_by_id(self, record_id: str, fields: Dict[str, Any]) -> TicketRecord:
        """Apply a partial update and return the updated record."""
        _check_fields(fields)
        if "sequence_number" in fields:
            raise ValueError("sequence_number is assigned at creation and cannot change")

        key = _parse_record_id(record_id)
        if key is None:
            raise TicketNotFoundError(record_id)

        async with self.session_factory() as session:
            row = await session.get(TicketDB, key)
            if row is None:
                raise TicketNotFoundError(record_id)

            for name, value in fields.items():
                setattr(row, name, value)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                field = _conflict_field(e)
                raise TicketConflictError(f"Ticket update conflicts on {field or 'unique key'}", field) from e
            await session.refresh(row)

            logger.info(f"Updated ticket {row.record_id}: {sorted(fields)}")
            return TicketRecord(**row.to_dict())

    async def count(self) -> int:
        """Total records, orphans included."""
        async with self.session_factory() as session:
            result = await session.execute(select(func.count()).select_from(TicketDB))
            return int(result.scalar_one())

    async def list_orphaned(self) -> List[TicketRecord]:
        """Records that lost a merge (both identity keys NULL)."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(TicketDB)
                .where(TicketDB.source_control_user.is_(None))
                .where(TicketDB.account_email.is_(None))
                .order_by(TicketDB.sequence_number)
            )
            return [TicketRecord(**row.to_dict()) for row in result.scalars().all()]
