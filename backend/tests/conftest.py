"""
Shared fixtures for ticket tests.

InMemoryTicketStore behaves like the database-backed TicketStore, unique
constraints included, and records every call so tests can assert which
store operations were issued.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from tickets.exceptions import TicketConflictError, TicketNotFoundError
from tickets.models import TicketRecord
from tickets.service import TicketService
from tickets.store import QUERYABLE_FIELDS

UNIQUE_FIELDS = ("sequence_number", "source_control_user", "account_email")


class InMemoryTicketStore:
    """Dict-backed stand-in for TicketStore."""

    def __init__(self):
        self.records: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, Any]] = []
        self.before_create: Optional[Callable[["InMemoryTicketStore"], None]] = None

    # ---- helpers ----

    def seed(
        self,
        sequence_number: int,
        source_control_user: Optional[str] = None,
        account_email: Optional[str] = None,
        display_name: Optional[str] = None,
        is_premium_member: bool = False
    ) -> TicketRecord:
        """Insert a record directly, without recording a call."""
        record_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        self.records[record_id] = {
            "record_id": record_id,
            "sequence_number": sequence_number,
            "source_control_user": source_control_user,
            "account_email": account_email,
            "display_name": display_name,
            "is_premium_member": is_premium_member,
            "created_at": now,
            "updated_at": now,
        }
        return TicketRecord(**self.records[record_id])

    def get(self, record_id: str) -> TicketRecord:
        return TicketRecord(**self.records[record_id])

    @property
    def mutations(self) -> List[Tuple[str, Any]]:
        return [c for c in self.calls if c[0] in ("create", "update_by_id")]

    def _check_unique(self, data: Dict[str, Any], exclude: Optional[str] = None) -> None:
        for field in UNIQUE_FIELDS:
            value = data.get(field)
            if value is None:
                continue
            for record_id, other in self.records.items():
                if record_id != exclude and other[field] == value:
                    raise TicketConflictError(f"duplicate {field}", field)

    # ---- store interface ----

    async def query(self, field: str, value: Any) -> List[TicketRecord]:
        if field not in QUERYABLE_FIELDS:
            raise ValueError(f"Cannot query tickets by {field!r}")
        self.calls.append(("query", (field, value)))
        matches = [r for r in self.records.values() if r[field] == value]
        return [TicketRecord(**r) for r in sorted(matches, key=lambda r: r["sequence_number"])]

    async def get_by_id(self, record_id: str) -> TicketRecord:
        self.calls.append(("get_by_id", record_id))
        if record_id not in self.records:
            raise TicketNotFoundError(record_id)
        return TicketRecord(**self.records[record_id])

    async def create(self, fields: Dict[str, Any]) -> TicketRecord:
        if self.before_create is not None:
            hook, self.before_create = self.before_create, None
            hook(self)
        self.calls.append(("create", dict(fields)))
        self._check_unique(fields)
        record = self.seed(**fields)
        return record

    async def update_by_id(self, record_id: str, fields: Dict[str, Any]) -> TicketRecord:
        self.calls.append(("update_by_id", (record_id, dict(fields))))
        if record_id not in self.records:
            raise TicketNotFoundError(record_id)
        candidate = {**self.records[record_id], **fields}
        self._check_unique(candidate, exclude=record_id)
        candidate["updated_at"] = datetime.now(timezone.utc)
        self.records[record_id] = candidate
        return TicketRecord(**candidate)

    async def count(self) -> int:
        self.calls.append(("count", None))
        return len(self.records)

    async def list_orphaned(self) -> List[TicketRecord]:
        self.calls.append(("list_orphaned", None))
        return [
            TicketRecord(**r) for r in sorted(self.records.values(), key=lambda r: r["sequence_number"])
            if r["source_control_user"] is None and r["account_email"] is None
        ]


class FakeMembership:
    """Membership lookups answered from a dict of account ids or emails."""

    def __init__(self, premium: Optional[Dict[str, bool]] = None):
        self.premium = premium or {}
        self.calls: List[tuple] = []

    async def is_premium(self, account_id: Optional[str], email: Optional[str] = None) -> bool:
        self.calls.append((account_id, email))
        if account_id:
            return self.premium.get(account_id, False)
        if email:
            return self.premium.get(email, False)
        return False


@pytest.fixture
def store():
    return InMemoryTicketStore()


@pytest.fixture
def membership():
    return FakeMembership()


@pytest.fixture
def service(store, membership):
    return TicketService(store=store, membership=membership, max_create_attempts=3)
