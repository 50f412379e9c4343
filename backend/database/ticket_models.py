"""
Ticket Identity - Database Models

Table:
- ticket: one row per ticket record. Orphaned rows (both identity keys
  NULL) are kept for history and still count towards sequence numbers.
"""

import uuid
from datetime import datetime, timezone
from typing import Dict, Any

from sqlalchemy import Column, String, Boolean, Integer, DateTime
from sqlalchemy.dialects.postgresql import UUID as PGUUID

from database.connection import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TicketDB(Base):
    """
    Ticket - canonical record for a user identity.

    Uniqueness of the identity keys and of the sequence number is enforced
    by the table; NULL keys never collide.
    """
    __tablename__ = "ticket"

    record_id = Column(PGUUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    sequence_number = Column(Integer, nullable=False, unique=True)
    source_control_user = Column(String(255), unique=True, nullable=True, index=True)
    account_email = Column(String(255), unique=True, nullable=True, index=True)
    display_name = Column(String(255))
    is_premium_member = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "record_id": str(self.record_id),
            "sequence_number": self.sequence_number,
            "source_control_user": self.source_control_user,
            "account_email": self.account_email,
            "display_name": self.display_name,
            "is_premium_member": bool(self.is_premium_member),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
