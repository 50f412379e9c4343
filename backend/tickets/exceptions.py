"""
Ticket Identity - Exceptions
"""

from typing import Optional


class TicketError(Exception):
    """Base error for ticket operations."""


class TicketNotFoundError(TicketError):
    """Raised when a ticket record id does not exist in the store."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Ticket {record_id} not found")


class TicketConflictError(TicketError):
    """Raised when a write violates a uniqueness constraint of the store."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)
