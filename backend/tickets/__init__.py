"""
Ticket Identity Module

Resolves a user identity (source-control account, application account,
or both) to a single canonical ticket record.

Features:
- Concurrent lookup by source-control handle and account email
- Creation with sequential ticket numbers
- Duplicate merging (older record orphaned, never deleted)
- Backfill of identity keys and premium membership sync
"""

from .exceptions import TicketError, TicketNotFoundError, TicketConflictError
from .models import Identity, SourceControlIdentity, AccountIdentity, TicketRecord
from .store import TicketStore
from .service import TicketService

__all__ = [
    'TicketError',
    'TicketNotFoundError',
    'TicketConflictError',
    'Identity',
    'SourceControlIdentity',
    'AccountIdentity',
    'TicketRecord',
    'TicketStore',
    'TicketService',
]
