"""
Ticket Identity - API Router

Provides REST API endpoints for ticket records:
- GET /api/ticket/get-ticket-doc?id=... - Get a ticket by record id
- GET /api/ticket/get-ticket-doc?user=... - Find or create the ticket for an identity
- GET /api/ticket/status - Module status
- GET /api/ticket/stats - Record counts
- GET /api/ticket/orphaned - Records that lost a merge
"""

import logging
from functools import lru_cache
from typing import Optional, List

from fastapi import APIRouter, Depends, Query

from database import get_session_factory
from services.crm_sync import CRMContactSync
from services.membership import MembershipService

from .models import Identity, TicketRecord
from .service import TicketService
from .store import TicketStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ticket", tags=["Tickets"])


# ==================== DEPENDENCIES ====================

@lru_cache()
def get_crm_sync() -> CRMContactSync:
    """
    Process-wide CRM sync; it tracks in-flight upserts.

    The instance outlives any one event loop (a test client starts a fresh
    loop per client), so each scheduled task stays bound to the loop that
    created it and shutdown only drains the tasks of the current loop.
    """
    return CRMContactSync()


def get_ticket_service() -> TicketService:
    return TicketService(
        store=TicketStore(get_session_factory()),
        membership=MembershipService(),
        crm_sync=get_crm_sync(),
    )


# ==================== ENDPOINTS ====================

@router.get("/status")
async def get_ticket_status():
    """
    Get ticket module status.
    No authentication required.
    """
    return {
        "status": "ok",
        "module": "tickets",
        "version": "1.0.0",
        "features": {
            "lookup_by_id": True,
            "reconcile_identity": True,
            "merge_duplicates": True,
            "premium_sync": True,
            "crm_contact_sync": get_crm_sync().enabled,
        }
    }


@router.get("/get-ticket-doc", response_model=TicketRecord)
async def get_ticket_doc(
    id: Optional[str] = Query(None, description="Ticket record id"),
    user: Optional[str] = Query(None, description="JSON-encoded identity"),
    service: TicketService = Depends(get_ticket_service)
):
    """
    Get a ticket record.

    **Modes:**
    - `id` given: the record with that id, verbatim
    - otherwise: the canonical record for the `user` identity, created or
      merged as needed. A missing or malformed `user` is an empty identity.
    """
    if id is not None:
        return await service.get_ticket_by_id(id)

    identity = Identity.from_json(user)
    return await service.get_ticket_by_identity(identity)


@router.get("/stats")
async def get_ticket_stats(service: TicketService = Depends(get_ticket_service)):
    """Total, live and orphaned record counts."""
    return await service.get_stats()


@router.get("/orphaned", response_model=List[TicketRecord])
async def get_orphaned_tickets(service: TicketService = Depends(get_ticket_service)):
    """
    Records with both identity keys cleared.

    These lost a merge (or were created from an empty identity) and are
    kept for history.
    """
    return await service.store.list_orphaned()
