"""
Ticket Identity - Service Layer

Resolves a partially-known identity to exactly one ticket record:
- Lookup: one point query per identity key, run concurrently
- Reconcile: create, merge duplicates, backfill keys, or sync premium flag
- Sequencing: human-facing ticket numbers assigned at creation
"""

import asyncio
import logging
from typing import Optional, Dict, Any, Tuple

from config import get_settings
from services.crm_sync import CRMContactSync
from services.membership import MembershipService

from .exceptions import TicketConflictError
from .models import Identity, TicketRecord
from .store import TicketStore

logger = logging.getLogger(__name__)


class TicketService:
    """
    Ticket Service - identity reconciliation.

    Ensures:
    - At most one live record per source-control handle
    - At most one live record per account email
    - Sequence numbers are assigned once and never reused
    - Losing duplicates are orphaned, never deleted
    """

    def __init__(
        self,
        store: TicketStore,
        membership: MembershipService,
        crm_sync: Optional[CRMContactSync] = None,
        max_create_attempts: Optional[int] = None
    ):
        self.store = store
        self.membership = membership
        self.crm_sync = crm_sync
        self.max_create_attempts = max_create_attempts or get_settings().TICKET_CREATE_MAX_ATTEMPTS

    # ==================== READ ====================

    async def get_ticket_by_id(self, record_id: str) -> TicketRecord:
        """Return the stored record verbatim."""
        logger.info(f"Fetching ticket {record_id}")
        return await self.store.get_by_id(record_id)

    # ==================== LOOKUP ====================

    async def _first_match(self, field: str, value: Optional[str]) -> Optional[TicketRecord]:
        if value is None:
            return None
        matches = await self.store.query(field, value)
        if len(matches) > 1:
            logger.warning(f"{len(matches)} tickets share {field}; using #{matches[0].sequence_number}")
        return matches[0] if matches else None

    async def lookup(self, identity: Identity) -> Tuple[Optional[TicketRecord], Optional[TicketRecord]]:
        """
        Find the candidate record for each identity key.

        Returns:
            Tuple of (source-control candidate, account candidate)
        """
        gh_doc, aw_doc = await asyncio.gather(
            self._first_match("source_control_user", identity.source_control_handle),
            self._first_match("account_email", identity.account_email),
        )
        return gh_doc, aw_doc

    # ==================== RECONCILE ====================

    async def get_ticket_by_identity(self, identity: Identity) -> TicketRecord:
        """
        Find or create the canonical ticket for an identity.

        A create that loses a race against a concurrent create (uniqueness
        conflict on the sequence number or an identity key) is retried from
        the lookup, up to ``max_create_attempts`` times.
        """
        attempt = 0
        while True:
            attempt += 1
            gh_doc, aw_doc = await self.lookup(identity)
            try:
                ticket = await self.reconcile(identity, gh_doc, aw_doc)
                break
            except TicketConflictError as e:
                if gh_doc is not None or aw_doc is not None or attempt >= self.max_create_attempts:
                    raise
                logger.warning(f"Ticket create conflicted on {e.field or 'unique key'} (attempt {attempt}), retrying")

        self._sync_contact(identity, ticket)
        return ticket

    async def reconcile(
        self,
        identity: Identity,
        gh_doc: Optional[TicketRecord],
        aw_doc: Optional[TicketRecord]
    ) -> TicketRecord:
        """
        Decide the canonical record from the lookup candidates.

        Rules, first match wins:
        1. No candidates: create
        2. Two distinct candidates: orphan the older, move both keys to the newer
        3. One candidate: backfill a missing key, else sync premium, else unchanged
        """
        if gh_doc is None and aw_doc is None:
            return await self._create(identity)

        if gh_doc is not None and aw_doc is not None and gh_doc.record_id != aw_doc.record_id:
            return await self._merge(identity, gh_doc, aw_doc)

        doc = gh_doc if gh_doc is not None else aw_doc

        if self._can_backfill(identity, doc):
            logger.info(f"Backfilling identity keys on ticket #{doc.sequence_number}")
            return await self.store.update_by_id(doc.record_id, {
                "source_control_user": identity.source_control_handle or doc.source_control_user,
                "account_email": identity.account_email or doc.account_email,
            })

        # Premium is only trusted for identities carrying an account
        if identity.has_account:
            is_premium = await self.membership.is_premium(identity.account_id, identity.account_email)
            if is_premium != doc.is_premium_member:
                logger.info(f"Premium status of ticket #{doc.sequence_number} changed to {is_premium}")
                return await self.store.update_by_id(doc.record_id, {"is_premium_member": is_premium})

        return doc

    @staticmethod
    def _can_backfill(identity: Identity, doc: TicketRecord) -> bool:
        """A key is missing on the record and the identity supplies it."""
        missing_gh = doc.source_control_user is None and identity.source_control_handle is not None
        missing_aw = doc.account_email is None and identity.account_email is not None
        return missing_gh or missing_aw

    async def _merge(self, identity: Identity, gh_doc: TicketRecord, aw_doc: TicketRecord) -> TicketRecord:
        """
        Collapse two records matched by different keys into the newer one.

        The older record is orphaned first; if the second update fails the
        orphan stays orphaned.
        """
        if gh_doc.sequence_number < aw_doc.sequence_number:
            oldest, newest = gh_doc, aw_doc
        else:
            oldest, newest = aw_doc, gh_doc

        logger.info(f"Merging ticket #{oldest.sequence_number} into #{newest.sequence_number}")

        await self.store.update_by_id(oldest.record_id, {
            "source_control_user": None,
            "account_email": None,
        })
        return await self.store.update_by_id(newest.record_id, {
            "source_control_user": identity.source_control_handle,
            "account_email": identity.account_email,
        })

    # ==================== CREATE ====================

    async def next_sequence_number(self) -> int:
        """Count of all records plus one, orphans included."""
        return await self.store.count() + 1

    async def _create(self, identity: Identity) -> TicketRecord:
        is_premium = False
        if identity.has_account:
            is_premium = await self.membership.is_premium(identity.account_id, identity.account_email)
        sequence_number = await self.next_sequence_number()

        return await self.store.create({
            "sequence_number": sequence_number,
            "source_control_user": identity.source_control_handle,
            "account_email": identity.account_email,
            "display_name": identity.display_name,
            "is_premium_member": is_premium,
        })

    # ==================== SIDE EFFECTS ====================

    def _sync_contact(self, identity: Identity, ticket: TicketRecord) -> None:
        if self.crm_sync is None or identity.account_email is None:
            return
        self.crm_sync.notify(identity.display_name or ticket.display_name, identity.account_email)

    # ==================== ADMIN ====================

    async def get_stats(self) -> Dict[str, Any]:
        """Record counts for monitoring."""
        total, orphaned = await asyncio.gather(
            self.store.count(),
            self.store.list_orphaned(),
        )
        return {
            "total": total,
            "live": total - len(orphaned),
            "orphaned": len(orphaned),
            "next_sequence_number": total + 1,
        }
