"""
CRM Contact Sync

Pushes ticket holders into the CRM as contacts. Sync is best-effort: the
upsert runs as a detached task, its outcome never reaches the request that
triggered it, and failures are only logged.
"""

import asyncio
import hashlib
import logging
from typing import Optional, Dict, Any, Set

import httpx

from config import get_settings

logger = logging.getLogger(__name__)


def get_crm_config() -> Dict[str, Any]:
    """Get CRM contact sync configuration from settings."""
    settings = get_settings()
    return {
        'url': settings.CRM_SYNC_URL,
        'token': settings.CRM_SYNC_TOKEN,
        'timeout': settings.CRM_SYNC_TIMEOUT,
    }


def _email_hash(email: str) -> str:
    """Partial hash for log correlation; emails are never logged."""
    return hashlib.sha256(email.lower().encode()).hexdigest()[:12]


class CRMContactSync:
    """
    CRM contact upserts.

    ``notify`` is the entry point for request handlers; ``upsert_contact``
    performs the HTTP call and raises on failure.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.config = config or get_crm_config()
        self.transport = transport
        self._pending: Set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return bool(self.config.get('url'))

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def upsert_contact(self, name: Optional[str], email: str) -> None:
        """Create or update the CRM contact for ``email``."""
        headers = {'Content-Type': 'application/json'}
        if self.config.get('token'):
            headers['Authorization'] = f"Bearer {self.config['token']}"

        async with httpx.AsyncClient(timeout=self.config['timeout'], transport=self.transport) as client:
            response = await client.post(
                self.config['url'],
                json={'name': name, 'email': email},
                headers=headers
            )
            response.raise_for_status()

        logger.info("CRM contact upserted", extra={'email_hash': _email_hash(email)})

    def notify(self, name: Optional[str], email: Optional[str]) -> Optional[asyncio.Task]:
        """
        Schedule a contact upsert without waiting for it.

        Returns the scheduled task, or None when nothing was scheduled.
        """
        if not email or not self.enabled:
            return None

        task = asyncio.create_task(self.upsert_contact(name, email))
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            logger.warning("CRM contact sync cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"CRM contact sync failed: {type(error).__name__}: {str(error)[:100]}")

    async def drain(self) -> None:
        """
        Wait for in-flight upserts (used on shutdown).

        Only tasks scheduled on the running event loop are awaited; tasks left
        behind by an earlier loop cannot be awaited from this one.
        """
        loop = asyncio.get_running_loop()
        current = [task for task in self._pending if task.get_loop() is loop]
        if current:
            await asyncio.gather(*current, return_exceptions=True)
