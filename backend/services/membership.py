"""
Membership Lookup Service

Answers whether an application account currently holds a premium
membership. Lookups are keyed on the account id, or on the account email when
the account part carries no id; callers without an account are never
premium.
"""

import logging
from typing import Optional, Dict, Any

import httpx

from config import get_settings

logger = logging.getLogger(__name__)


class MembershipLookupError(Exception):
    """Raised when the membership service cannot answer a premium lookup."""


def get_membership_config() -> Dict[str, Any]:
    """Get membership service configuration from settings."""
    settings = get_settings()
    return {
        'url': settings.MEMBERSHIP_API_URL.rstrip('/'),
        'token': settings.MEMBERSHIP_API_TOKEN,
        'timeout': settings.MEMBERSHIP_API_TIMEOUT,
    }


class MembershipService:
    """
    Premium membership lookups over HTTP.

    ``GET {url}/members/{account_id}`` (or ``GET {url}/members?email=...``
    when only the email is known) returns ``{"premium": bool}``; a 404 means
    the account has no membership.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.config = config or get_membership_config()
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.config.get('url'))

    async def is_premium(self, account_id: Optional[str], email: Optional[str] = None) -> bool:
        """
        Current premium status for an account.

        Raises:
            MembershipLookupError: service unreachable or answered with an error
        """
        if not account_id and not email:
            return False
        if not self.enabled:
            logger.debug("Membership service not configured, treating account as non-premium")
            return False

        headers = {'Accept': 'application/json'}
        if self.config.get('token'):
            headers['Authorization'] = f"Bearer {self.config['token']}"

        try:
            async with httpx.AsyncClient(timeout=self.config['timeout'], transport=self.transport) as client:
                if account_id:
                    response = await client.get(
                        f"{self.config['url']}/members/{account_id}",
                        headers=headers
                    )
                else:
                    response = await client.get(
                        f"{self.config['url']}/members",
                        params={'email': email},
                        headers=headers
                    )
        except httpx.TimeoutException as e:
            raise MembershipLookupError("Membership lookup timed out") from e
        except httpx.HTTPError as e:
            raise MembershipLookupError(f"Cannot reach membership service: {str(e)[:100]}") from e

        if response.status_code == 404:
            return False
        if response.status_code != 200:
            raise MembershipLookupError(
                f"Membership lookup failed: HTTP {response.status_code}"
            )

        data = response.json()
        return bool(data.get('premium', False))
