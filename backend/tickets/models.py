"""
Ticket Identity - Data Models

Pydantic models for the caller-supplied identity and the persisted ticket
record.
"""

import json
import logging
from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


class SourceControlIdentity(BaseModel):
    """Source-control (GitHub) side of an identity."""
    model_config = ConfigDict(extra="ignore")

    login: Optional[str] = None
    name: Optional[str] = None


class AccountIdentity(BaseModel):
    """Application-account side of an identity."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = Field(None, validation_alias=AliasChoices("id", "$id"))
    email: Optional[str] = None
    name: Optional[str] = None


class Identity(BaseModel):
    """
    Partially-known description of a user.

    Either, both, or neither sub-identity may be present. The JSON keys
    ``github`` and ``appwrite`` are accepted as aliases of
    ``source_control`` and ``account``.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    source_control: Optional[SourceControlIdentity] = Field(
        None, validation_alias=AliasChoices("source_control", "github")
    )
    account: Optional[AccountIdentity] = Field(
        None, validation_alias=AliasChoices("account", "appwrite")
    )

    @property
    def source_control_handle(self) -> Optional[str]:
        return self.source_control.login if self.source_control and self.source_control.login else None

    @property
    def account_email(self) -> Optional[str]:
        return self.account.email if self.account and self.account.email else None

    @property
    def account_id(self) -> Optional[str]:
        return self.account.id if self.account and self.account.id else None

    @property
    def has_account(self) -> bool:
        """Premium information is only trusted when this is True."""
        return bool(self.account_id or self.account_email)

    @property
    def display_name(self) -> Optional[str]:
        """Account name first, source-control name as fallback."""
        if self.account and self.account.name:
            return self.account.name
        if self.source_control and self.source_control.name:
            return self.source_control.name
        return None

    @property
    def is_empty(self) -> bool:
        return self.source_control_handle is None and not self.has_account

    @classmethod
    def from_json(cls, raw: Optional[str]) -> "Identity":
        """
        Parse a JSON-encoded identity.

        Malformed input is treated as an empty identity rather than rejected.
        """
        if not raw:
            return cls()
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("identity must be a JSON object")
            return cls.model_validate(data)
        except (ValueError, ValidationError) as e:
            logger.warning(f"Unparseable identity, treating as empty: {e}")
            return cls()


class TicketRecord(BaseModel):
    """
    Ticket record as stored.

    A record with both identity keys NULL is orphaned: it lost a merge and
    is kept for history only.
    """
    model_config = ConfigDict(from_attributes=True)

    record_id: str
    sequence_number: int
    source_control_user: Optional[str] = None
    account_email: Optional[str] = None
    display_name: Optional[str] = None
    is_premium_member: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_orphaned(self) -> bool:
        return self.source_control_user is None and self.account_email is None
