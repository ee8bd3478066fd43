"""
Organization Membership Schemas
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class HandshakeAction(str, Enum):
    INVITE = "INVITE"
    ENABLE_ALL_FEATURES = "ENABLE_ALL_FEATURES"
    APPROVE_ALL_FEATURES = "APPROVE_ALL_FEATURES"
    ADD_ORGANIZATIONS_SERVICE_LINKED_ROLE = "ADD_ORGANIZATIONS_SERVICE_LINKED_ROLE"


class HandshakeState(str, Enum):
    REQUESTED = "REQUESTED"
    OPEN = "OPEN"
    ACCEPTED = "ACCEPTED"
    CANCELED = "CANCELED"
    DECLINED = "DECLINED"
    EXPIRED = "EXPIRED"


class PartyType(str, Enum):
    ACCOUNT = "ACCOUNT"
    ORGANIZATION = "ORGANIZATION"
    EMAIL = "EMAIL"


class HandshakeParty(BaseModel):
    id: str
    type: PartyType


class Handshake(BaseModel):
    id: str
    action: HandshakeAction
    state: HandshakeState
    parties: List[HandshakeParty] = Field(default_factory=list)
    arn: Optional[str] = None
    requested_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    def has_email_party(self, email: str) -> bool:
        target = email.lower()
        return any(
            p.type == PartyType.EMAIL and p.id.lower() == target
            for p in self.parties
        )


class OrganizationInfo(BaseModel):
    id: str
    arn: Optional[str] = None
    feature_set: Optional[str] = None
    master_account_id: Optional[str] = None
    master_account_email: Optional[str] = None


class MemberAccount(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    status: Optional[str] = None
    joined_method: Optional[str] = None
    joined_at: Optional[datetime] = None
