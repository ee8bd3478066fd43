"""
Invitation Workflow

Organization-membership invitations (handshakes) driven against the remote
Organizations service. Two identities are required and injected explicitly:

- management: the organization's management account; invites and cancels
- member: the invited account; accepts and lists received invitations

`invite` is check-then-act: an existing OPEN invitation for the same email
is reused, but two concurrent calls can still both create one because the
remote side offers no idempotency token.
"""

from typing import List, Optional

import structlog

from app.schemas.organizations import (
    Handshake,
    HandshakeAction,
    HandshakeState,
    MemberAccount,
    OrganizationInfo,
)
from app.shared.adapters.base import CloudGateway
from app.shared.core.validation import require_text

logger = structlog.get_logger()


class InvitationWorkflow:
    def __init__(self, management: CloudGateway, member: CloudGateway):
        self.management = management
        self.member = member

    async def find_open_invitation(self, email: str) -> Optional[Handshake]:
        """OPEN invitation whose EMAIL party matches, case-insensitively."""
        handshakes = await self.management.list_handshakes(action=HandshakeAction.INVITE)
        return next(
            (
                h for h in handshakes
                if h.action == HandshakeAction.INVITE
                and h.state == HandshakeState.OPEN
                and h.has_email_party(email)
            ),
            None,
        )

    async def invite(self, email: str) -> str:
        email = require_text(email, "email")

        existing = await self.find_open_invitation(email)
        if existing:
            logger.info("invitation_reused", handshake_id=existing.id, email=email)
            return existing.id

        handshake_id = await self.management.invite_account(email)
        logger.info("invitation_created", handshake_id=handshake_id, email=email)
        return handshake_id

    async def accept(self, handshake_id: str) -> None:
        """Accept as the invited account; invalid states are rejected remotely."""
        handshake_id = require_text(handshake_id, "handshake_id")
        await self.member.accept_handshake(handshake_id)
        logger.info("invitation_accepted", handshake_id=handshake_id)

    async def cancel(self, handshake_id: str) -> None:
        handshake_id = require_text(handshake_id, "handshake_id")
        await self.management.cancel_handshake(handshake_id)
        logger.info("invitation_canceled", handshake_id=handshake_id)

    async def list(self) -> List[Handshake]:
        """Invitations received by the member identity."""
        handshakes = await self.member.list_handshakes(action=HandshakeAction.INVITE)
        return [h for h in handshakes if h.action == HandshakeAction.INVITE]

    async def organization_info(self) -> OrganizationInfo:
        return await self.management.describe_organization()

    async def member_accounts(self) -> List[MemberAccount]:
        return await self.management.list_accounts()
