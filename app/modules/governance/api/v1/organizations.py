from typing import Annotated
from fastapi import APIRouter, Depends
from pydantic import BaseModel
import structlog

from app.modules.governance.domain.invitations import InvitationWorkflow
from app.shared.core.dependencies import get_invitation_workflow

router = APIRouter(tags=["Organizations"])
logger = structlog.get_logger()

Workflow = Annotated[InvitationWorkflow, Depends(get_invitation_workflow)]


class InvitationCreate(BaseModel):
    email: str


@router.get("")
async def get_organization_info(workflow: Workflow):
    info = await workflow.organization_info()
    return info.model_dump(mode="json")


@router.get("/accounts")
async def list_member_accounts(workflow: Workflow):
    accounts = await workflow.member_accounts()
    return [a.model_dump(mode="json") for a in accounts]


@router.post("/invitations")
async def invite_account(request: InvitationCreate, workflow: Workflow):
    """Returns the existing OPEN invitation for this email if there is one."""
    handshake_id = await workflow.invite(request.email)
    return {"message": "Invitation sent", "handshakeId": handshake_id}


@router.get("/invitations")
async def list_invitations(workflow: Workflow):
    handshakes = await workflow.list()
    return [h.model_dump(mode="json") for h in handshakes]


@router.post("/invitations/{handshake_id}/accept")
async def accept_invitation(handshake_id: str, workflow: Workflow):
    await workflow.accept(handshake_id)
    return {"message": "Invitation accepted", "handshakeId": handshake_id}


@router.delete("/invitations/{handshake_id}")
async def cancel_invitation(handshake_id: str, workflow: Workflow):
    await workflow.cancel(handshake_id)
    return {"message": "Invitation canceled", "handshakeId": handshake_id}
