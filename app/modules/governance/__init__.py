"""
Governance Module

Provides organization membership management:
- InvitationWorkflow: idempotent invite, accept, cancel and list of handshakes
"""

from .domain.invitations import InvitationWorkflow

__all__ = ["InvitationWorkflow"]
