from fastapi import Depends

from app.shared.adapters.aws import AWSGateway
from app.shared.adapters.aws_utils import management_credentials, member_credentials
from app.shared.adapters.base import CloudGateway
from app.shared.core.config import get_settings, Settings
from app.modules.governance.domain.invitations import InvitationWorkflow
from app.modules.inventory.domain.correlator import ResourceCorrelator
from app.modules.monitoring.domain.metrics import UtilizationMetricsService
from app.modules.reporting.domain.billing_aggregator import BillingAggregator

# Gateways are built per request; nothing is shared between requests.

def get_management_gateway(settings: Settings = Depends(get_settings)) -> CloudGateway:
    return AWSGateway(credentials=management_credentials(settings), role="management")

def get_member_gateway(settings: Settings = Depends(get_settings)) -> CloudGateway:
    return AWSGateway(credentials=member_credentials(settings), role="member")

def get_resource_correlator(gateway: CloudGateway = Depends(get_management_gateway)) -> ResourceCorrelator:
    return ResourceCorrelator(gateway)

def get_metrics_service(gateway: CloudGateway = Depends(get_management_gateway)) -> UtilizationMetricsService:
    return UtilizationMetricsService(gateway)

def get_billing_aggregator(
    gateway: CloudGateway = Depends(get_management_gateway),
    member: CloudGateway = Depends(get_member_gateway),
) -> BillingAggregator:
    return BillingAggregator(gateway, member=member)

def get_invitation_workflow(
    management: CloudGateway = Depends(get_management_gateway),
    member: CloudGateway = Depends(get_member_gateway),
) -> InvitationWorkflow:
    return InvitationWorkflow(management=management, member=member)
