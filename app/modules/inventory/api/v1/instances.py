from typing import Annotated
from fastapi import APIRouter, Depends
import structlog

from app.modules.inventory.domain.correlator import ResourceCorrelator
from app.shared.core.dependencies import get_resource_correlator

router = APIRouter(tags=["Inventory"])
logger = structlog.get_logger()


@router.get("/instances")
async def list_instances(
    correlator: Annotated[ResourceCorrelator, Depends(get_resource_correlator)],
):
    """
    All visible instances joined with their type capabilities and attached volumes.
    Fields the provider did not return are rendered as "N/A".
    """
    views = await correlator.correlate()
    return [v.model_dump(mode="json", by_alias=True) for v in views]
