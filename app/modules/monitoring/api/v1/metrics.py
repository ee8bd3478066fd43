from typing import Annotated, Optional
from fastapi import APIRouter, Depends, Query
import structlog

from app.modules.monitoring.domain.metrics import UtilizationMetricsService
from app.schemas.metrics import InstanceIdentity
from app.shared.core.dependencies import get_metrics_service

router = APIRouter(tags=["Monitoring"])
logger = structlog.get_logger()

MetricsService = Annotated[UtilizationMetricsService, Depends(get_metrics_service)]


def _identity(instance_id: str, image_id: Optional[str], instance_type: Optional[str]) -> InstanceIdentity:
    return InstanceIdentity(instance_id=instance_id, image_id=image_id, instance_type=instance_type)


@router.get("/instances")
async def list_monitorable_instances(service: MetricsService):
    """Instance id, image id and type for every instance, as needed by the metric endpoints."""
    instances = await service.list_monitorable_instances()
    return [i.model_dump(by_alias=True) for i in instances]


@router.get("/instances/{instance_id}/metrics")
async def get_all_metrics(
    instance_id: str,
    service: MetricsService,
    image_id: Optional[str] = Query(default=None),
    instance_type: Optional[str] = Query(default=None),
):
    metrics = await service.all_metrics(_identity(instance_id, image_id, instance_type))
    return metrics.model_dump(by_alias=True)


@router.get("/instances/{instance_id}/cpu")
async def get_cpu_usage(instance_id: str, service: MetricsService):
    series = await service.cpu_usage(instance_id)
    return {"instanceId": instance_id, "cpuUsage": series.values}


@router.get("/instances/{instance_id}/memory")
async def get_memory_usage(
    instance_id: str,
    service: MetricsService,
    image_id: Optional[str] = Query(default=None),
    instance_type: Optional[str] = Query(default=None),
):
    series = await service.memory_usage(_identity(instance_id, image_id, instance_type))
    return {"instanceId": instance_id, "memoryUsage": series.values}


@router.get("/instances/{instance_id}/disk")
async def get_disk_usage(
    instance_id: str,
    service: MetricsService,
    image_id: Optional[str] = Query(default=None),
    instance_type: Optional[str] = Query(default=None),
):
    series = await service.disk_usage(_identity(instance_id, image_id, instance_type))
    return {"instanceId": instance_id, "diskUsage": series.values}
