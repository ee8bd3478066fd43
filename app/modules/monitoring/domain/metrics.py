"""
Utilization Metrics

MetricQueryBuilder turns an instance identity into CPU, memory and disk
queries; UtilizationMetricsService runs them through the gateway and
extracts the sample series.
"""

import asyncio
import re
from typing import List, NamedTuple, Optional

import structlog

from app.schemas.metrics import (
    InstanceIdentity,
    InstanceMetrics,
    MetricDimension,
    MetricKind,
    MetricQuery,
    MetricSeries,
)
from app.schemas.resources import ComputeInstance
from app.shared.adapters.base import CloudGateway
from app.shared.core.exceptions import MetricsUnavailableError
from app.shared.core.validation import require_text

logger = structlog.get_logger()

# Infrastructure-native namespace (hypervisor-level metrics)
EC2_NAMESPACE = "AWS/EC2"
CPU_METRIC = "CPUUtilization"

# Agent-reported namespace (CloudWatch agent inside the guest)
AGENT_NAMESPACE = "CWAgent"
MEMORY_METRIC = "mem_used_percent"
DISK_METRIC = "disk_used_percent"

PERIOD_SECONDS = 60
WINDOW_MINUTES = 60
STATISTIC = "Average"

DEFAULT_DISK_DEVICE = "xvda1"
DEFAULT_FILESYSTEM = "xfs"
DEFAULT_MOUNT_PATH = "/"

# Whole-disk names; the agent reports the first partition instead
WHOLE_DISK = re.compile(r"^(xvd|sd|hd|vd)[a-z]+$")
WHOLE_NVME_DISK = re.compile(r"^nvme\d+n\d+$")


class DiskTarget(NamedTuple):
    device: str
    fstype: str
    path: str


class MetricQueryBuilder:
    """Pure query construction; no I/O."""

    @staticmethod
    def agent_device_name(device_name: str) -> str:
        """
        Mapping name -> the root partition name the agent reports.

        /dev/xvda -> xvda1, /dev/sda1 -> sda1, /dev/nvme0n1 -> nvme0n1p1
        """
        name = device_name[len("/dev/"):] if device_name.startswith("/dev/") else device_name
        if not name:
            return DEFAULT_DISK_DEVICE
        if WHOLE_NVME_DISK.match(name):
            return f"{name}p1"
        if WHOLE_DISK.match(name):
            return f"{name}1"
        return name

    @classmethod
    def resolve_disk_target(cls, instance: Optional[ComputeInstance]) -> DiskTarget:
        """Disk dimensions from the instance's first storage-device mapping."""
        device = DEFAULT_DISK_DEVICE
        if instance and instance.block_device_mappings:
            name = instance.block_device_mappings[0].device_name
            if name:
                device = cls.agent_device_name(name)
        return DiskTarget(device=device, fstype=DEFAULT_FILESYSTEM, path=DEFAULT_MOUNT_PATH)

    @staticmethod
    def cpu(instance_id: str) -> MetricQuery:
        return MetricQuery(
            kind=MetricKind.CPU,
            namespace=EC2_NAMESPACE,
            metric_name=CPU_METRIC,
            dimensions=[MetricDimension(name="InstanceId", value=instance_id)],
            period_seconds=PERIOD_SECONDS,
            window_minutes=WINDOW_MINUTES,
            stat=STATISTIC,
        )

    @staticmethod
    def _agent_dimensions(identity: InstanceIdentity) -> List[MetricDimension]:
        return [
            MetricDimension(name="InstanceId", value=identity.instance_id),
            MetricDimension(name="ImageId", value=identity.image_id),
            MetricDimension(name="InstanceType", value=identity.instance_type),
        ]

    @classmethod
    def memory(cls, identity: InstanceIdentity) -> MetricQuery:
        return MetricQuery(
            kind=MetricKind.MEMORY,
            namespace=AGENT_NAMESPACE,
            metric_name=MEMORY_METRIC,
            dimensions=cls._agent_dimensions(identity),
            period_seconds=PERIOD_SECONDS,
            window_minutes=WINDOW_MINUTES,
            stat=STATISTIC,
        )

    @classmethod
    def disk(cls, identity: InstanceIdentity, target: DiskTarget) -> MetricQuery:
        dimensions = cls._agent_dimensions(identity) + [
            MetricDimension(name="device", value=target.device),
            MetricDimension(name="fstype", value=target.fstype),
            MetricDimension(name="path", value=target.path),
        ]
        return MetricQuery(
            kind=MetricKind.DISK,
            namespace=AGENT_NAMESPACE,
            metric_name=DISK_METRIC,
            dimensions=dimensions,
            period_seconds=PERIOD_SECONDS,
            window_minutes=WINDOW_MINUTES,
            stat=STATISTIC,
        )


class UtilizationMetricsService:
    """
    Fetches utilization series for one instance.

    Every operation validates the identity before any remote call.
    """

    def __init__(self, gateway: CloudGateway):
        self.gateway = gateway

    @staticmethod
    def _validated(identity: InstanceIdentity, agent_metrics: bool = True) -> InstanceIdentity:
        require_text(identity.instance_id, "instance_id")
        if agent_metrics:
            require_text(identity.image_id, "image_id")
            require_text(identity.instance_type, "instance_type")
        return identity

    async def _run(self, query: MetricQuery) -> MetricSeries:
        values = await self.gateway.query_metric(
            namespace=query.namespace,
            metric_name=query.metric_name,
            dimensions=query.dimensions,
            period_seconds=query.period_seconds,
            window_minutes=query.window_minutes,
            stat=query.stat,
        )
        return MetricSeries(kind=query.kind, values=values or [])

    async def list_monitorable_instances(self) -> List[InstanceIdentity]:
        instances = await self.gateway.list_instances()
        return [
            InstanceIdentity(
                instance_id=i.instance_id,
                image_id=i.image_id,
                instance_type=i.instance_type,
            )
            for i in instances
        ]

    async def cpu_usage(self, instance_id: str) -> MetricSeries:
        require_text(instance_id, "instance_id")
        return await self._run(MetricQueryBuilder.cpu(instance_id))

    async def memory_usage(self, identity: InstanceIdentity) -> MetricSeries:
        self._validated(identity)
        return await self._run(MetricQueryBuilder.memory(identity))

    async def disk_usage(self, identity: InstanceIdentity) -> MetricSeries:
        self._validated(identity)
        instance = await self.gateway.describe_instance(identity.instance_id)
        target = MetricQueryBuilder.resolve_disk_target(instance)
        return await self._run(MetricQueryBuilder.disk(identity, target))

    async def all_metrics(self, identity: InstanceIdentity) -> InstanceMetrics:
        """
        CPU, memory and disk fetched concurrently; all-or-nothing.
        Any single failure is reported as MetricsUnavailableError.
        """
        self._validated(identity)

        results = await asyncio.gather(
            self.cpu_usage(identity.instance_id),
            self.memory_usage(identity),
            self.disk_usage(identity),
            return_exceptions=True,
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            logger.error(
                "instance_metrics_unavailable",
                instance_id=identity.instance_id,
                errors=[str(f) for f in failures],
            )
            raise MetricsUnavailableError(
                details={"instance_id": identity.instance_id}
            ) from failures[0]

        cpu, memory, disk = results
        return InstanceMetrics(
            instance_id=identity.instance_id,
            image_id=identity.image_id,
            instance_type=identity.instance_type,
            cpu_usage=cpu.values,
            memory_usage=memory.values,
            disk_usage=disk.values,
        )
