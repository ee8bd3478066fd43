"""
Resource Correlator

Joins compute instances with their instance-type capabilities and attached
volumes into one composite view per instance.
"""

from typing import Dict, List

import structlog

from app.schemas.resources import (
    Availability,
    CompositeResourceView,
    ComputeInstance,
    CpuSpec,
    InstanceTypeSpec,
    MemorySpec,
    StorageDevice,
    StorageSpec,
    Volume,
)
from app.shared.adapters.base import CloudGateway

logger = structlog.get_logger()


class ResourceCorrelator:
    """
    Builds CompositeResourceView records from three sequential gateway reads.

    Any gateway failure aborts the pass; there are no partial results.
    """

    def __init__(self, gateway: CloudGateway):
        self.gateway = gateway

    async def correlate(self) -> List[CompositeResourceView]:
        instances = await self.gateway.list_instances()

        # Only fetch specs and volumes the instances actually reference
        type_tags = {i.instance_type for i in instances if i.instance_type}
        type_specs = await self._load_type_specs(type_tags)

        volume_ids = {vid for i in instances for vid in i.attached_volume_ids}
        volumes = await self._load_volumes(volume_ids)

        views = [self.build_view(i, type_specs, volumes) for i in instances]
        logger.info(
            "resources_correlated",
            instances=len(views),
            instance_types=len(type_specs),
            volumes=len(volumes),
        )
        return views

    async def _load_type_specs(self, type_tags: set) -> Dict[str, InstanceTypeSpec]:
        if not type_tags:
            return {}
        specs = await self.gateway.list_instance_types(type_tags)
        return {spec.instance_type: spec for spec in specs}

    async def _load_volumes(self, volume_ids: set) -> Dict[str, Volume]:
        if not volume_ids:
            return {}
        volumes = await self.gateway.list_volumes(volume_ids)
        return {volume.volume_id: volume for volume in volumes}

    @staticmethod
    def build_view(
        instance: ComputeInstance,
        type_specs: Dict[str, InstanceTypeSpec],
        volumes: Dict[str, Volume],
    ) -> CompositeResourceView:
        spec = type_specs.get(instance.instance_type) if instance.instance_type else None

        # Unknown type or a zero count both render as "N/A"
        vcpus = Availability[int].from_optional(spec.default_vcpus or None) if spec else Availability[int].absent()
        memory = Availability[str].from_optional(spec.memory_gib) if spec else Availability[str].absent()

        devices = []
        for mapping in instance.block_device_mappings:
            if not mapping.volume_id:
                continue
            volume = volumes.get(mapping.volume_id)
            size = volume.size_gib if volume and volume.size_gib else None
            devices.append(StorageDevice(
                device_name=mapping.device_name,
                volume_id=mapping.volume_id,
                size_in_gib=Availability[int].from_optional(size),
            ))

        return CompositeResourceView(
            instance_id=instance.instance_id,
            instance_type=instance.instance_type,
            state=instance.state,
            public_ip_address=instance.public_ip_address,
            private_ip_address=instance.private_ip_address,
            launch_time=instance.launch_time,
            cpu=CpuSpec(vcpus=vcpus),
            memory=MemorySpec(size_in_gib=memory),
            storage=StorageSpec(devices=devices),
            tags=dict(instance.tags),
        )
