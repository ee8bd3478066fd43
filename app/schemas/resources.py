"""
Compute Inventory Schemas - Normalization Layer

Snapshot records read from the provider (instances, instance types, volumes)
and the composite view the correlator builds from them.
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar
from pydantic import BaseModel, ConfigDict, Field, model_serializer

from app.shared.core.constants import NOT_AVAILABLE

T = TypeVar("T")


class Availability(BaseModel, Generic[T]):
    """
    Tagged optional: either present(value) or absent.
    Serialises to the bare value, or to "N/A" when absent.
    """
    present: bool = False
    value: Optional[T] = None

    @classmethod
    def of(cls, value: T) -> "Availability[T]":
        return cls(present=True, value=value)

    @classmethod
    def absent(cls) -> "Availability[T]":
        return cls(present=False, value=None)

    @classmethod
    def from_optional(cls, value: Optional[T]) -> "Availability[T]":
        return cls.absent() if value is None else cls.of(value)

    @model_serializer
    def _serialize(self) -> Any:
        return self.value if self.present else NOT_AVAILABLE


class InstanceState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting-down"
    STOPPING = "stopping"
    STOPPED = "stopped"
    TERMINATED = "terminated"


class BlockDeviceMapping(BaseModel):
    """One storage-device mapping; volume_id is None when nothing is attached."""
    device_name: str
    volume_id: Optional[str] = None


class ComputeInstance(BaseModel):
    """Provider snapshot of a single compute instance."""
    instance_id: str
    instance_type: Optional[str] = None
    image_id: Optional[str] = None
    state: Optional[InstanceState] = None
    public_ip_address: Optional[str] = None
    private_ip_address: Optional[str] = None
    launch_time: Optional[datetime] = None
    tags: Dict[str, str] = Field(default_factory=dict)
    block_device_mappings: List[BlockDeviceMapping] = Field(default_factory=list)

    @property
    def attached_volume_ids(self) -> List[str]:
        return [m.volume_id for m in self.block_device_mappings if m.volume_id]


class InstanceTypeSpec(BaseModel):
    """Capability reference data for one instance type."""
    instance_type: str
    default_vcpus: Optional[int] = None
    memory_mib: Optional[int] = None

    @property
    def memory_gib(self) -> Optional[str]:
        """Memory in GiB with two decimals, e.g. 1024 MiB -> "1.00"."""
        if not self.memory_mib:
            return None
        gib = Decimal(self.memory_mib) / Decimal(1024)
        return str(gib.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class Volume(BaseModel):
    volume_id: str
    size_gib: Optional[int] = None


class _DisplayModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CpuSpec(_DisplayModel):
    vcpus: Availability[int] = Field(default_factory=Availability[int].absent, alias="vCPUs")


class MemorySpec(_DisplayModel):
    size_in_gib: Availability[str] = Field(default_factory=Availability[str].absent, alias="SizeInGiB")


class StorageDevice(_DisplayModel):
    device_name: str = Field(..., alias="DeviceName")
    volume_id: str = Field(..., alias="VolumeId")
    size_in_gib: Availability[int] = Field(default_factory=Availability[int].absent, alias="SizeInGiB")


class StorageSpec(_DisplayModel):
    devices: List[StorageDevice] = Field(default_factory=list, alias="Devices")


class CompositeResourceView(_DisplayModel):
    """Display-ready instance joined with its type capabilities and attached storage."""
    instance_id: str = Field(..., alias="InstanceId")
    instance_type: Optional[str] = Field(None, alias="InstanceType")
    state: Optional[InstanceState] = Field(None, alias="State")
    public_ip_address: Optional[str] = Field(None, alias="PublicIpAddress")
    private_ip_address: Optional[str] = Field(None, alias="PrivateIpAddress")
    launch_time: Optional[datetime] = Field(None, alias="LaunchTime")
    cpu: CpuSpec = Field(default_factory=CpuSpec, alias="CPU")
    memory: MemorySpec = Field(default_factory=MemorySpec, alias="Memory")
    storage: StorageSpec = Field(default_factory=StorageSpec, alias="Storage")
    tags: Dict[str, str] = Field(default_factory=dict, alias="Tags")
