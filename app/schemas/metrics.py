"""
Utilization Metric Schemas
"""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class MetricKind(str, Enum):
    CPU = "cpu"
    MEMORY = "memory"
    DISK = "disk"


class MetricDimension(BaseModel):
    name: str
    value: str


class MetricQuery(BaseModel):
    """A single time-series request: one metric, fixed lookback, one statistic."""
    kind: MetricKind
    namespace: str
    metric_name: str
    dimensions: List[MetricDimension]
    period_seconds: int = 60
    window_minutes: int = 60
    stat: str = "Average"


class MetricSeries(BaseModel):
    """Samples for one metric over the lookback window, in provider order."""
    kind: MetricKind
    values: List[float] = Field(default_factory=list)


class InstanceIdentity(BaseModel):
    """The identity triple the agent-reported metrics are dimensioned by."""
    model_config = ConfigDict(populate_by_name=True)

    instance_id: str = Field(..., alias="InstanceId")
    image_id: Optional[str] = Field(None, alias="ImageId")
    instance_type: Optional[str] = Field(None, alias="InstanceType")


class InstanceMetrics(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    instance_id: str = Field(..., alias="instanceId")
    image_id: Optional[str] = Field(None, alias="imageId")
    instance_type: Optional[str] = Field(None, alias="instanceType")
    cpu_usage: List[float] = Field(default_factory=list, alias="cpuUsage")
    memory_usage: List[float] = Field(default_factory=list, alias="memoryUsage")
    disk_usage: List[float] = Field(default_factory=list, alias="diskUsage")
