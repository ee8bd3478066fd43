import pytest
from unittest.mock import AsyncMock

from app.modules.monitoring.domain.metrics import (
    AGENT_NAMESPACE,
    EC2_NAMESPACE,
    DiskTarget,
    MetricQueryBuilder,
    UtilizationMetricsService,
)
from app.schemas.metrics import InstanceIdentity, MetricKind
from app.schemas.resources import BlockDeviceMapping, ComputeInstance
from app.shared.core.exceptions import AdapterError, MetricsUnavailableError, ValidationError

IDENTITY = InstanceIdentity(instance_id="i-1", image_id="ami-123", instance_type="t3.micro")


def _dims(query):
    return {d.name: d.value for d in query.dimensions}


def test_cpu_query_is_dimensioned_by_instance_only():
    query = MetricQueryBuilder.cpu("i-1")

    assert query.kind == MetricKind.CPU
    assert query.namespace == EC2_NAMESPACE
    assert query.metric_name == "CPUUtilization"
    assert _dims(query) == {"InstanceId": "i-1"}
    assert (query.period_seconds, query.window_minutes, query.stat) == (60, 60, "Average")


def test_memory_query_uses_agent_namespace():
    query = MetricQueryBuilder.memory(IDENTITY)

    assert query.namespace == AGENT_NAMESPACE
    assert query.metric_name == "mem_used_percent"
    assert _dims(query) == {"InstanceId": "i-1", "ImageId": "ami-123", "InstanceType": "t3.micro"}


def test_disk_query_adds_device_dimensions():
    query = MetricQueryBuilder.disk(IDENTITY, DiskTarget("nvme0n1p1", "xfs", "/"))

    assert query.metric_name == "disk_used_percent"
    assert _dims(query) == {
        "InstanceId": "i-1",
        "ImageId": "ami-123",
        "InstanceType": "t3.micro",
        "device": "nvme0n1p1",
        "fstype": "xfs",
        "path": "/",
    }


def test_resolve_disk_target_defaults():
    assert MetricQueryBuilder.resolve_disk_target(None) == DiskTarget("xvda1", "xfs", "/")
    assert MetricQueryBuilder.resolve_disk_target(ComputeInstance(instance_id="i-1")) == DiskTarget("xvda1", "xfs", "/")


def test_resolve_disk_target_uses_first_mapping():
    instance = ComputeInstance(
        instance_id="i-1",
        block_device_mappings=[
            BlockDeviceMapping(device_name="/dev/sda1", volume_id="vol-1"),
            BlockDeviceMapping(device_name="/dev/sdb", volume_id="vol-2"),
        ],
    )
    assert MetricQueryBuilder.resolve_disk_target(instance).device == "sda1"


def test_resolve_disk_target_whole_disk_root_uses_partition_name():
    instance = ComputeInstance(
        instance_id="i-1",
        block_device_mappings=[BlockDeviceMapping(device_name="/dev/xvda", volume_id="vol-1")],
    )

    assert MetricQueryBuilder.resolve_disk_target(instance) == DiskTarget("xvda1", "xfs", "/")


@pytest.mark.parametrize("device_name, expected", [
    ("/dev/xvda", "xvda1"),
    ("/dev/xvda1", "xvda1"),
    ("/dev/sdf", "sdf1"),
    ("/dev/nvme0n1", "nvme0n1p1"),
    ("/dev/nvme0n1p1", "nvme0n1p1"),
    ("xvdb", "xvdb1"),
    ("/dev/", "xvda1"),
])
def test_agent_device_name(device_name, expected):
    assert MetricQueryBuilder.agent_device_name(device_name) == expected


@pytest.mark.asyncio
@pytest.mark.parametrize("instance_id", ["", "   ", None])
async def test_cpu_usage_rejects_empty_identity(gateway, instance_id):
    service = UtilizationMetricsService(gateway)

    with pytest.raises(ValidationError):
        await service.cpu_usage(instance_id)

    gateway.query_metric.assert_not_awaited()


@pytest.mark.asyncio
async def test_all_metrics_rejects_missing_identity_before_any_query(gateway):
    service = UtilizationMetricsService(gateway)

    with pytest.raises(ValidationError):
        await service.all_metrics(InstanceIdentity(instance_id="", image_id="ami-1", instance_type="t3.micro"))
    with pytest.raises(ValidationError):
        await service.all_metrics(InstanceIdentity(instance_id="i-1", image_id=None, instance_type="t3.micro"))

    gateway.query_metric.assert_not_awaited()
    gateway.describe_instance.assert_not_awaited()


@pytest.mark.asyncio
async def test_all_metrics_assembles_three_series(gateway):
    samples = {
        "CPUUtilization": [12.5, 10.0],
        "mem_used_percent": [40.1],
        "disk_used_percent": [71.0, 71.2, 71.3],
    }

    async def fake_query(namespace, metric_name, dimensions, **kwargs):
        return samples[metric_name]

    gateway.query_metric.side_effect = fake_query
    gateway.describe_instance.return_value = ComputeInstance(
        instance_id="i-1",
        block_device_mappings=[BlockDeviceMapping(device_name="/dev/xvda", volume_id="vol-1")],
    )

    result = await UtilizationMetricsService(gateway).all_metrics(IDENTITY)

    assert result.model_dump(by_alias=True) == {
        "instanceId": "i-1",
        "imageId": "ami-123",
        "instanceType": "t3.micro",
        "cpuUsage": [12.5, 10.0],
        "memoryUsage": [40.1],
        "diskUsage": [71.0, 71.2, 71.3],
    }
    assert gateway.query_metric.await_count == 3
    disk_call = next(c for c in gateway.query_metric.await_args_list if c.kwargs["metric_name"] == "disk_used_percent")
    assert {"Name": "device", "Value": "xvda1"} in [
        {"Name": d.name, "Value": d.value} for d in disk_call.kwargs["dimensions"]
    ]


@pytest.mark.asyncio
async def test_all_metrics_empty_datapoints_are_empty_series(gateway):
    gateway.query_metric.return_value = []
    gateway.describe_instance.return_value = None

    result = await UtilizationMetricsService(gateway).all_metrics(IDENTITY)

    assert result.cpu_usage == []
    assert result.memory_usage == []
    assert result.disk_usage == []


@pytest.mark.asyncio
async def test_all_metrics_single_failure_fails_whole_operation(gateway):
    failure = AdapterError("get_metric_data failed", code="InvalidParameterCombination")

    async def fake_query(namespace, metric_name, dimensions, **kwargs):
        if metric_name == "mem_used_percent":
            raise failure
        return [1.0]

    gateway.query_metric.side_effect = fake_query
    gateway.describe_instance.return_value = None

    with pytest.raises(MetricsUnavailableError) as excinfo:
        await UtilizationMetricsService(gateway).all_metrics(IDENTITY)

    assert excinfo.value.code == "metrics_unavailable"
    assert excinfo.value.__cause__ is failure


@pytest.mark.asyncio
async def test_list_monitorable_instances(gateway):
    gateway.list_instances.return_value = [
        ComputeInstance(instance_id="i-1", image_id="ami-1", instance_type="t3.micro"),
        ComputeInstance(instance_id="i-2"),
    ]

    result = await UtilizationMetricsService(gateway).list_monitorable_instances()

    assert [r.model_dump(by_alias=True) for r in result] == [
        {"InstanceId": "i-1", "ImageId": "ami-1", "InstanceType": "t3.micro"},
        {"InstanceId": "i-2", "ImageId": None, "InstanceType": None},
    ]


@pytest.mark.asyncio
async def test_cpu_usage_propagates_gateway_error(gateway):
    gateway.query_metric = AsyncMock(side_effect=AdapterError("boom"))

    with pytest.raises(AdapterError):
        await UtilizationMetricsService(gateway).cpu_usage("i-1")
