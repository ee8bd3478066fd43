"""
AWS Cloud Gateway (Native Async)

Implements CloudGateway over EC2, CloudWatch, Cost Explorer, Organizations
and STS using aioboto3. One gateway instance represents one identity; a
client is opened per call and closed before returning.
"""

import time
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

import aioboto3
import structlog
from botocore.exceptions import ClientError

from app.schemas.billing import CostBucket, CostGroup, CostMetricValue
from app.schemas.metrics import MetricDimension
from app.schemas.organizations import (
    Handshake,
    HandshakeAction,
    HandshakeParty,
    MemberAccount,
    OrganizationInfo,
)
from app.schemas.resources import BlockDeviceMapping, ComputeInstance, InstanceTypeSpec, Volume
from app.shared.adapters.aws_utils import DEFAULT_BOTO_CONFIG, AWSCredentials, with_aws_retry
from app.shared.adapters.base import CloudGateway
from app.shared.core.config import get_settings
from app.shared.core.exceptions import AdapterError
from app.shared.core.ops_metrics import GATEWAY_CALLS_TOTAL, GATEWAY_LATENCY
from app.shared.core.tracing import get_tracer

logger = structlog.get_logger()

# Safety limit to prevent infinite loops on Cost Explorer pagination
MAX_COST_EXPLORER_PAGES = 300

# DescribeInstanceTypes accepts at most 100 type names per request
INSTANCE_TYPES_BATCH_SIZE = 100
VOLUME_IDS_BATCH_SIZE = 200


def _chunks(items: List[str], size: int) -> Iterable[List[str]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


def _parse_instance(raw: Dict[str, Any]) -> ComputeInstance:
    return ComputeInstance(
        instance_id=raw["InstanceId"],
        instance_type=raw.get("InstanceType"),
        image_id=raw.get("ImageId"),
        state=(raw.get("State") or {}).get("Name"),
        public_ip_address=raw.get("PublicIpAddress"),
        private_ip_address=raw.get("PrivateIpAddress"),
        launch_time=raw.get("LaunchTime"),
        tags={t["Key"]: t.get("Value") or "" for t in raw.get("Tags", []) if t.get("Key")},
        block_device_mappings=[
            BlockDeviceMapping(
                device_name=m.get("DeviceName", ""),
                volume_id=(m.get("Ebs") or {}).get("VolumeId"),
            )
            for m in raw.get("BlockDeviceMappings", [])
        ],
    )


def _parse_cost_metrics(raw: Dict[str, Any]) -> Dict[str, CostMetricValue]:
    return {
        name: CostMetricValue(amount=value.get("Amount"), unit=value.get("Unit"))
        for name, value in (raw or {}).items()
    }


def _parse_cost_bucket(raw: Dict[str, Any]) -> CostBucket:
    period = raw.get("TimePeriod", {})
    return CostBucket(
        start=date.fromisoformat(period["Start"][:10]),
        end=date.fromisoformat(period["End"][:10]),
        total=_parse_cost_metrics(raw.get("Total")),
        groups=[
            CostGroup(keys=g.get("Keys", []), metrics=_parse_cost_metrics(g.get("Metrics")))
            for g in raw.get("Groups", [])
        ],
    )


def _parse_handshake(raw: Dict[str, Any]) -> Handshake:
    return Handshake(
        id=raw["Id"],
        action=raw["Action"],
        state=raw["State"],
        parties=[HandshakeParty(id=p["Id"], type=p["Type"]) for p in raw.get("Parties", [])],
        arn=raw.get("Arn"),
        requested_at=raw.get("RequestedTimestamp"),
        expires_at=raw.get("ExpirationTimestamp"),
    )


class AWSGateway(CloudGateway):
    """
    CloudGateway bound to a single AWS identity.

    `role` only labels logs, spans and metrics ("management" or "member").
    """

    def __init__(
        self,
        credentials: Optional[AWSCredentials] = None,
        region: Optional[str] = None,
        role: str = "management",
    ):
        self.settings = get_settings()
        self.credentials = credentials
        self.region = region or self.settings.AWS_DEFAULT_REGION
        self.role = role
        self.session = aioboto3.Session()

    def _client(self, service_name: str, region: Optional[str] = None):
        kwargs: Dict[str, Any] = {
            "region_name": region or self.region,
            "config": DEFAULT_BOTO_CONFIG,
        }
        if self.settings.AWS_ENDPOINT_URL:
            kwargs["endpoint_url"] = self.settings.AWS_ENDPOINT_URL
        if self.credentials:
            kwargs.update(self.credentials.as_client_kwargs())
        return self.session.client(service_name, **kwargs)

    @asynccontextmanager
    async def _call(self, service_name: str, operation: str):
        """Span, metrics and ClientError translation around one provider call."""
        tracer = get_tracer(__name__)
        started = time.perf_counter()
        with tracer.start_as_current_span(f"aws.{service_name}.{operation}") as span:
            span.set_attribute("aws.service", service_name)
            span.set_attribute("gateway.role", self.role)
            try:
                yield
            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "Unknown")
                GATEWAY_CALLS_TOTAL.labels(service_name, operation, "error").inc()
                logger.error(
                    "aws_call_failed",
                    service=service_name,
                    operation=operation,
                    role=self.role,
                    error_code=error_code,
                    error=str(e),
                )
                raise AdapterError(
                    message=f"AWS {operation} failed: {str(e)}",
                    code=error_code,
                    details={"service": service_name, "operation": operation},
                ) from e
            except Exception as e:
                # Transport timeouts and malformed responses; retry wraps the former
                GATEWAY_CALLS_TOTAL.labels(service_name, operation, "error").inc()
                logger.error(
                    "aws_call_failed",
                    service=service_name,
                    operation=operation,
                    role=self.role,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                raise
            else:
                GATEWAY_CALLS_TOTAL.labels(service_name, operation, "success").inc()
            finally:
                GATEWAY_LATENCY.labels(service_name, operation).observe(time.perf_counter() - started)

    # --- Compute inventory ---

    @with_aws_retry
    async def list_instances(self) -> List[ComputeInstance]:
        instances: List[ComputeInstance] = []
        async with self._call("ec2", "describe_instances"):
            async with self._client("ec2") as ec2:
                paginator = ec2.get_paginator("describe_instances")
                async for page in paginator.paginate():
                    for reservation in page.get("Reservations", []):
                        for raw in reservation.get("Instances", []):
                            instances.append(_parse_instance(raw))
        logger.info("aws_instances_listed", count=len(instances), region=self.region)
        return instances

    @with_aws_retry
    async def describe_instance(self, instance_id: str) -> Optional[ComputeInstance]:
        async with self._call("ec2", "describe_instances"):
            async with self._client("ec2") as ec2:
                response = await ec2.describe_instances(InstanceIds=[instance_id])
        for reservation in response.get("Reservations", []):
            for raw in reservation.get("Instances", []):
                return _parse_instance(raw)
        return None

    @with_aws_retry
    async def list_instance_types(self, type_tags: Iterable[str]) -> List[InstanceTypeSpec]:
        wanted = sorted(set(type_tags))
        if not wanted:
            return []

        specs: List[InstanceTypeSpec] = []
        async with self._call("ec2", "describe_instance_types"):
            async with self._client("ec2") as ec2:
                for batch in _chunks(wanted, INSTANCE_TYPES_BATCH_SIZE):
                    response = await ec2.describe_instance_types(InstanceTypes=batch)
                    for raw in response.get("InstanceTypes", []):
                        if not raw.get("InstanceType"):
                            continue
                        specs.append(InstanceTypeSpec(
                            instance_type=raw["InstanceType"],
                            default_vcpus=(raw.get("VCpuInfo") or {}).get("DefaultVCpus"),
                            memory_mib=(raw.get("MemoryInfo") or {}).get("SizeInMiB"),
                        ))
        return specs

    @with_aws_retry
    async def list_volumes(self, volume_ids: Iterable[str]) -> List[Volume]:
        wanted = sorted(set(volume_ids))
        if not wanted:
            return []

        volumes: List[Volume] = []
        async with self._call("ec2", "describe_volumes"):
            async with self._client("ec2") as ec2:
                for batch in _chunks(wanted, VOLUME_IDS_BATCH_SIZE):
                    response = await ec2.describe_volumes(VolumeIds=batch)
                    for raw in response.get("Volumes", []):
                        if not raw.get("VolumeId"):
                            continue
                        volumes.append(Volume(volume_id=raw["VolumeId"], size_gib=raw.get("Size")))
        return volumes

    # --- Metrics ---

    @with_aws_retry
    async def query_metric(
        self,
        namespace: str,
        metric_name: str,
        dimensions: List[MetricDimension],
        period_seconds: int = 60,
        window_minutes: int = 60,
        stat: str = "Average",
    ) -> List[float]:
        end_time = datetime.now(timezone.utc)
        start_time = end_time - timedelta(minutes=window_minutes)

        async with self._call("cloudwatch", "get_metric_data"):
            async with self._client("cloudwatch", region=self.settings.metrics_region) as cloudwatch:
                response = await cloudwatch.get_metric_data(
                    MetricDataQueries=[{
                        "Id": "m0",
                        "MetricStat": {
                            "Metric": {
                                "Namespace": namespace,
                                "MetricName": metric_name,
                                "Dimensions": [{"Name": d.name, "Value": d.value} for d in dimensions],
                            },
                            "Period": period_seconds,
                            "Stat": stat,
                        },
                    }],
                    StartTime=start_time,
                    EndTime=end_time,
                )

        results = response.get("MetricDataResults", [])
        if not results:
            return []
        return [float(v) for v in results[0].get("Values", [])]

    # --- Billing ---

    @with_aws_retry
    async def query_cost(
        self,
        start_date: date,
        end_date: date,
        metrics: List[str],
        granularity: str = "MONTHLY",
        group_by: Optional[str] = None,
    ) -> List[CostBucket]:
        request_params: Dict[str, Any] = {
            "TimePeriod": {
                "Start": start_date.isoformat(),
                "End": end_date.isoformat(),
            },
            "Granularity": granularity,
            "Metrics": list(metrics),
        }
        if group_by:
            request_params["GroupBy"] = [{"Type": "DIMENSION", "Key": group_by}]

        buckets: List[CostBucket] = []
        async with self._call("ce", "get_cost_and_usage"):
            async with self._client("ce", region=self.settings.COST_EXPLORER_REGION) as client:
                pages_fetched = 0
                while pages_fetched < MAX_COST_EXPLORER_PAGES:
                    response = await client.get_cost_and_usage(**request_params)
                    buckets.extend(_parse_cost_bucket(r) for r in response.get("ResultsByTime", []))

                    pages_fetched += 1
                    if "NextPageToken" in response:
                        request_params["NextPageToken"] = response["NextPageToken"]
                    else:
                        break
        return buckets

    # --- Organizations ---

    @with_aws_retry
    async def invite_account(self, email: str) -> str:
        async with self._call("organizations", "invite_account_to_organization"):
            async with self._client("organizations") as org:
                response = await org.invite_account_to_organization(
                    Target={"Type": "EMAIL", "Id": email}
                )
        return response["Handshake"]["Id"]

    @with_aws_retry
    async def list_handshakes(self, action: Optional[HandshakeAction] = None) -> List[Handshake]:
        params: Dict[str, Any] = {}
        if action:
            params["Filter"] = {"ActionType": action.value}

        handshakes: List[Handshake] = []
        async with self._call("organizations", "list_handshakes_for_account"):
            async with self._client("organizations") as org:
                paginator = org.get_paginator("list_handshakes_for_account")
                async for page in paginator.paginate(**params):
                    handshakes.extend(_parse_handshake(h) for h in page.get("Handshakes", []))
        return handshakes

    @with_aws_retry
    async def accept_handshake(self, handshake_id: str) -> None:
        async with self._call("organizations", "accept_handshake"):
            async with self._client("organizations") as org:
                await org.accept_handshake(HandshakeId=handshake_id)

    @with_aws_retry
    async def cancel_handshake(self, handshake_id: str) -> None:
        async with self._call("organizations", "cancel_handshake"):
            async with self._client("organizations") as org:
                await org.cancel_handshake(HandshakeId=handshake_id)

    @with_aws_retry
    async def describe_organization(self) -> OrganizationInfo:
        async with self._call("organizations", "describe_organization"):
            async with self._client("organizations") as org:
                response = await org.describe_organization()
        raw = response["Organization"]
        return OrganizationInfo(
            id=raw["Id"],
            arn=raw.get("Arn"),
            feature_set=raw.get("FeatureSet"),
            master_account_id=raw.get("MasterAccountId"),
            master_account_email=raw.get("MasterAccountEmail"),
        )

    @with_aws_retry
    async def list_accounts(self) -> List[MemberAccount]:
        accounts: List[MemberAccount] = []
        async with self._call("organizations", "list_accounts"):
            async with self._client("organizations") as org:
                paginator = org.get_paginator("list_accounts")
                async for page in paginator.paginate():
                    for raw in page.get("Accounts", []):
                        accounts.append(MemberAccount(
                            id=raw["Id"],
                            name=raw.get("Name"),
                            email=raw.get("Email"),
                            status=raw.get("Status"),
                            joined_method=raw.get("JoinedMethod"),
                            joined_at=raw.get("JoinedTimestamp"),
                        ))
        return accounts

    # --- Identity ---

    @with_aws_retry
    async def get_caller_account_id(self) -> str:
        async with self._call("sts", "get_caller_identity"):
            async with self._client("sts") as sts:
                response = await sts.get_caller_identity()
        return response["Account"]
