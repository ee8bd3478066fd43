from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable, List, Optional

from app.schemas.billing import CostBucket
from app.schemas.metrics import MetricDimension
from app.schemas.organizations import Handshake, HandshakeAction, MemberAccount, OrganizationInfo
from app.schemas.resources import ComputeInstance, InstanceTypeSpec, Volume


class CloudGateway(ABC):
    """
    Abstract capability interface over the cloud provider APIs.

    Standardizes the interface for:
    - Compute inventory (instances, instance types, volumes)
    - Time-series metric queries
    - Cost-and-usage queries
    - Organization membership handshakes

    Every call may raise AdapterError; retry policy belongs to implementations.
    """

    @abstractmethod
    async def list_instances(self) -> List[ComputeInstance]:
        """All instances visible to this identity, reservations flattened."""
        pass

    @abstractmethod
    async def describe_instance(self, instance_id: str) -> Optional[ComputeInstance]:
        pass

    @abstractmethod
    async def list_instance_types(self, type_tags: Iterable[str]) -> List[InstanceTypeSpec]:
        pass

    @abstractmethod
    async def list_volumes(self, volume_ids: Iterable[str]) -> List[Volume]:
        pass

    @abstractmethod
    async def query_metric(
        self,
        namespace: str,
        metric_name: str,
        dimensions: List[MetricDimension],
        period_seconds: int = 60,
        window_minutes: int = 60,
        stat: str = "Average",
    ) -> List[float]:
        """Sample values for one metric over the trailing window; [] when no datapoints."""
        pass

    @abstractmethod
    async def query_cost(
        self,
        start_date: date,
        end_date: date,
        metrics: List[str],
        granularity: str = "MONTHLY",
        group_by: Optional[str] = None,
    ) -> List[CostBucket]:
        """Cost buckets over the half-open interval [start_date, end_date)."""
        pass

    @abstractmethod
    async def invite_account(self, email: str) -> str:
        """Invite an account by email; returns the new handshake id."""
        pass

    @abstractmethod
    async def list_handshakes(self, action: Optional[HandshakeAction] = None) -> List[Handshake]:
        pass

    @abstractmethod
    async def accept_handshake(self, handshake_id: str) -> None:
        pass

    @abstractmethod
    async def cancel_handshake(self, handshake_id: str) -> None:
        pass

    @abstractmethod
    async def get_caller_account_id(self) -> str:
        pass

    @abstractmethod
    async def describe_organization(self) -> OrganizationInfo:
        pass

    @abstractmethod
    async def list_accounts(self) -> List[MemberAccount]:
        pass
