"""
Billing Schemas

Raw cost buckets as returned by the provider, and the aggregated views
derived from them. Amounts stay as the provider's strings until the
aggregator folds them into Decimals.
"""

from datetime import date
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class CostMetricValue(BaseModel):
    amount: Optional[str] = None
    unit: Optional[str] = None


class CostGroup(BaseModel):
    keys: List[str] = Field(default_factory=list)
    metrics: Dict[str, CostMetricValue] = Field(default_factory=dict)


class CostBucket(BaseModel):
    """One time bucket of a cost-and-usage query."""
    start: date
    end: date
    total: Dict[str, CostMetricValue] = Field(default_factory=dict)
    groups: List[CostGroup] = Field(default_factory=list)


class BillingPeriod(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_date: date = Field(..., alias="startDate")
    end_date: date = Field(..., alias="endDate")  # Inclusive, display only
    amortized_cost: str = Field(..., alias="amortizedCost")
    unblended_cost: str = Field(..., alias="unblendedCost")
    net_amortized_cost: str = Field(..., alias="netAmortizedCost")
    net_unblended_cost: str = Field(..., alias="netUnblendedCost")
    currency: str = "USD"


class TimePeriod(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start: date = Field(..., alias="Start")
    end: date = Field(..., alias="End")


class AccountCost(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    account_id: Optional[str] = Field(None, alias="accountId")
    blended_cost: str = Field(..., alias="blendedCost")
    unblended_cost: str = Field(..., alias="unblendedCost")
    amortized_cost: str = Field(..., alias="amortizedCost")
    currency: str = "USD"


class AccountCostBreakdown(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    time_period: TimePeriod = Field(..., alias="timePeriod")
    accounts: List[AccountCost] = Field(default_factory=list)
