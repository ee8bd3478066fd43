"""
Billing API Endpoints - Cost Explorer

Provides:
- GET /billing - Last month, caller account and member breakdown
- GET /billing/last-month - Previous full UTC month totals
- GET /billing/accounts - Per linked-account costs for a date range

Failures are returned as {"status": "error"} payloads with HTTP 200.
"""

from datetime import date
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, Query
import structlog

from app.modules.reporting.domain.billing_aggregator import BillingAggregator, last_month_window
from app.shared.core.dependencies import get_billing_aggregator

logger = structlog.get_logger()
router = APIRouter(tags=["Billing"])

Aggregator = Annotated[BillingAggregator, Depends(get_billing_aggregator)]


@router.get("")
async def get_billing_costs(
    aggregator: Aggregator,
    start_date: Optional[date] = Query(default=None, description="Member breakdown start (inclusive)"),
    end_date: Optional[date] = Query(default=None, description="Member breakdown end (exclusive)"),
):
    """Defaults the member breakdown to the previous full month."""
    if start_date is None or end_date is None:
        window = last_month_window(aggregator.clock())
        start_date = start_date or window.start
        end_date = end_date or window.end
    return await aggregator.billing_report(start_date, end_date)


@router.get("/last-month")
async def get_last_month_costs(aggregator: Aggregator):
    return await aggregator.last_month_report()


@router.get("/accounts")
async def get_member_account_costs(
    aggregator: Aggregator,
    start_date: date = Query(..., description="Inclusive start"),
    end_date: date = Query(..., description="Exclusive end"),
):
    return await aggregator.member_accounts_report(start_date, end_date)
