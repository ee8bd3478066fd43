"""
Billing Aggregator

Sums Cost Explorer metrics over the previous full UTC month and breaks costs
down per linked account. Public *_report methods never raise: billing views
are diagnostic, so failures become a {"status": "error"} payload.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from functools import reduce
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence

import structlog

from app.schemas.billing import (
    AccountCost,
    AccountCostBreakdown,
    BillingPeriod,
    CostBucket,
    CostMetricValue,
    TimePeriod,
)
from app.shared.adapters.base import CloudGateway
from app.shared.core.constants import DEFAULT_CURRENCY
from app.shared.core.exceptions import CloudLensException, CostParseError, ValidationError

logger = structlog.get_logger()

AMORTIZED = "AmortizedCost"
UNBLENDED = "UnblendedCost"
NET_AMORTIZED = "NetAmortizedCost"
NET_UNBLENDED = "NetUnblendedCost"
BLENDED = "BlendedCost"

PERIOD_METRICS = [AMORTIZED, UNBLENDED, NET_AMORTIZED, NET_UNBLENDED]
ACCOUNT_METRICS = [BLENDED, UNBLENDED, AMORTIZED]
LINKED_ACCOUNT = "LINKED_ACCOUNT"
MONTHLY = "MONTHLY"

TWO_PLACES = Decimal("0.01")


class BillingWindow(NamedTuple):
    start: date
    end: date           # Exclusive, used as the query boundary
    end_display: date   # Inclusive last day, display only


def last_month_window(now: datetime) -> BillingWindow:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    today = now.astimezone(timezone.utc).date()
    this_month_start = today.replace(day=1)
    end_display = this_month_start - timedelta(days=1)
    return BillingWindow(
        start=end_display.replace(day=1),
        end=this_month_start,
        end_display=end_display,
    )


def format_amount(amount: Decimal) -> str:
    """Two decimals, half-up: Decimal("15.005") -> "15.01"."""
    return str(amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


def parse_amount(value: Optional[CostMetricValue], metric: str) -> Decimal:
    """Missing amounts count as zero; present but malformed amounts are an error."""
    if value is None or value.amount is None or value.amount == "":
        return Decimal("0")
    try:
        amount = Decimal(value.amount)
    except InvalidOperation as e:
        raise CostParseError(
            f"Unparseable {metric} amount",
            details={"metric": metric, "amount": value.amount},
        ) from e
    if not amount.is_finite():
        raise CostParseError(
            f"Unparseable {metric} amount",
            details={"metric": metric, "amount": value.amount},
        )
    return amount


def sum_bucket_totals(buckets: Sequence[CostBucket], metrics: Sequence[str]) -> Dict[str, Decimal]:
    """Fold every bucket's totals into one Decimal per metric; rounding happens later."""
    def add(acc: Dict[str, Decimal], bucket: CostBucket) -> Dict[str, Decimal]:
        return {m: acc[m] + parse_amount(bucket.total.get(m), m) for m in metrics}

    return reduce(add, buckets, {m: Decimal("0") for m in metrics})


def _error_payload(message: str, error: Exception) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"status": "error", "message": message, "error": str(error)}
    if isinstance(error, CloudLensException):
        payload["code"] = error.code
    return payload


class BillingAggregator:
    """
    Cost Explorer reads go through `gateway` (management identity). The
    account reported by billing_report is the `member` identity's own,
    falling back to `gateway` when no member gateway is supplied.
    """

    def __init__(
        self,
        gateway: CloudGateway,
        clock: Optional[Callable[[], datetime]] = None,
        member: Optional[CloudGateway] = None,
    ):
        self.gateway = gateway
        self.member = member
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def last_month_cost(self) -> BillingPeriod:
        window = last_month_window(self.clock())
        buckets = await self.gateway.query_cost(
            start_date=window.start,
            end_date=window.end,
            metrics=PERIOD_METRICS,
            granularity=MONTHLY,
        )
        totals = sum_bucket_totals(buckets, PERIOD_METRICS)

        currency = DEFAULT_CURRENCY
        if buckets:
            first = buckets[0].total.get(AMORTIZED)
            currency = (first.unit if first else None) or DEFAULT_CURRENCY

        logger.info(
            "billing_last_month_aggregated",
            start=window.start.isoformat(),
            end=window.end.isoformat(),
            buckets=len(buckets),
        )
        return BillingPeriod(
            start_date=window.start,
            end_date=window.end_display,
            amortized_cost=format_amount(totals[AMORTIZED]),
            unblended_cost=format_amount(totals[UNBLENDED]),
            net_amortized_cost=format_amount(totals[NET_AMORTIZED]),
            net_unblended_cost=format_amount(totals[NET_UNBLENDED]),
            currency=currency,
        )

    async def member_accounts_cost(self, start_date: date, end_date: date) -> List[AccountCostBreakdown]:
        """Per linked-account costs over [start_date, end_date), one row per group per bucket."""
        if start_date >= end_date:
            raise ValidationError(
                "start_date must be before end_date",
                details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
            )

        buckets = await self.gateway.query_cost(
            start_date=start_date,
            end_date=end_date,
            metrics=ACCOUNT_METRICS,
            granularity=MONTHLY,
            group_by=LINKED_ACCOUNT,
        )

        breakdown = []
        for bucket in buckets:
            accounts = []
            for group in bucket.groups:
                blended = group.metrics.get(BLENDED)
                accounts.append(AccountCost(
                    account_id=group.keys[0] if group.keys else None,
                    blended_cost=format_amount(parse_amount(blended, BLENDED)),
                    unblended_cost=format_amount(parse_amount(group.metrics.get(UNBLENDED), UNBLENDED)),
                    amortized_cost=format_amount(parse_amount(group.metrics.get(AMORTIZED), AMORTIZED)),
                    currency=(blended.unit if blended else None) or DEFAULT_CURRENCY,
                ))
            breakdown.append(AccountCostBreakdown(
                time_period=TimePeriod(start=bucket.start, end=bucket.end),
                accounts=accounts,
            ))
        return breakdown

    async def last_month_report(self) -> Dict[str, Any]:
        try:
            period = await self.last_month_cost()
        except Exception as e:
            logger.error("billing_last_month_failed", error=str(e))
            return _error_payload("Failed to fetch last month's billing data.", e)
        return {"status": "success", "data": period.model_dump(mode="json", by_alias=True)}

    async def member_accounts_report(self, start_date: date, end_date: date) -> Dict[str, Any]:
        try:
            breakdown = await self.member_accounts_cost(start_date, end_date)
        except Exception as e:
            logger.error("billing_member_accounts_failed", error=str(e))
            return _error_payload("Failed to fetch member account billing data.", e)
        return {
            "status": "success",
            "data": [b.model_dump(mode="json", by_alias=True) for b in breakdown],
        }

    async def billing_report(self, start_date: date, end_date: date) -> Dict[str, Any]:
        """Last month's totals, the caller's account and the member breakdown in one payload."""
        try:
            period = await self.last_month_cost()
            account_id = await (self.member or self.gateway).get_caller_account_id()
            members = await self.member_accounts_cost(start_date, end_date)
        except Exception as e:
            logger.error("billing_report_failed", error=str(e))
            return _error_payload("Failed to fetch billing data.", e)

        return {
            "status": "success",
            "data": {
                "accountId": account_id,
                "lastMonth": period.model_dump(mode="json", by_alias=True),
                "memberAccounts": [m.model_dump(mode="json", by_alias=True) for m in members],
            },
        }
