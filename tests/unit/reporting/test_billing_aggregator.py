import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from app.modules.reporting.domain.billing_aggregator import (
    ACCOUNT_METRICS,
    AMORTIZED,
    PERIOD_METRICS,
    BillingAggregator,
    format_amount,
    last_month_window,
    sum_bucket_totals,
)
from app.schemas.billing import CostBucket, CostGroup, CostMetricValue
from app.shared.core.exceptions import AdapterError, CostParseError, ValidationError

NOW = datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc)


def _clock():
    return NOW


def _bucket(start="2024-02-01", end="2024-03-01", unit="USD", **amounts):
    return CostBucket(
        start=date.fromisoformat(start),
        end=date.fromisoformat(end),
        total={name: CostMetricValue(amount=value, unit=unit) for name, value in amounts.items()},
    )


def test_last_month_window_leap_february():
    window = last_month_window(NOW)

    assert window.start == date(2024, 2, 1)
    assert window.end == date(2024, 3, 1)
    assert window.end_display == date(2024, 2, 29)


def test_last_month_window_crosses_year():
    window = last_month_window(datetime(2025, 1, 1, 0, 5, tzinfo=timezone.utc))

    assert window == (date(2024, 12, 1), date(2025, 1, 1), date(2024, 12, 31))


def test_last_month_window_uses_utc():
    # 23:30 on Mar 31 in UTC-5 is already April 1st in UTC
    from datetime import timedelta
    local = datetime(2024, 3, 31, 23, 30, tzinfo=timezone(timedelta(hours=-5)))

    assert last_month_window(local).start == date(2024, 3, 1)


def test_sum_rounds_the_total_not_each_bucket():
    buckets = [_bucket(AmortizedCost="10.005"), _bucket(AmortizedCost="5.00")]

    totals = sum_bucket_totals(buckets, [AMORTIZED])

    assert totals[AMORTIZED] == Decimal("15.005")
    assert format_amount(totals[AMORTIZED]) == "15.01"


def test_sum_is_stable_under_resummation():
    buckets = [_bucket(AmortizedCost="1.115", UnblendedCost="2.5")] * 3

    first = {k: format_amount(v) for k, v in sum_bucket_totals(buckets, PERIOD_METRICS).items()}
    second = {k: format_amount(v) for k, v in sum_bucket_totals(buckets, PERIOD_METRICS).items()}

    assert first == second
    assert first["AmortizedCost"] == "3.35"
    assert first["NetUnblendedCost"] == "0.00"


def test_sum_rejects_malformed_amount():
    with pytest.raises(CostParseError):
        sum_bucket_totals([_bucket(AmortizedCost="twelve")], [AMORTIZED])


@pytest.mark.asyncio
async def test_last_month_cost_queries_half_open_window(gateway):
    gateway.query_cost.return_value = [
        _bucket(AmortizedCost="10.005", UnblendedCost="9.99", NetAmortizedCost="8", NetUnblendedCost="7.5"),
        _bucket(AmortizedCost="5.00", UnblendedCost="0.01", NetAmortizedCost="0", NetUnblendedCost="0"),
    ]

    period = await BillingAggregator(gateway, clock=_clock).last_month_cost()

    gateway.query_cost.assert_awaited_once_with(
        start_date=date(2024, 2, 1),
        end_date=date(2024, 3, 1),
        metrics=PERIOD_METRICS,
        granularity="MONTHLY",
    )
    assert period.model_dump(mode="json", by_alias=True) == {
        "startDate": "2024-02-01",
        "endDate": "2024-02-29",
        "amortizedCost": "15.01",
        "unblendedCost": "10.00",
        "netAmortizedCost": "8.00",
        "netUnblendedCost": "7.50",
        "currency": "USD",
    }


@pytest.mark.asyncio
async def test_last_month_cost_currency_from_first_bucket(gateway):
    gateway.query_cost.return_value = [_bucket(unit="EUR", AmortizedCost="1"), _bucket(unit="USD", AmortizedCost="1")]

    period = await BillingAggregator(gateway, clock=_clock).last_month_cost()

    assert period.currency == "EUR"


@pytest.mark.asyncio
async def test_last_month_cost_no_buckets(gateway):
    gateway.query_cost.return_value = []

    period = await BillingAggregator(gateway, clock=_clock).last_month_cost()

    assert period.amortized_cost == "0.00"
    assert period.currency == "USD"


@pytest.mark.asyncio
async def test_member_accounts_cost_rows_per_group(gateway):
    gateway.query_cost.return_value = [
        CostBucket(
            start=date(2024, 1, 1),
            end=date(2024, 2, 1),
            groups=[
                CostGroup(keys=["111111111111"], metrics={
                    "BlendedCost": CostMetricValue(amount="12.345", unit="USD"),
                    "UnblendedCost": CostMetricValue(amount="12.3", unit="USD"),
                    "AmortizedCost": CostMetricValue(amount="12", unit="USD"),
                }),
                CostGroup(keys=["222222222222"], metrics={
                    "UnblendedCost": CostMetricValue(amount="0.004", unit="USD"),
                }),
            ],
        ),
        CostBucket(start=date(2024, 2, 1), end=date(2024, 3, 1)),
    ]

    breakdown = await BillingAggregator(gateway).member_accounts_cost(date(2024, 1, 1), date(2024, 3, 1))

    gateway.query_cost.assert_awaited_once_with(
        start_date=date(2024, 1, 1),
        end_date=date(2024, 3, 1),
        metrics=ACCOUNT_METRICS,
        granularity="MONTHLY",
        group_by="LINKED_ACCOUNT",
    )
    dumped = [b.model_dump(mode="json", by_alias=True) for b in breakdown]
    assert dumped[0]["timePeriod"] == {"Start": "2024-01-01", "End": "2024-02-01"}
    assert dumped[0]["accounts"] == [
        {"accountId": "111111111111", "blendedCost": "12.35", "unblendedCost": "12.30",
         "amortizedCost": "12.00", "currency": "USD"},
        {"accountId": "222222222222", "blendedCost": "0.00", "unblendedCost": "0.00",
         "amortizedCost": "0.00", "currency": "USD"},
    ]
    assert dumped[1]["accounts"] == []


@pytest.mark.asyncio
async def test_member_accounts_cost_rejects_inverted_range(gateway):
    with pytest.raises(ValidationError):
        await BillingAggregator(gateway).member_accounts_cost(date(2024, 3, 1), date(2024, 1, 1))

    gateway.query_cost.assert_not_awaited()


@pytest.mark.asyncio
async def test_last_month_report_downgrades_gateway_failure(gateway):
    gateway.query_cost.side_effect = AdapterError("Cost Explorer failure", code="DataUnavailableException")

    report = await BillingAggregator(gateway, clock=_clock).last_month_report()

    assert report["status"] == "error"
    assert report["code"] == "DataUnavailableException"
    assert "message" in report


@pytest.mark.asyncio
async def test_last_month_report_downgrades_parse_failure(gateway):
    gateway.query_cost.return_value = [_bucket(AmortizedCost="n/a")]

    report = await BillingAggregator(gateway, clock=_clock).last_month_report()

    assert report["status"] == "error"
    assert report["code"] == "cost_parse_error"


@pytest.mark.asyncio
async def test_member_accounts_report_success(gateway):
    gateway.query_cost.return_value = []

    report = await BillingAggregator(gateway).member_accounts_report(date(2024, 1, 1), date(2024, 2, 1))

    assert report == {"status": "success", "data": []}


@pytest.mark.asyncio
async def test_billing_report_combines_views(gateway):
    gateway.query_cost.side_effect = [
        [_bucket(AmortizedCost="3.333")],
        [],
    ]
    gateway.get_caller_account_id.return_value = "123456789012"

    report = await BillingAggregator(gateway, clock=_clock).billing_report(date(2024, 2, 1), date(2024, 3, 1))

    assert report["status"] == "success"
    assert report["data"]["accountId"] == "123456789012"
    assert report["data"]["lastMonth"]["amortizedCost"] == "3.33"
    assert report["data"]["memberAccounts"] == []


@pytest.mark.asyncio
async def test_billing_report_never_raises(gateway):
    gateway.query_cost.return_value = []
    gateway.get_caller_account_id.side_effect = RuntimeError("sts down")

    report = await BillingAggregator(gateway, clock=_clock).billing_report(date(2024, 2, 1), date(2024, 3, 1))

    assert report["status"] == "error"
    assert report["error"] == "sts down"


@pytest.mark.asyncio
async def test_billing_report_account_comes_from_member_identity(gateway, member_gateway):
    gateway.query_cost.return_value = []
    gateway.get_caller_account_id.return_value = "111111111111"
    member_gateway.get_caller_account_id.return_value = "222222222222"

    report = await BillingAggregator(gateway, clock=_clock, member=member_gateway).billing_report(
        date(2024, 2, 1), date(2024, 3, 1)
    )

    assert report["data"]["accountId"] == "222222222222"
    gateway.get_caller_account_id.assert_not_awaited()
    member_gateway.query_cost.assert_not_awaited()
