"""
Reporting Module

Provides Cost Explorer billing views:
- BillingAggregator: last-month totals and per linked-account breakdowns
"""

from .domain.billing_aggregator import BillingAggregator

__all__ = ["BillingAggregator"]
