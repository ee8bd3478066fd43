"""
Monitoring Module

Provides per-instance utilization metrics:
- MetricQueryBuilder: builds CPU, memory and disk queries
- UtilizationMetricsService: runs the queries and extracts the series
"""

from .domain.metrics import MetricQueryBuilder, UtilizationMetricsService

__all__ = ["MetricQueryBuilder", "UtilizationMetricsService"]
