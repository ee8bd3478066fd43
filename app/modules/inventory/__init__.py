"""
Inventory Module

Provides the composite compute inventory:
- ResourceCorrelator: joins instances, instance types and volumes
"""

from .domain.correlator import ResourceCorrelator

__all__ = ["ResourceCorrelator"]
