"""
Health Module for upstream data providers.

Per-provider circuit breaking with rolling failure windows.
"""

from .health_tracker import HealthTracker, HealthRecord, CircuitSnapshot, CircuitState

__all__ = [
    "HealthTracker",
    "HealthRecord",
    "CircuitSnapshot",
    "CircuitState",
]
