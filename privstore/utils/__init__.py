"""
Utility functions for privstore
Clock and timestamp helpers
"""

from .clock import now_ms, days_to_ms, ms_to_datetime

__all__ = [
    "now_ms",
    "days_to_ms",
    "ms_to_datetime",
]
