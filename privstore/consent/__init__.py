"""
Consent management module for privstore
Per-category permissions gating every write
"""

from .models import ConsentRecord
from .registry import ConsentRegistry

__all__ = [
    "ConsentRecord",
    "ConsentRegistry",
]
