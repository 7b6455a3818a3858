"""
Storage module for privstore
Media backends, metadata models and the quota-managed store
"""

from .backends import StorageBackend, InMemoryStorageBackend, SQLStorageBackend
from .models import EntryMetadata, Inventory, InventoryEntry, ExportBundle

__all__ = [
    "StorageBackend",
    "InMemoryStorageBackend",
    "SQLStorageBackend",
    "EntryMetadata",
    "Inventory",
    "InventoryEntry",
    "ExportBundle",
]
