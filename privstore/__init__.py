"""
privstore
Consent-gated, encrypted, quota-managed local key-value persistence
"""

__version__ = "0.1.0"

# Core exports
from .config import StoreConfig, get_store_config

# Consent management
from .consent import ConsentRecord, ConsentRegistry

# Cryptography
from .crypto import KeyMaterialCache, EncryptionEngine

# Events
from .events import Event, EventBus

# Storage
from .storage import (
    StorageBackend, InMemoryStorageBackend, SQLStorageBackend,
    EntryMetadata, Inventory, InventoryEntry, ExportBundle,
)
from .storage.manager import QuotaManagedStore

# Collaborators
from .audit import AuditCheck, PrivacyAudit
from .portability import collect_data, reset_my_data

__all__ = [
    # Config
    "StoreConfig",
    "get_store_config",

    # Consent
    "ConsentRecord",
    "ConsentRegistry",

    # Crypto
    "KeyMaterialCache",
    "EncryptionEngine",

    # Events
    "Event",
    "EventBus",

    # Storage
    "StorageBackend",
    "InMemoryStorageBackend",
    "SQLStorageBackend",
    "EntryMetadata",
    "Inventory",
    "InventoryEntry",
    "ExportBundle",
    "QuotaManagedStore",

    # Collaborators
    "AuditCheck",
    "PrivacyAudit",
    "collect_data",
    "reset_my_data",
]
