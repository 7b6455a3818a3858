"""
Quota-managed store for privstore
Consent-gated, transparently encrypted key-value façade with TTL eviction

Every failure degrades to "value unavailable": writes return False, reads
return the caller's fallback. Nothing raised inside escapes set/get.
"""

import json
from typing import Any, Callable, Dict, Iterable, List, Optional
import structlog
from pydantic import ValidationError

from .backends import StorageBackend
from .models import EntryMetadata, Inventory, InventoryEntry, MetadataIndex
from ..config import StoreConfig, get_store_config
from ..consent.registry import ConsentRegistry
from ..constants import (
    ConsentCategories,
    EventTypes,
    QuotaDefaults,
    StorageKeys,
    encryption_flag_key,
    is_internal_key,
)
from ..crypto.encrypt import EncryptionEngine
from ..events import Event
from ..exceptions import (
    DecryptionFailedError,
    EncryptionError,
    PolicyDeniedError,
    QuotaExceededError,
)
from ..utils.clock import days_to_ms, now_ms

logger = structlog.get_logger(__name__)


def serialize_value(value: Any) -> str:
    """Strings are stored verbatim; everything else as compact JSON"""
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def deserialize_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def entry_cost(key: str, value: str) -> int:
    """Bytes charged by the medium for one key/value pair"""
    return (len(key) + len(value)) * QuotaDefaults.BYTES_PER_CHAR


class QuotaManagedStore:
    """
    Externally visible store. Owns the metadata index exclusively.

    Collaborators are injected by the host:
        backend: persisted medium
        consent: registry consulted before every write
        engine: encryption engine (owns the session key cache)
        crypto_available: whether authenticated encryption may be used,
            decided once by the host
    """

    def __init__(self, backend: StorageBackend, consent: ConsentRegistry,
                 engine: EncryptionEngine,
                 config: Optional[StoreConfig] = None,
                 crypto_available: Optional[bool] = None,
                 clock: Callable[[], int] = now_ms):
        self.backend = backend
        self.consent = consent
        self.engine = engine
        self.config = config or get_store_config()
        self.crypto_available = (
            self.config.crypto_available if crypto_available is None else crypto_available
        )
        self.sensitive_keys = frozenset(self.config.sensitive_keys)
        self._clock = clock

        self._storage_allowed = consent.has_consent(ConsentCategories.STORAGE)
        consent.bus.subscribe(EventTypes.CONSENT_UPDATED, self._on_consent_updated)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def initialize(self) -> int:
        """Write the schema marker if missing and drop long-untouched entries"""
        self._storage_allowed = self.consent.has_consent(ConsentCategories.STORAGE)
        if self.backend.get_item(StorageKeys.VERSION_KEY) is None:
            self.backend.set_item(StorageKeys.VERSION_KEY, str(self.config.schema_version))
        return self.prune_older_than(self.config.init_prune_days)

    def _on_consent_updated(self, event: Event) -> None:
        allowed = bool(event.payload.storage)
        if allowed != self._storage_allowed:
            logger.info("Storage write gate changed", open=allowed)
        self._storage_allowed = allowed

    # -------------------------------------------------------------------------
    # Metadata index
    # -------------------------------------------------------------------------

    def _load_meta(self) -> Dict[str, EntryMetadata]:
        raw = self.backend.get_item(StorageKeys.META_KEY)
        if not raw:
            return {}
        try:
            return MetadataIndex.validate_json(raw)
        except ValidationError as e:
            logger.warning("Metadata index unreadable, starting fresh", error=str(e))
            return {}

    def _save_meta(self, meta: Dict[str, EntryMetadata]) -> None:
        self.backend.set_item(
            StorageKeys.META_KEY,
            MetadataIndex.dump_json(meta, by_alias=True).decode("utf-8"),
        )

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def set(self, key: str, value: Any, encrypt: Optional[bool] = None) -> bool:
        """
        Write a value.

        Args:
            key: Entry key; must not use the internal prefix
            value: str stored as-is, anything else JSON-serialized
            encrypt: False opts a sensitive key out of encryption; None or True
                encrypts sensitive keys when crypto is available

        Returns:
            True when persisted, False when denied by consent or quota
        """
        try:
            self._check_writable(key)
            str_value = serialize_value(value)
            byte_size = len(str_value.encode("utf-8"))
            if byte_size > self.config.max_value_bytes:
                raise QuotaExceededError(key, byte_size, self.config.max_value_bytes)
        except PolicyDeniedError as e:
            logger.warning("Write denied", key=key, **e.to_dict())
            return False
        except QuotaExceededError as e:
            logger.warning("Write rejected", key=key, error=e.error_code,
                           size_bytes=e.details["size_bytes"])
            return False
        except (TypeError, ValueError) as e:
            logger.warning("Value not serializable", key=key, error=str(e))
            return False

        if self.get_total_used() > self.config.max_total_bytes:
            pruned = self.prune_older_than(self.config.pressure_prune_days)
            logger.info("Aggregate ceiling exceeded, pruned stale entries", pruned=pruned)

        final_value = str_value
        encrypted = False
        if encrypt is not False and key in self.sensitive_keys and self.crypto_available:
            try:
                final_value = await self.engine.encrypt(str_value)
                encrypted = True
            except EncryptionError as e:
                logger.warning("Storing sensitive value unencrypted", key=key, error=e.error_code)

        self.backend.set_item(key, final_value)
        self.backend.set_item(encryption_flag_key(key), "true" if encrypted else "false")

        meta = self._load_meta()
        meta[key] = EntryMetadata(size_bytes=byte_size, last_touched_at=self._clock(),
                                  encrypted=encrypted)
        self._save_meta(meta)

        logger.debug("Stored entry", key=key, size_bytes=byte_size, encrypted=encrypted)
        return True

    async def get(self, key: str, fallback: Any = None) -> Any:
        """Read a value; returns fallback when absent or unreadable"""
        raw = self.backend.get_item(key)
        if raw is None:
            return fallback

        decoded = raw
        # Without crypto the stored string is handed back undecrypted
        if self.backend.get_item(encryption_flag_key(key)) == "true" and self.crypto_available:
            try:
                decoded = await self._decrypt_value(raw)
            except EncryptionError as e:
                logger.warning("Encrypted entry unreadable", key=key, error=e.error_code)
                return fallback

        meta = self._load_meta()
        if key in meta:
            meta[key].last_touched_at = self._clock()
            self._save_meta(meta)

        return deserialize_value(decoded)

    def remove(self, key: str) -> None:
        """Delete an entry and its bookkeeping; never consent-gated"""
        self.backend.remove_item(key)
        self.backend.remove_item(encryption_flag_key(key))

        meta = self._load_meta()
        if meta.pop(key, None) is not None:
            self._save_meta(meta)

    def keys(self) -> List[str]:
        """Caller-visible keys"""
        return [k for k in self.backend.keys() if not is_internal_key(k)]

    def get_total_used(self) -> int:
        """Bytes charged for every key in the medium, internal ones included"""
        return sum(entry_cost(k, v) for k, v in self.backend.items().items())

    def prune_older_than(self, days: float) -> int:
        """Evict entries untouched for more than `days`, oldest first"""
        cutoff = self._clock() - days_to_ms(days)
        meta = self._load_meta()

        stale = sorted(
            (k for k, m in meta.items() if m.last_touched_at < cutoff),
            key=lambda k: meta[k].last_touched_at,
        )
        self._evict(stale, meta)

        if stale:
            logger.info("Pruned stale entries", count=len(stale), days=days)
        return len(stale)

    def get_inventory(self) -> Inventory:
        meta = self._load_meta()
        now = self._clock()
        entries: List[InventoryEntry] = []

        for key, value in self.backend.items().items():
            if is_internal_key(key):
                continue
            record = meta.get(key)
            entries.append(InventoryEntry(
                key=key,
                size_kb=round(entry_cost(key, value) / 1024, 1),
                encrypted=record.encrypted if record else False,
                age_days=round((now - record.last_touched_at) / QuotaDefaults.MS_PER_DAY) if record else None,
            ))

        return Inventory(
            total_bytes=self.get_total_used(),
            ceiling_bytes=self.config.max_total_bytes,
            entries=entries,
        )

    def reset_all(self) -> None:
        """Wipe the medium and the session key material, then re-stamp the schema"""
        self.backend.clear()
        self.engine.key_cache.clear()
        self._storage_allowed = self.consent.has_consent(ConsentCategories.STORAGE)
        self.backend.set_item(StorageKeys.VERSION_KEY, str(self.config.schema_version))

        logger.warning("All stored data reset")

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _check_writable(self, key: str) -> None:
        if is_internal_key(key):
            raise PolicyDeniedError("internal", key=key)
        if not self._storage_allowed:
            raise PolicyDeniedError(ConsentCategories.STORAGE, key=key)

    async def _decrypt_value(self, ciphertext: str) -> str:
        plaintext = await self.engine.decrypt(ciphertext)
        if plaintext is None:
            raise DecryptionFailedError()
        return plaintext

    def _evict(self, keys: Iterable[str], meta: Dict[str, EntryMetadata]) -> None:
        removed = False
        for key in keys:
            self.backend.remove_item(key)
            self.backend.remove_item(encryption_flag_key(key))
            meta.pop(key, None)
            removed = True
        if removed:
            self._save_meta(meta)
