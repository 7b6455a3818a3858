"""
Consent registry for privstore
Single source of truth for which permission categories are granted
"""

from typing import Callable, Dict, Optional
import structlog
from pydantic import ValidationError

from .models import ConsentRecord
from ..constants import ConsentCategories, EventTypes, StorageKeys
from ..events import EventBus
from ..storage.backends import InMemoryStorageBackend, StorageBackend
from ..utils.clock import now_ms

logger = structlog.get_logger(__name__)


class ConsentRegistry:
    """
    Reads and writes the consent record in the persisted medium.

    The record is re-read on every call so that a medium-level reset is
    observed immediately. Every mutation publishes a consent-updated event
    carrying the new record.
    """

    def __init__(self, backend: Optional[StorageBackend] = None,
                 bus: Optional[EventBus] = None,
                 clock: Callable[[], int] = now_ms):
        self.backend = backend if backend is not None else InMemoryStorageBackend()
        self.bus = bus if bus is not None else EventBus()
        self._clock = clock

    def _load(self) -> ConsentRecord:
        raw = self.backend.get_item(StorageKeys.CONSENT_KEY)
        if raw is None:
            return ConsentRecord()
        try:
            return ConsentRecord.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Invalid consent record, using defaults", error=str(e))
            return ConsentRecord()

    def _save(self, consent: ConsentRecord) -> ConsentRecord:
        self.backend.set_item(StorageKeys.CONSENT_KEY, consent.to_storage())
        self.bus.publish(EventTypes.CONSENT_UPDATED, consent.model_copy())

        logger.info("Consent updated", granted=consent.granted_categories())
        return consent

    def get_consent(self) -> ConsentRecord:
        """Snapshot of the current record"""
        return self._load()

    def has_consent(self, category: str) -> bool:
        return self._load().allows(category)

    def needs_decision(self) -> bool:
        """True until the user has made any choice"""
        return not self._load().is_decided()

    def grant_all(self) -> ConsentRecord:
        consent = ConsentRecord(granted_at=self._clock(),
                                **{c: True for c in ConsentCategories.ALL})
        return self._save(consent)

    def grant_essential_only(self) -> ConsentRecord:
        consent = ConsentRecord(granted_at=self._clock(),
                                **{c: True for c in ConsentCategories.ESSENTIAL})
        return self._save(consent)

    def update(self, permissions: Dict[str, bool]) -> ConsentRecord:
        """Merge the given categories into the current record"""
        consent = self._load()
        changes: Dict[str, bool] = {}
        for category, granted in permissions.items():
            if category not in ConsentCategories.ALL:
                logger.warning("Ignoring unknown consent category", category=category)
                continue
            changes[category] = bool(granted)

        consent = consent.model_copy(update={**changes, "granted_at": self._clock()})
        return self._save(consent)

    def revoke_all(self) -> ConsentRecord:
        """Deny every category; the record still counts as decided"""
        return self._save(ConsentRecord(granted_at=self._clock()))
