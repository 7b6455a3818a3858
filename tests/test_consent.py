"""
Tests for consent registry
"""

import pytest

from privstore.consent.models import ConsentRecord
from privstore.consent.registry import ConsentRegistry
from privstore.constants import ConsentCategories, EventTypes, StorageKeys
from privstore.events import EventBus
from privstore.storage.backends import InMemoryStorageBackend


class TestConsentRecord:
    """Test consent data model"""

    def test_default_record_is_undecided(self):
        record = ConsentRecord()

        assert not record.is_decided()
        assert record.granted_categories() == []
        assert record.granted_at_datetime is None

    def test_storage_form_uses_camel_case(self):
        record = ConsentRecord(granted_at=1_700_000_000_000, storage=True)

        restored = ConsentRecord.model_validate_json(record.to_storage())

        assert '"grantedAt":1700000000000' in record.to_storage()
        assert restored == record

    def test_unknown_category_is_never_allowed(self):
        record = ConsentRecord(storage=True)

        assert record.allows(ConsentCategories.STORAGE)
        assert not record.allows("camera")


class TestConsentRegistry:
    """Test consent state transitions"""

    def setup_method(self):
        self.backend = InMemoryStorageBackend()
        self.bus = EventBus()
        self.events = []
        self.bus.subscribe(EventTypes.CONSENT_UPDATED, self.events.append)
        self.registry = ConsentRegistry(self.backend, self.bus, clock=lambda: 1_000)

    def test_uses_injected_empty_medium(self):
        backend = InMemoryStorageBackend()
        registry = ConsentRegistry(backend, self.bus)

        registry.grant_essential_only()

        assert registry.backend is backend
        assert backend.get_item(StorageKeys.CONSENT_KEY) is not None

    def test_starts_undecided(self):
        assert self.registry.needs_decision()
        for category in ConsentCategories.ALL:
            assert not self.registry.has_consent(category)

    def test_grant_all(self):
        record = self.registry.grant_all()

        assert record.granted_at == 1_000
        assert not self.registry.needs_decision()
        for category in ConsentCategories.ALL:
            assert self.registry.has_consent(category)

    def test_grant_essential_only(self):
        self.registry.grant_essential_only()

        assert self.registry.has_consent(ConsentCategories.STORAGE)
        assert not self.registry.has_consent(ConsentCategories.ANALYTICS)
        assert not self.registry.has_consent(ConsentCategories.GEOLOCATION)
        assert not self.registry.has_consent(ConsentCategories.NOTIFICATIONS)
        assert not self.registry.needs_decision()

    def test_update_merges_categories(self):
        self.registry.grant_essential_only()

        record = self.registry.update({"analytics": True})

        assert record.storage
        assert record.analytics
        assert not record.geolocation

    def test_update_ignores_unknown_categories(self):
        record = self.registry.update({"camera": True, "geolocation": True})

        assert record.geolocation
        assert "camera" not in record.model_dump()
        assert not self.registry.needs_decision()

    def test_revoke_all_keeps_decision(self):
        self.registry.grant_all()

        self.registry.revoke_all()

        assert not self.registry.needs_decision()
        for category in ConsentCategories.ALL:
            assert not self.registry.has_consent(category)

    def test_every_mutation_publishes_record(self):
        self.registry.grant_all()
        self.registry.grant_essential_only()
        self.registry.update({"analytics": True})
        self.registry.revoke_all()

        assert len(self.events) == 4
        assert all(e.event_type == EventTypes.CONSENT_UPDATED for e in self.events)
        assert self.events[0].payload.notifications
        assert self.events[2].payload.analytics
        assert not self.events[3].payload.storage

    def test_get_consent_returns_snapshot(self):
        self.registry.grant_all()

        snapshot = self.registry.get_consent()
        snapshot.storage = False

        assert self.registry.has_consent(ConsentCategories.STORAGE)

    def test_corrupt_record_loads_defaults(self):
        self.backend.set_item(StorageKeys.CONSENT_KEY, "{not json")

        assert self.registry.needs_decision()
        assert not self.registry.has_consent(ConsentCategories.STORAGE)

    def test_reads_through_to_medium(self):
        """Clearing the medium resets consent without going through the registry"""
        self.registry.grant_all()

        self.backend.clear()

        assert self.registry.needs_decision()


class TestEventBus:
    """Test publish/subscribe delivery"""

    def test_failing_handler_does_not_block_others(self):
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe("thing", broken)
        bus.subscribe("thing", received.append)

        assert bus.publish("thing", {"x": 1}) == 1
        assert received[0].payload == {"x": 1}

    def test_wildcard_and_unsubscribe(self):
        bus = EventBus()
        received = []

        def handler(event):
            received.append(event.event_type)

        bus.subscribe("*", handler)
        bus.publish("a")
        bus.publish("b")
        assert received == ["a", "b"]

        assert bus.unsubscribe(handler) == 1
        bus.publish("c")
        assert received == ["a", "b"]

    def test_subscribe_rejects_non_callable(self):
        with pytest.raises(ValueError):
            EventBus().subscribe("a", "not callable")
