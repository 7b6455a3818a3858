"""
Data portability for privstore
Export every caller-visible entry, and wipe everything on request
"""

from datetime import datetime, UTC
import structlog

from .consent.registry import ConsentRegistry
from .constants import EventTypes
from .events import EventBus
from .storage.manager import QuotaManagedStore
from .storage.models import ExportBundle

logger = structlog.get_logger(__name__)


async def collect_data(store: QuotaManagedStore) -> ExportBundle:
    """Read each caller-visible key through the normal get path"""
    data = {}
    for key in store.keys():
        data[key] = await store.get(key)

    logger.info("Collected data for export", keys=len(data))
    return ExportBundle(
        exported_at=datetime.now(UTC).isoformat(),
        schema_version=store.config.schema_version,
        data=data,
    )


def reset_my_data(store: QuotaManagedStore, consent: ConsentRegistry,
                  bus: EventBus) -> None:
    """Wipe stored data and key material, record a revoke, then announce it"""
    store.reset_all()
    consent.revoke_all()
    bus.publish(EventTypes.DATA_RESET, {})

    logger.warning("User data reset completed")
