"""
privstore - FastAPI Application
Hosts the consent-gated encrypted store and owns its service lifetimes
"""

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging
import structlog

from pydantic import BaseModel, Field

from .audit import PrivacyAudit
from .config import StoreConfig
from .consent.registry import ConsentRegistry
from .constants import SERVICE_NAME, SERVICE_VERSION, ConsentCategories, is_internal_key
from .crypto.encrypt import EncryptionEngine
from .crypto.keys import KeyMaterialCache
from .events import EventBus
from .portability import collect_data, reset_my_data
from .storage.backends import InMemoryStorageBackend, SQLStorageBackend, StorageBackend
from .storage.manager import QuotaManagedStore

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

# Global settings
settings = StoreConfig()
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))


@dataclass
class Services:
    """Everything the host wires together at startup"""
    bus: EventBus
    consent: ConsentRegistry
    engine: EncryptionEngine
    store: QuotaManagedStore
    audit: PrivacyAudit


def build_services(config: StoreConfig,
                   backend: Optional[StorageBackend] = None,
                   session_backend: Optional[StorageBackend] = None) -> Services:
    """Construct and initialize the store and its collaborators"""
    if backend is None:
        backend = (SQLStorageBackend(config.database_url) if config.database_url
                   else InMemoryStorageBackend())
    if session_backend is None:
        session_backend = InMemoryStorageBackend()

    bus = EventBus()
    consent = ConsentRegistry(backend, bus)
    engine = EncryptionEngine(KeyMaterialCache(session_backend, config))
    store = QuotaManagedStore(backend, consent, engine, config=config)
    pruned = store.initialize()

    logger.info("Store initialized", pruned=pruned, crypto_available=store.crypto_available,
                needs_consent_decision=consent.needs_decision())
    return Services(bus=bus, consent=consent, engine=engine, store=store,
                    audit=PrivacyAudit(store, consent))


# Initialize services
services: Optional[Services] = None


class StoreValueRequest(BaseModel):
    value: Any = None
    encrypt: Optional[bool] = Field(default=None, description="False opts out of encryption")


class ConsentUpdateRequest(BaseModel):
    storage: Optional[bool] = None
    geolocation: Optional[bool] = None
    analytics: Optional[bool] = None
    notifications: Optional[bool] = None

    def changes(self) -> Dict[str, bool]:
        return self.model_dump(exclude_none=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    global services

    logger.info("Starting privstore", version=SERVICE_VERSION)

    # Initialize services only if not already provided (for testing/injection)
    if services is None:
        services = build_services(settings)

    yield

    logger.info("Shutting down privstore")


# Create FastAPI app
app = FastAPI(
    title="privstore",
    description="Consent-gated, encrypted, quota-managed key-value storage",
    version=SERVICE_VERSION,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _require_services() -> Services:
    if services is None:
        raise HTTPException(status_code=503, detail="Storage services not available")
    return services


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "components": {
            "store": services is not None,
            "crypto_available": services.store.crypto_available if services else False,
        },
    }


# =============================================================================
# STORAGE ENDPOINTS
# =============================================================================

@app.get("/storage")
async def get_inventory():
    """Storage inventory"""
    svc = _require_services()
    return svc.store.get_inventory().model_dump(by_alias=True)


@app.get("/storage/{key}")
async def get_value(key: str):
    svc = _require_services()
    missing = object()
    value = await svc.store.get(key, fallback=missing)
    if value is missing:
        raise HTTPException(status_code=404, detail=f"No readable value for key: {key}")
    return {"key": key, "value": value}


@app.put("/storage/{key}")
async def put_value(key: str, request: StoreValueRequest):
    svc = _require_services()
    if is_internal_key(key):
        raise HTTPException(status_code=403, detail=f"Key {key} is reserved")
    if not svc.consent.has_consent(ConsentCategories.STORAGE):
        raise HTTPException(status_code=403, detail="Storage consent not granted")

    stored = await svc.store.set(key, request.value, encrypt=request.encrypt)
    if not stored:
        raise HTTPException(status_code=413, detail=f"Value for key {key} exceeds the size limit")
    return {"key": key, "stored": True}


@app.delete("/storage/{key}")
async def delete_value(key: str):
    svc = _require_services()
    svc.store.remove(key)
    return {"key": key, "removed": True}


# =============================================================================
# CONSENT ENDPOINTS
# =============================================================================

@app.get("/consent")
async def get_consent():
    svc = _require_services()
    consent = svc.consent.get_consent()
    return {
        "consent": consent.model_dump(by_alias=True),
        "needs_decision": not consent.is_decided(),
    }


@app.post("/consent/grant-all")
async def grant_all():
    svc = _require_services()
    return {"status": "success", "consent": svc.consent.grant_all().model_dump(by_alias=True)}


@app.post("/consent/essential-only")
async def grant_essential_only():
    svc = _require_services()
    return {"status": "success",
            "consent": svc.consent.grant_essential_only().model_dump(by_alias=True)}


@app.patch("/consent")
async def update_consent(request: ConsentUpdateRequest):
    svc = _require_services()
    consent = svc.consent.update(request.changes())
    return {"status": "success", "consent": consent.model_dump(by_alias=True)}


@app.post("/consent/revoke")
async def revoke_consent():
    svc = _require_services()
    return {"status": "success", "consent": svc.consent.revoke_all().model_dump(by_alias=True)}


# =============================================================================
# PORTABILITY & AUDIT ENDPOINTS
# =============================================================================

@app.get("/export")
async def export_data():
    svc = _require_services()
    bundle = await collect_data(svc.store)
    return bundle.model_dump(by_alias=True)


@app.post("/reset")
async def reset_data():
    svc = _require_services()
    reset_my_data(svc.store, svc.consent, svc.bus)
    return {"status": "success"}


@app.get("/audit")
async def run_audit():
    svc = _require_services()
    return svc.audit.report()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "privstore",
        "version": SERVICE_VERSION,
        "status": "operational",
        "features": {
            "consent_gating": True,
            "encryption": True,
            "quotas": True,
            "ttl_pruning": True,
        }
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
