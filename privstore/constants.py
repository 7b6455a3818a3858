"""
Constants for the privstore persistence layer

Centralized storage layout, quota ceilings, consent categories,
and cryptographic parameters.
"""

from typing import Final, Tuple

# =============================================================================
# SERVICE IDENTIFICATION
# =============================================================================

SERVICE_NAME: Final[str] = "privstore"
SERVICE_VERSION: Final[str] = "0.1.0"

# =============================================================================
# STORAGE LAYOUT
# =============================================================================

class StorageKeys:
    """Reserved keys in the persisted and session media"""
    INTERNAL_PREFIX: Final[str] = "_ps_"

    VERSION_KEY: Final[str] = "_ps_ver_"
    META_KEY: Final[str] = "_ps_meta_"
    ENCRYPTION_FLAG_PREFIX: Final[str] = "_ps_enc_"
    CONSENT_KEY: Final[str] = "_ps_consent_"

    # Lives in the session medium, never the persisted one
    KEY_MATERIAL_KEY: Final[str] = "_ps_km_"


def is_internal_key(key: str) -> bool:
    """True for bookkeeping keys that callers never see"""
    return key.startswith(StorageKeys.INTERNAL_PREFIX)


def encryption_flag_key(key: str) -> str:
    return f"{StorageKeys.ENCRYPTION_FLAG_PREFIX}{key}"


# =============================================================================
# QUOTA DEFAULTS
# =============================================================================

class QuotaDefaults:
    """Size ceilings and retention horizons"""
    SCHEMA_VERSION: Final[int] = 1
    MAX_TOTAL_KB: Final[int] = 2048    # soft aggregate ceiling
    MAX_VALUE_KB: Final[int] = 256     # hard per-entry ceiling

    INIT_PRUNE_DAYS: Final[int] = 90
    PRESSURE_PRUNE_DAYS: Final[int] = 30

    # Storage medium charges two bytes per character of key and value
    BYTES_PER_CHAR: Final[int] = 2

    STORAGE_WARN_PERCENT: Final[int] = 80

    MS_PER_DAY: Final[int] = 86_400_000


# Keys routed through encryption whenever the host supports it
DEFAULT_SENSITIVE_KEYS: Final[Tuple[str, ...]] = (
    "devCardSpotlight",
    "userProfile",
    "moodData",
    "focusData",
    "analyticsPrefs",
    "viewMode",
)


# =============================================================================
# CONSENT
# =============================================================================

class ConsentCategories:
    """Independent permission toggles"""
    STORAGE: Final[str] = "storage"
    GEOLOCATION: Final[str] = "geolocation"
    ANALYTICS: Final[str] = "analytics"
    NOTIFICATIONS: Final[str] = "notifications"

    ALL: Final[Tuple[str, ...]] = (STORAGE, GEOLOCATION, ANALYTICS, NOTIFICATIONS)

    # Granted by the "essential only" choice
    ESSENTIAL: Final[Tuple[str, ...]] = (STORAGE,)


CONSENT_RECORD_VERSION: Final[int] = 1


# =============================================================================
# EVENTS
# =============================================================================

class EventTypes:
    """Notifications published on the event bus"""
    CONSENT_UPDATED: Final[str] = "consent-updated"
    DATA_RESET: Final[str] = "data-reset"


# =============================================================================
# ENCRYPTION CONFIGURATION
# =============================================================================

class EncryptionDefaults:
    """Default encryption parameters"""
    KEY_SIZE_BITS: Final[int] = 256
    NONCE_SIZE_BYTES: Final[int] = 12   # 96-bit nonce for GCM
    SECRET_SIZE_BYTES: Final[int] = 32
    SALT_SIZE_BYTES: Final[int] = 16
    ITERATIONS: Final[int] = 100_000


# =============================================================================
# ERROR CODES
# =============================================================================

class ErrorCodes:
    """Standardized error codes for the store"""
    UNKNOWN_ERROR: Final[str] = "UNKNOWN_ERROR"

    POLICY_DENIED: Final[str] = "POLICY_DENIED"
    QUOTA_EXCEEDED: Final[str] = "QUOTA_EXCEEDED"

    ENCRYPTION_FAILED: Final[str] = "ENCRYPTION_FAILED"
    DECRYPTION_FAILED: Final[str] = "DECRYPTION_FAILED"
    KEY_MATERIAL_CORRUPT: Final[str] = "KEY_MATERIAL_CORRUPT"
