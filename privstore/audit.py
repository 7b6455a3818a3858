"""
Privacy audit checklist for privstore

Read-only report over the store inventory and the consent snapshot.
Running the checklist never mutates stored data, consent, or key material.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, List
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
import structlog

from .consent.registry import ConsentRegistry
from .crypto.encrypt import decrypt_bytes, encrypt_bytes
from .exceptions import EncryptionError
from .storage.manager import QuotaManagedStore

logger = structlog.get_logger(__name__)

_PROBE = b"privstore-audit-probe"


@dataclass
class AuditCheck:
    """
    Outcome of a single checklist item.

    Attributes:
        id: Stable identifier for the check
        label: Human-readable title
        passed: Whether the check passed
        note: Explanation shown next to the result
    """
    id: str
    label: str
    passed: bool
    note: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def aead_backend_usable() -> bool:
    """Round-trip a probe under a throwaway key"""
    try:
        cipher = AESGCM(AESGCM.generate_key(bit_length=256))
        return decrypt_bytes(cipher, encrypt_bytes(cipher, _PROBE)) == _PROBE
    except EncryptionError as e:
        logger.warning("AEAD backend probe failed", error=e.error_code)
        return False


class PrivacyAudit:
    """Security checklist over a store and its consent registry"""

    def __init__(self, store: QuotaManagedStore, consent: ConsentRegistry):
        self.store = store
        self.consent = consent

    def run_checks(self) -> List[AuditCheck]:
        checks: List[AuditCheck] = []

        secure = self.store.crypto_available
        checks.append(AuditCheck(
            id="secure_context",
            label="Secure Context",
            passed=secure,
            note="Host allows authenticated encryption" if secure
            else "Encryption disabled by host - sensitive keys stored in plaintext",
        ))

        usable = aead_backend_usable()
        checks.append(AuditCheck(
            id="crypto",
            label="AES-GCM Backend Available",
            passed=usable,
            note="AES-GCM encryption available" if usable else "AES-GCM backend unusable",
        ))

        consent = self.consent.get_consent()
        decided_at = consent.granted_at_datetime
        checks.append(AuditCheck(
            id="consent",
            label="User Consent Recorded",
            passed=decided_at is not None,
            note=f"Consent given on {decided_at.date().isoformat()}" if decided_at
            else "Consent not yet obtained",
        ))

        inventory = self.store.get_inventory()
        pct = inventory.used_percent
        warn_at = self.store.config.storage_warn_percent
        checks.append(AuditCheck(
            id="storage",
            label="Storage Within Limits",
            passed=pct < warn_at,
            note=f"{inventory.total_bytes // 1024} KB used of "
                 f"{inventory.ceiling_bytes // 1024} KB ({pct}%)",
        ))

        logger.info("Privacy audit completed",
                    passed=sum(c.passed for c in checks), total=len(checks))
        return checks

    def report(self) -> Dict[str, Any]:
        checks = self.run_checks()
        return {
            "passed": all(c.passed for c in checks),
            "checks": [c.to_dict() for c in checks],
        }
