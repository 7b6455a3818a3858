"""
Session key management for privstore
Ephemeral key material, PBKDF2 derivation, initialize-once caching

The key material (random secret + salt) lives only in the session medium.
It is never written to the persisted medium and cannot be recovered once the
session medium is gone.
"""

import asyncio
import base64
import binascii
import json
import os
from typing import Optional, Tuple
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
import structlog

from ..config import StoreConfig, get_store_config
from ..constants import EncryptionDefaults, StorageKeys
from ..exceptions import KeyMaterialCorruptError
from ..storage.backends import InMemoryStorageBackend, StorageBackend

logger = structlog.get_logger(__name__)


def derive_key(secret: bytes, salt: bytes,
               iterations: int = EncryptionDefaults.ITERATIONS,
               key_size: int = EncryptionDefaults.KEY_SIZE_BITS) -> bytes:
    """Derive an AES key from secret bytes using PBKDF2-HMAC-SHA256"""
    if key_size not in [128, 192, 256]:
        raise ValueError("Key size must be 128, 192, or 256 bits")

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=key_size // 8,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(secret)


def seal_key_material(secret: bytes, salt: bytes) -> str:
    """Encode secret and salt as one opaque blob"""
    payload = {
        "secret": base64.b64encode(secret).decode("ascii"),
        "salt": base64.b64encode(salt).decode("ascii"),
    }
    return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")


def unseal_key_material(blob: str) -> Tuple[bytes, bytes]:
    """Decode a blob produced by seal_key_material"""
    try:
        payload = json.loads(base64.b64decode(blob.encode("ascii"), validate=True))
        secret = base64.b64decode(payload["secret"], validate=True)
        salt = base64.b64decode(payload["salt"], validate=True)
    except (binascii.Error, ValueError, KeyError, TypeError) as e:
        raise KeyMaterialCorruptError(reason=str(e))

    if len(secret) != EncryptionDefaults.SECRET_SIZE_BYTES:
        raise KeyMaterialCorruptError(reason="unexpected secret length")
    if len(salt) != EncryptionDefaults.SALT_SIZE_BYTES:
        raise KeyMaterialCorruptError(reason="unexpected salt length")

    return secret, salt


class KeyMaterialCache:
    """
    Produces the session's AEAD key.

    The key is stable for as long as the cached material survives in the
    session medium. Read-check-generate runs under a lock, so concurrent
    first uses share one set of material.
    """

    def __init__(self, session_backend: Optional[StorageBackend] = None,
                 config: Optional[StoreConfig] = None):
        self.session = session_backend if session_backend is not None else InMemoryStorageBackend()
        self.config = config or get_store_config()
        self._lock = asyncio.Lock()
        # (blob, derived key) so an unchanged blob is not re-derived
        self._derived: Optional[Tuple[str, bytes]] = None

    async def get_or_create_key(self) -> AESGCM:
        """Return the session key, generating material on first use"""
        async with self._lock:
            blob = self.session.get_item(StorageKeys.KEY_MATERIAL_KEY)

            if blob is not None:
                try:
                    secret, salt = unseal_key_material(blob)
                    return AESGCM(await self._derive(blob, secret, salt))
                except KeyMaterialCorruptError as e:
                    logger.warning("Key material corrupt, regenerating",
                                   reason=e.details.get("reason"))

            secret = os.urandom(EncryptionDefaults.SECRET_SIZE_BYTES)
            salt = os.urandom(EncryptionDefaults.SALT_SIZE_BYTES)
            blob = seal_key_material(secret, salt)
            self.session.set_item(StorageKeys.KEY_MATERIAL_KEY, blob)

            logger.info("Generated session key material")
            return AESGCM(await self._derive(blob, secret, salt))

    async def _derive(self, blob: str, secret: bytes, salt: bytes) -> bytes:
        if self._derived is not None and self._derived[0] == blob:
            return self._derived[1]

        key = await asyncio.to_thread(
            derive_key, secret, salt,
            self.config.kdf_iterations, self.config.key_size_bits,
        )
        self._derived = (blob, key)
        return key

    def has_material(self) -> bool:
        return StorageKeys.KEY_MATERIAL_KEY in self.session

    def clear(self) -> None:
        """Erase the session material; earlier ciphertexts become unreadable"""
        self.session.remove_item(StorageKeys.KEY_MATERIAL_KEY)
        self._derived = None
        logger.info("Session key material erased")
