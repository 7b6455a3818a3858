"""
Encryption utilities for privstore
AES-GCM envelope for values at rest
"""

import base64
import binascii
import os
from typing import Optional
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.exceptions import InvalidTag
import structlog

from ..constants import EncryptionDefaults
from ..exceptions import DecryptionFailedError, EncryptionFailedError
from .keys import KeyMaterialCache

logger = structlog.get_logger(__name__)

NONCE_SIZE = EncryptionDefaults.NONCE_SIZE_BYTES


def encrypt_bytes(cipher: AESGCM, plaintext: bytes, associated_data: bytes | None = None) -> bytes:
    """
    Encrypt bytes using AES-GCM

    Args:
        cipher: AEAD cipher holding the session key
        plaintext: Data to encrypt
        associated_data: Optional associated data for authentication

    Returns:
        Encrypted data with nonce prepended (nonce + ciphertext + tag)
    """
    try:
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = cipher.encrypt(nonce, plaintext, associated_data)

        # Return nonce + ciphertext (ciphertext already includes auth tag)
        return nonce + ciphertext

    except Exception as e:
        logger.error("Encryption failed", error=str(e))
        raise EncryptionFailedError(reason=str(e))


def decrypt_bytes(cipher: AESGCM, encrypted_data: bytes, associated_data: bytes | None = None) -> bytes:
    """
    Decrypt bytes using AES-GCM

    Args:
        cipher: AEAD cipher holding the session key
        encrypted_data: Encrypted data with nonce prepended
        associated_data: Optional associated data for authentication

    Returns:
        Decrypted plaintext
    """
    if len(encrypted_data) < NONCE_SIZE:
        raise DecryptionFailedError(reason="Encrypted data too short")

    # Extract nonce and ciphertext
    nonce = encrypted_data[:NONCE_SIZE]
    ciphertext = encrypted_data[NONCE_SIZE:]

    try:
        return cipher.decrypt(nonce, ciphertext, associated_data)
    except InvalidTag:
        raise DecryptionFailedError(reason="Invalid authentication tag - data may be corrupted or tampered")


class EncryptionEngine:
    """Turns strings into self-contained base64 ciphertexts and back"""

    def __init__(self, key_cache: Optional[KeyMaterialCache] = None):
        self.key_cache = key_cache or KeyMaterialCache()

    async def encrypt(self, plaintext: str) -> str:
        """Encrypt a string; a fresh nonce makes every output distinct"""
        if not plaintext:
            return plaintext

        cipher = await self.key_cache.get_or_create_key()
        combined = encrypt_bytes(cipher, plaintext.encode("utf-8"))
        return base64.b64encode(combined).decode("ascii")

    async def decrypt(self, ciphertext: str) -> Optional[str]:
        """Decrypt a string from encrypt(); None when it does not authenticate"""
        if not ciphertext:
            return ciphertext

        try:
            raw = base64.b64decode(ciphertext.encode("ascii"), validate=True)
            cipher = await self.key_cache.get_or_create_key()
            return decrypt_bytes(cipher, raw).decode("utf-8")
        except DecryptionFailedError as e:
            logger.warning("Decryption failed - returning None", reason=e.details.get("reason"))
        except (binascii.Error, UnicodeError, ValueError) as e:
            logger.warning("Decryption failed - malformed ciphertext", error=str(e))
        return None
