"""
Cryptographic utilities for privstore
Session key material and AES-GCM value encryption
"""

from .keys import KeyMaterialCache, derive_key
from .encrypt import EncryptionEngine, encrypt_bytes, decrypt_bytes

__all__ = [
    "KeyMaterialCache",
    "derive_key",
    "EncryptionEngine",
    "encrypt_bytes",
    "decrypt_bytes",
]
