"""
Tests for session key material and the encryption engine
"""

import asyncio
import base64

import pytest

from privstore.config import StoreConfig
from privstore.constants import EncryptionDefaults, StorageKeys
from privstore.crypto.encrypt import EncryptionEngine, decrypt_bytes, encrypt_bytes
from privstore.crypto.keys import (
    KeyMaterialCache,
    derive_key,
    seal_key_material,
    unseal_key_material,
)
from privstore.exceptions import DecryptionFailedError, KeyMaterialCorruptError
from privstore.storage.backends import InMemoryStorageBackend


def _flip_byte(ciphertext: str, index: int) -> str:
    raw = bytearray(base64.b64decode(ciphertext))
    raw[index] ^= 0x01
    return base64.b64encode(bytes(raw)).decode("ascii")


class TestKeyDerivation:
    """Test PBKDF2 derivation and key material sealing"""

    def test_derivation_is_deterministic(self):
        secret = b"s" * 32
        salt = b"t" * 16

        assert derive_key(secret, salt, 1000) == derive_key(secret, salt, 1000)
        assert len(derive_key(secret, salt, 1000)) == 32

    def test_different_salt_gives_different_key(self):
        secret = b"s" * 32
        assert derive_key(secret, b"a" * 16, 1000) != derive_key(secret, b"b" * 16, 1000)

    def test_invalid_key_size_rejected(self):
        with pytest.raises(ValueError):
            derive_key(b"s" * 32, b"t" * 16, 1000, key_size=100)

    def test_seal_unseal_roundtrip(self):
        secret = bytes(range(32))
        salt = bytes(range(16))

        assert unseal_key_material(seal_key_material(secret, salt)) == (secret, salt)

    @pytest.mark.parametrize("blob", [
        "not base64!!",
        base64.b64encode(b"not json").decode("ascii"),
        base64.b64encode(b'{"secret": "AAAA"}').decode("ascii"),
        seal_key_material(b"short", b"t" * 16),
    ])
    def test_unseal_rejects_corrupt_blob(self, blob):
        with pytest.raises(KeyMaterialCorruptError):
            unseal_key_material(blob)


class TestKeyMaterialCache:
    """Test session-scoped key caching"""

    def setup_method(self):
        self.session = InMemoryStorageBackend()
        self.config = StoreConfig(kdf_iterations=1000)
        self.cache = KeyMaterialCache(self.session, self.config)

    def test_uses_injected_empty_session_medium(self):
        assert self.cache.session is self.session

    @pytest.mark.asyncio
    async def test_first_use_generates_material(self):
        assert not self.cache.has_material()

        await self.cache.get_or_create_key()

        assert self.cache.has_material()
        secret, salt = unseal_key_material(self.session.get_item(StorageKeys.KEY_MATERIAL_KEY))
        assert len(secret) == EncryptionDefaults.SECRET_SIZE_BYTES
        assert len(salt) == EncryptionDefaults.SALT_SIZE_BYTES

    @pytest.mark.asyncio
    async def test_key_is_stable_within_session(self):
        first = await self.cache.get_or_create_key()
        blob = self.session.get_item(StorageKeys.KEY_MATERIAL_KEY)
        second = await self.cache.get_or_create_key()

        assert self.session.get_item(StorageKeys.KEY_MATERIAL_KEY) == blob
        sealed = encrypt_bytes(first, b"payload")
        assert decrypt_bytes(second, sealed) == b"payload"

    @pytest.mark.asyncio
    async def test_rederives_from_cached_material(self):
        """A fresh cache over the same session medium reproduces the key"""
        first = await self.cache.get_or_create_key()
        other = KeyMaterialCache(self.session, self.config)

        second = await other.get_or_create_key()

        assert decrypt_bytes(second, encrypt_bytes(first, b"payload")) == b"payload"

    @pytest.mark.asyncio
    async def test_concurrent_first_use_generates_once(self):
        ciphers = await asyncio.gather(*[self.cache.get_or_create_key() for _ in range(5)])

        sealed = encrypt_bytes(ciphers[0], b"payload")
        for cipher in ciphers[1:]:
            assert decrypt_bytes(cipher, sealed) == b"payload"

    @pytest.mark.asyncio
    async def test_corrupt_material_is_regenerated(self):
        self.session.set_item(StorageKeys.KEY_MATERIAL_KEY, "garbage")

        await self.cache.get_or_create_key()

        blob = self.session.get_item(StorageKeys.KEY_MATERIAL_KEY)
        assert blob != "garbage"
        unseal_key_material(blob)

    @pytest.mark.asyncio
    async def test_clear_erases_material(self):
        first = await self.cache.get_or_create_key()
        sealed = encrypt_bytes(first, b"payload")

        self.cache.clear()
        assert not self.cache.has_material()

        second = await self.cache.get_or_create_key()
        with pytest.raises(DecryptionFailedError):
            decrypt_bytes(second, sealed)


class TestEncryptionEngine:
    """Test string encryption envelope"""

    def setup_method(self):
        self.session = InMemoryStorageBackend()
        self.config = StoreConfig(kdf_iterations=1000)
        self.engine = EncryptionEngine(KeyMaterialCache(self.session, self.config))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("plaintext", [
        "hello",
        '{"name":"A","tags":[1,2,3]}',
        "ünïcødé ✓ 日本語",
        "x" * 10_000,
    ])
    async def test_roundtrip(self, plaintext):
        ciphertext = await self.engine.encrypt(plaintext)

        assert ciphertext != plaintext
        assert await self.engine.decrypt(ciphertext) == plaintext

    @pytest.mark.asyncio
    async def test_fresh_nonce_per_call(self):
        first = await self.engine.encrypt("same plaintext")
        second = await self.engine.encrypt("same plaintext")

        assert first != second
        assert base64.b64decode(first)[:12] != base64.b64decode(second)[:12]

    @pytest.mark.asyncio
    async def test_ciphertext_layout(self):
        ciphertext = await self.engine.encrypt("abc")
        raw = base64.b64decode(ciphertext)

        # nonce + ciphertext + 16-byte tag
        assert len(raw) == 12 + 3 + 16

    @pytest.mark.asyncio
    async def test_empty_string_passthrough(self):
        assert await self.engine.encrypt("") == ""
        assert await self.engine.decrypt("") == ""
        assert not self.engine.key_cache.has_material()

    @pytest.mark.asyncio
    async def test_tamper_detection_every_byte(self):
        ciphertext = await self.engine.encrypt("tamper me")
        length = len(base64.b64decode(ciphertext))

        for index in range(length):
            assert await self.engine.decrypt(_flip_byte(ciphertext, index)) is None

    @pytest.mark.asyncio
    async def test_wrong_key_returns_none(self):
        ciphertext = await self.engine.encrypt("secret")
        other = EncryptionEngine(KeyMaterialCache(InMemoryStorageBackend(), self.config))

        assert await other.decrypt(ciphertext) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("garbage", ["!!!not-base64!!!", "AAAA", "ünïcødé"])
    async def test_malformed_input_returns_none(self, garbage):
        assert await self.engine.decrypt(garbage) is None
