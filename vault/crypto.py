"""AES-256-GCM sealing of individual chunk payloads."""

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from common.constants import ENCRYPTION_KEY_BYTES
from vault.exceptions import AuthenticationError, ConfigurationError

NONCE_SIZE = 12
TAG_SIZE = 16


def validate_key(key: bytes) -> bytes:
    """
    Check that a key is usable for AES-256-GCM.

    Args:
        key: Raw key bytes

    Returns:
        The key unchanged

    Raises:
        ConfigurationError: If the key is not exactly 32 bytes
    """
    if not isinstance(key, (bytes, bytearray)) or len(key) != ENCRYPTION_KEY_BYTES:
        raise ConfigurationError(f"Encryption key must be exactly {ENCRYPTION_KEY_BYTES} bytes")
    return bytes(key)


def encrypt(plaintext: bytes, key: bytes) -> bytes:
    """
    Encrypt a buffer under a fresh random nonce.

    The output layout is nonce (12 bytes) || ciphertext || tag (16 bytes).

    Args:
        plaintext: Data to seal
        key: 32-byte key (validated at configuration time)

    Returns:
        Sealed payload
    """
    nonce = os.urandom(NONCE_SIZE)
    return nonce + AESGCM(key).encrypt(nonce, bytes(plaintext), None)


def decrypt(payload: bytes, key: bytes) -> bytes:
    """
    Open a payload produced by encrypt().

    Args:
        payload: nonce || ciphertext || tag
        key: 32-byte key

    Returns:
        Plaintext bytes

    Raises:
        AuthenticationError: If the payload is truncated, corrupted or sealed under another key
    """
    if len(payload) < NONCE_SIZE + TAG_SIZE:
        raise AuthenticationError(f"Ciphertext too short ({len(payload)} bytes)")

    nonce, sealed = payload[:NONCE_SIZE], payload[NONCE_SIZE:]
    try:
        return AESGCM(key).decrypt(nonce, bytes(sealed), None)
    except InvalidTag:
        raise AuthenticationError("Chunk failed integrity verification")
